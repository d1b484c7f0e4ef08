"""Campaign requests: user submission, admin negotiation and status updates."""

from datetime import datetime
from decimal import Decimal

from beanie import PydanticObjectId

from skyline.core.audit import log_admin_action
from skyline.core.exceptions import BadRequestError, NotFoundError
from skyline.core.logging import get_logger
from skyline.core.money import format_usd, to_cents
from skyline.models.campaign import Campaign
from skyline.models.celebrity import Celebrity
from skyline.models.user import User
from skyline.realtime.events import ServerEvent
from skyline.realtime.notifier import EventNotifier
from skyline.services.notifications import notify

log = get_logger(__name__)


async def create_campaign(
    user_id: PydanticObjectId,
    celebrity_id: PydanticObjectId,
    campaign_type: str,
    description: str | None = None,
    notifier: EventNotifier | None = None,
) -> Campaign:
    celebrity = await Celebrity.get(celebrity_id)
    if not celebrity:
        raise NotFoundError("Celebrity not found")
    campaign = Campaign(
        user_id=user_id,
        celebrity_id=celebrity_id,
        campaign_type=campaign_type,
        description=description,
    )
    await campaign.insert()
    log.info("campaign_created", campaign_id=str(campaign.id), user_id=str(user_id))
    await notify(
        user_id,
        "Campaign Request Submitted",
        f"Your campaign request for {celebrity.name} has been submitted.",
        "campaign",
        notifier=notifier,
    )
    return campaign


async def update_campaign(
    campaign_id: PydanticObjectId,
    admin: User,
    status: str | None = None,
    custom_price_usd: Decimal | None = None,
    description: str | None = None,
    notifier: EventNotifier | None = None,
) -> Campaign:
    """Admin edit. Only a status change notifies the campaign owner."""
    campaign = await Campaign.get(campaign_id)
    if not campaign:
        raise NotFoundError("Campaign not found")
    changes: dict = {}
    if custom_price_usd is not None:
        cents = to_cents(custom_price_usd)
        if cents < 0:
            raise BadRequestError("Price cannot be negative")
        campaign.custom_price_cents = cents
        changes["custom_price"] = format_usd(cents)
    if description is not None:
        campaign.description = description
        changes["description"] = description
    status_changed = status is not None and status != campaign.status
    if status_changed:
        changes["status"] = status
        campaign.status = status
    if not changes:
        return campaign
    campaign.updated_at = datetime.utcnow()
    await campaign.save()
    log.info("campaign_updated", campaign_id=str(campaign_id), admin_id=str(admin.id), **changes)

    if status_changed:
        await notify(
            campaign.user_id,
            "Campaign Update",
            f"Your campaign status has been updated to {status}.",
            "campaign",
            notifier=notifier,
            event=ServerEvent(type="campaign_update", payload={"campaign_id": str(campaign_id), "status": status}),
        )
    await log_admin_action(str(admin.id), "Updated campaign", "campaign", str(campaign_id), changes)
    return campaign


async def get_campaign(campaign_id: PydanticObjectId) -> Campaign | None:
    return await Campaign.get(campaign_id)


async def list_campaigns(user: User, limit: int = 50, offset: int = 0) -> list[Campaign]:
    query = Campaign.find_all() if user.is_admin else Campaign.find(Campaign.user_id == user.id)
    return await query.sort(-Campaign.created_at).skip(offset).limit(limit).to_list()
