from decimal import Decimal
from typing import Literal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from skyline.core.money import format_usd
from skyline.core.pagination import page, paginate
from skyline.deps import get_current_user, get_notifier, parse_object_id, require_admin
from skyline.models.campaign import Campaign
from skyline.models.user import User
from skyline.realtime.notifier import EventNotifier
from skyline.services import campaigns as campaigns_service

router = APIRouter()


class CampaignCreate(BaseModel):
    celebrity_id: str
    campaign_type: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=5000)


class CampaignUpdate(BaseModel):
    status: Literal["pending", "negotiating", "approved", "rejected", "completed"] | None = None
    custom_price_usd: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    description: str | None = Field(default=None, max_length=5000)


def campaign_out(c: Campaign) -> dict:
    return {
        "id": str(c.id),
        "user_id": str(c.user_id),
        "celebrity_id": str(c.celebrity_id),
        "campaign_type": c.campaign_type,
        "description": c.description,
        "custom_price_usd": format_usd(c.custom_price_cents) if c.custom_price_cents is not None else None,
        "status": c.status,
        "created_at": c.created_at.isoformat(),
    }


@router.get("")
async def campaigns_list(
    user: User = Depends(get_current_user),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    limit, offset = paginate(limit, offset)
    items = await campaigns_service.list_campaigns(user, limit=limit, offset=offset)
    return page("campaigns", map(campaign_out, items), limit, offset)


@router.post("", status_code=201)
async def campaign_create(
    body: CampaignCreate,
    user: User = Depends(get_current_user),
    notifier: EventNotifier = Depends(get_notifier),
):
    c = await campaigns_service.create_campaign(
        user.id,
        parse_object_id(body.celebrity_id, "Celebrity"),
        body.campaign_type,
        description=body.description,
        notifier=notifier,
    )
    return campaign_out(c)


@router.patch("/{campaign_id}")
async def campaign_update(
    campaign_id: str,
    body: CampaignUpdate,
    admin: User = Depends(require_admin),
    notifier: EventNotifier = Depends(get_notifier),
):
    """Admin: negotiate price, edit description or move status (owner is notified)."""
    c = await campaigns_service.update_campaign(
        parse_object_id(campaign_id, "Campaign"),
        admin,
        status=body.status,
        custom_price_usd=body.custom_price_usd,
        description=body.description,
        notifier=notifier,
    )
    return campaign_out(c)
