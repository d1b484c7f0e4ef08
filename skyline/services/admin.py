"""Admin surface: users, manual balance adjustments, dashboard stats."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from beanie import PydanticObjectId, UpdateResponse
from beanie.operators import Inc, Set

from skyline.core.audit import log_admin_action
from skyline.core.exceptions import BadRequestError, NotFoundError
from skyline.core.logging import get_logger
from skyline.core.money import format_usd, to_cents
from skyline.models.booking import Booking
from skyline.models.campaign import Campaign
from skyline.models.celebrity import Celebrity
from skyline.models.deposit import Deposit
from skyline.models.user import User
from skyline.realtime.notifier import EventNotifier
from skyline.services import ledger
from skyline.services.notifications import notify

log = get_logger(__name__)

# Fields an admin may edit directly; the balance goes through adjust_user_balance
EDITABLE_USER_FIELDS = ("first_name", "last_name", "phone", "country", "role", "status")


async def list_users(limit: int = 50, offset: int = 0) -> list[User]:
    return await User.find_all().sort(-User.created_at).skip(offset).limit(limit).to_list()


async def update_user(user_id: PydanticObjectId, admin: User, changes: dict[str, Any]) -> User:
    """
    Apply field edits with a targeted $set. The balance is never part of the
    write, so ledger adjustments racing with the edit are preserved.
    """
    unknown = set(changes) - set(EDITABLE_USER_FIELDS)
    if unknown:
        raise BadRequestError("Fields cannot be edited", details={"fields": sorted(unknown)})
    if not changes:
        user = await User.get(user_id)
        if not user:
            raise NotFoundError("User not found")
        return user
    updates: dict[str, Any] = dict(changes)
    updates["updated_at"] = datetime.utcnow()
    operators = [Set(updates)]
    if "role" in changes or "status" in changes:
        # Role/status changes log the user out everywhere
        operators.append(Inc({User.session_version: 1}))
    user = await User.find_one(User.id == user_id).update(
        *operators, response_type=UpdateResponse.NEW_DOCUMENT
    )
    if not user:
        raise NotFoundError("User not found")
    await log_admin_action(str(admin.id), "Updated user", "user", str(user_id), changes)
    return user


async def adjust_user_balance(
    user_id: PydanticObjectId,
    amount_usd: Decimal,
    admin: User,
    notifier: EventNotifier | None = None,
    idempotency_key: str | None = None,
) -> User:
    """
    Manual credit (positive) or debit (negative). No floor is applied here,
    unlike booking debits, so an admin debit can take a balance negative.
    """
    amount_cents = to_cents(amount_usd)
    if amount_cents == 0:
        raise BadRequestError("Amount must be non-zero")
    entry, balance_after = await ledger.adjust_balance(
        user_id,
        amount_cents,
        "admin_adjustment",
        reference_type="admin",
        reference_id=str(admin.id),
        idempotency_key=f"admin_adjustment:{idempotency_key}" if idempotency_key else None,
    )
    if balance_after < 0:
        log.warning("balance_negative_after_admin_adjustment", user_id=str(user_id), balance=format_usd(balance_after))
    await log_admin_action(
        str(admin.id),
        "Adjusted user balance",
        "user",
        str(user_id),
        {"amount": format_usd(amount_cents), "ledger_entry_id": str(entry.id)},
    )
    await notify(
        user_id,
        "Balance Adjustment",
        f"Your wallet balance has been adjusted by ${format_usd(amount_cents)}.",
        "wallet",
        notifier=notifier,
    )
    return await User.get(user_id)


async def dashboard_stats() -> dict[str, Any]:
    approved = await Deposit.find(Deposit.status == "approved").to_list()
    revenue_cents = sum(d.amount_cents for d in approved)
    return {
        "total_users": await User.find_all().count(),
        "total_celebrities": await Celebrity.find_all().count(),
        "total_bookings": await Booking.find_all().count(),
        "total_campaigns": await Campaign.find_all().count(),
        "total_revenue": format_usd(revenue_cents),
        "pending_bookings": await Booking.find(Booking.status == "pending").count(),
        "pending_campaigns": await Campaign.find(Campaign.status == "pending").count(),
        "pending_deposits": await Deposit.find(Deposit.status == "pending").count(),
    }
