"""Booking creation with an atomic wallet debit, and status transitions with refunds."""

from datetime import datetime

from beanie import PydanticObjectId, UpdateResponse
from beanie.operators import Set
from motor.motor_asyncio import AsyncIOMotorClientSession
from pymongo.errors import PyMongoError

from skyline.core.audit import log_admin_action
from skyline.core.config import get_settings
from skyline.core.exceptions import ForbiddenError, NotFoundError, TransientLockConflictError
from skyline.core.logging import get_logger
from skyline.core.money import format_usd
from skyline.db.transactions import run_in_transaction
from skyline.models.booking import Booking
from skyline.models.celebrity import Celebrity
from skyline.models.user import User
from skyline.realtime.events import ServerEvent
from skyline.realtime.notifier import EventNotifier
from skyline.services import ledger
from skyline.services.notifications import notify

log = get_logger(__name__)

# No transitions leave these; a cancelled booking has already been refunded
TERMINAL_STATUSES = ("cancelled",)


def booking_debit_key(booking_id: PydanticObjectId) -> str:
    return f"booking:{booking_id}"


def booking_refund_key(booking_id: PydanticObjectId) -> str:
    return f"booking_refund:{booking_id}"


async def create_booking(
    user_id: PydanticObjectId,
    celebrity_id: PydanticObjectId,
    event_date: datetime | None = None,
    event_details: str | None = None,
    notifier: EventNotifier | None = None,
) -> Booking:
    """
    Debit the wallet by the celebrity's current price and insert the booking,
    as one unit. The price is snapshotted onto the booking.
    Raises NotFoundError (user/celebrity) or InsufficientBalanceError.
    """
    celebrity = await Celebrity.get(celebrity_id)
    if not celebrity:
        raise NotFoundError("Celebrity not found")
    price_cents = celebrity.price_cents

    async def _work(session: AsyncIOMotorClientSession | None) -> Booking:
        booking = Booking(
            id=PydanticObjectId(),
            user_id=user_id,
            celebrity_id=celebrity_id,
            price_cents=price_cents,
            event_date=event_date,
            event_details=event_details,
        )
        await ledger.adjust_balance(
            user_id,
            -price_cents,
            "booking",
            reference_type="booking",
            reference_id=str(booking.id),
            idempotency_key=booking_debit_key(booking.id),
            floor_cents=0,
            session=session,
        )
        try:
            await booking.insert(session=session)
        except PyMongoError:
            if session is None:
                await _compensate_debit(booking)
            raise
        return booking

    booking = await run_in_transaction(_work, operation="create_booking")
    log.info(
        "booking_created",
        booking_id=str(booking.id),
        user_id=str(user_id),
        celebrity_id=str(celebrity_id),
        price=format_usd(price_cents),
    )
    await notify(
        user_id,
        "Booking Submitted",
        f"Your booking request for {celebrity.name} has been submitted.",
        "booking",
        notifier=notifier,
    )
    return booking


async def _compensate_debit(booking: Booking) -> None:
    """Credit back a debit whose booking row never landed (no-transaction mode)."""
    log.error("booking_insert_failed_compensating", booking_id=str(booking.id), user_id=str(booking.user_id))
    await ledger.adjust_balance(
        booking.user_id,
        booking.price_cents,
        "booking_refund",
        reference_type="booking",
        reference_id=str(booking.id),
        idempotency_key=f"booking_rollback:{booking.id}",
    )


async def set_booking_status(
    booking_id: PydanticObjectId,
    new_status: str,
    admin: User,
    notifier: EventNotifier | None = None,
) -> Booking:
    """
    Move a booking to new_status. The transition is claimed with a conditional
    update on the status that was read, so two concurrent admins cannot both
    take the pending->cancelled edge; only that edge refunds the snapshot price.
    Same-status requests and changes out of a cancelled booking are no-ops.
    """
    attempts = max(1, get_settings().ledger_max_retries)
    for _ in range(attempts):
        booking = await Booking.get(booking_id)
        if not booking:
            raise NotFoundError("Booking not found")
        previous = booking.status
        if previous == new_status or previous in TERMINAL_STATUSES:
            log.info("booking_transition_ignored", booking_id=str(booking_id), status=previous, requested=new_status)
            return booking

        async def _work(session: AsyncIOMotorClientSession | None) -> Booking | None:
            claimed = await Booking.find_one(
                Booking.id == booking_id,
                Booking.status == previous,
                session=session,
            ).update(
                Set({Booking.status: new_status, Booking.updated_at: datetime.utcnow()}),
                session=session,
                response_type=UpdateResponse.NEW_DOCUMENT,
            )
            if claimed is None:
                return None
            if previous == "pending" and new_status == "cancelled":
                try:
                    await ledger.adjust_balance(
                        claimed.user_id,
                        claimed.price_cents,
                        "booking_refund",
                        reference_type="booking",
                        reference_id=str(booking_id),
                        idempotency_key=booking_refund_key(booking_id),
                        session=session,
                    )
                except Exception:
                    if session is None:
                        await _release_claim(booking_id, new_status, previous)
                    raise
            return claimed

        updated = await run_in_transaction(_work, operation="set_booking_status")
        if updated is None:
            # Someone else moved it first; re-read and decide again
            continue
        log.info(
            "booking_status_changed",
            booking_id=str(booking_id),
            previous=previous,
            status=new_status,
            admin_id=str(admin.id),
        )
        await notify(
            updated.user_id,
            "Booking Update",
            f"Your booking has been {new_status}.",
            "booking",
            notifier=notifier,
            event=ServerEvent(type="booking_update", payload={"booking_id": str(booking_id), "status": new_status}),
        )
        await log_admin_action(
            str(admin.id),
            f"Updated booking status to {new_status}",
            "booking",
            str(booking_id),
            {"previous_status": previous},
        )
        return updated
    raise TransientLockConflictError(details={"operation": "set_booking_status", "attempts": attempts})


async def _release_claim(booking_id: PydanticObjectId, claimed_status: str, previous: str) -> None:
    await Booking.find_one(Booking.id == booking_id, Booking.status == claimed_status).update(
        Set({Booking.status: previous, Booking.updated_at: datetime.utcnow()})
    )


async def get_booking(booking_id: PydanticObjectId, user: User) -> Booking:
    booking = await Booking.get(booking_id)
    if not booking:
        raise NotFoundError("Booking not found")
    if booking.user_id != user.id and not user.is_admin:
        raise ForbiddenError("Access denied")
    return booking


async def list_bookings(user: User, limit: int = 50, offset: int = 0) -> list[Booking]:
    """Own bookings, or every booking for admins; newest first."""
    query = Booking.find_all() if user.is_admin else Booking.find(Booking.user_id == user.id)
    return await query.sort(-Booking.created_at).skip(offset).limit(limit).to_list()
