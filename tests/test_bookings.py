"""Booking creation, concurrent debits and status transitions with refunds."""

import asyncio

import pytest
from beanie import PydanticObjectId

from skyline.core.exceptions import ForbiddenError, InsufficientBalanceError, NotFoundError
from skyline.models.booking import Booking
from skyline.models.ledger_entry import LedgerEntry
from skyline.models.notification import Notification
from skyline.services import bookings, ledger

from conftest import ledger_sum

pytestmark = pytest.mark.asyncio


async def _entries(user_id, reason):
    return await LedgerEntry.find(LedgerEntry.user_id == user_id, LedgerEntry.reason == reason).to_list()


async def test_create_booking_debits_and_snapshots(make_user, make_celebrity):
    user = await make_user("150")
    celebrity = await make_celebrity("100")
    booking = await bookings.create_booking(user.id, celebrity.id, event_details="Gala")
    assert booking.status == "pending"
    assert booking.price_cents == 10000
    assert await ledger.get_balance(user.id) == 5000
    [debit] = await _entries(user.id, "booking")
    assert debit.amount_cents == -10000
    assert debit.reference_id == str(booking.id)
    assert debit.idempotency_key == bookings.booking_debit_key(booking.id)
    assert await Notification.find(Notification.user_id == user.id).count() == 1


async def test_insufficient_balance_creates_nothing(make_user, make_celebrity):
    user = await make_user("50")
    celebrity = await make_celebrity("80")
    with pytest.raises(InsufficientBalanceError):
        await bookings.create_booking(user.id, celebrity.id)
    assert await Booking.find(Booking.user_id == user.id).count() == 0
    assert await ledger.get_balance(user.id) == 5000


async def test_unknown_celebrity(make_user):
    user = await make_user("50")
    with pytest.raises(NotFoundError):
        await bookings.create_booking(user.id, PydanticObjectId())


async def test_concurrent_bookings_only_one_fits(make_user, make_celebrity):
    user = await make_user("100")
    celebrity = await make_celebrity("80")
    results = await asyncio.gather(
        bookings.create_booking(user.id, celebrity.id),
        bookings.create_booking(user.id, celebrity.id),
        return_exceptions=True,
    )
    created = [r for r in results if isinstance(r, Booking)]
    rejected = [r for r in results if isinstance(r, InsufficientBalanceError)]
    assert len(created) == 1
    assert len(rejected) == 1
    assert await ledger.get_balance(user.id) == 2000
    assert await Booking.find(Booking.user_id == user.id).count() == 1
    assert await ledger_sum(user.id) == 2000


async def test_cancel_pending_refunds_snapshot_price(make_user, make_celebrity, admin):
    user = await make_user("100")
    celebrity = await make_celebrity("100")
    booking = await bookings.create_booking(user.id, celebrity.id)
    celebrity.price_cents = 25000
    await celebrity.save()

    updated = await bookings.set_booking_status(booking.id, "cancelled", admin)
    assert updated.status == "cancelled"
    assert await ledger.get_balance(user.id) == 10000
    [refund] = await _entries(user.id, "booking_refund")
    assert refund.amount_cents == 10000


async def test_repeat_cancel_refunds_once(make_user, make_celebrity, admin):
    user = await make_user("100")
    celebrity = await make_celebrity("60")
    booking = await bookings.create_booking(user.id, celebrity.id)
    await bookings.set_booking_status(booking.id, "cancelled", admin)
    again = await bookings.set_booking_status(booking.id, "cancelled", admin)
    assert again.status == "cancelled"
    assert await ledger.get_balance(user.id) == 10000
    assert len(await _entries(user.id, "booking_refund")) == 1


async def test_concurrent_cancels_refund_once(make_user, make_celebrity, admin):
    user = await make_user("100")
    celebrity = await make_celebrity("60")
    booking = await bookings.create_booking(user.id, celebrity.id)
    await asyncio.gather(
        bookings.set_booking_status(booking.id, "cancelled", admin),
        bookings.set_booking_status(booking.id, "cancelled", admin),
    )
    assert await ledger.get_balance(user.id) == 10000
    assert len(await _entries(user.id, "booking_refund")) == 1


async def test_cancelled_is_terminal(make_user, make_celebrity, admin):
    user = await make_user("100")
    celebrity = await make_celebrity("60")
    booking = await bookings.create_booking(user.id, celebrity.id)
    await bookings.set_booking_status(booking.id, "cancelled", admin)
    after = await bookings.set_booking_status(booking.id, "confirmed", admin)
    assert after.status == "cancelled"
    assert await ledger.get_balance(user.id) == 10000


async def test_cancel_after_confirm_does_not_refund(make_user, make_celebrity, admin):
    user = await make_user("100")
    celebrity = await make_celebrity("60")
    booking = await bookings.create_booking(user.id, celebrity.id)
    await bookings.set_booking_status(booking.id, "confirmed", admin)
    await bookings.set_booking_status(booking.id, "cancelled", admin)
    assert await ledger.get_balance(user.id) == 4000
    assert await _entries(user.id, "booking_refund") == []


async def test_status_change_pushes_to_owner(make_user, make_celebrity, admin, notifier, connect):
    user = await make_user("100")
    celebrity = await make_celebrity("60")
    booking = await bookings.create_booking(user.id, celebrity.id)
    channel = connect(user.id)
    await bookings.set_booking_status(booking.id, "confirmed", admin, notifier=notifier)
    await notifier.flush()
    assert channel.sent == [
        {"type": "booking_update", "payload": {"booking_id": str(booking.id), "status": "confirmed"}}
    ]


async def test_status_change_not_held_up_by_stuck_socket(make_user, make_celebrity, admin, notifier, connect):
    user = await make_user("100")
    celebrity = await make_celebrity("60")
    booking = await bookings.create_booking(user.id, celebrity.id)
    connect(user.id, hang=True)
    updated = await asyncio.wait_for(
        bookings.set_booking_status(booking.id, "confirmed", admin, notifier=notifier), timeout=1
    )
    assert updated.status == "confirmed"
    await asyncio.wait_for(notifier.flush(), timeout=1)
    assert not notifier.is_connected(str(user.id))


async def test_get_booking_access(make_user, make_celebrity, admin):
    owner = await make_user("100")
    stranger = await make_user()
    celebrity = await make_celebrity("10")
    booking = await bookings.create_booking(owner.id, celebrity.id)
    assert (await bookings.get_booking(booking.id, owner)).id == booking.id
    assert (await bookings.get_booking(booking.id, admin)).id == booking.id
    with pytest.raises(ForbiddenError):
        await bookings.get_booking(booking.id, stranger)
    with pytest.raises(NotFoundError):
        await bookings.get_booking(PydanticObjectId(), owner)


async def test_list_bookings_scope(make_user, make_celebrity, admin):
    a = await make_user("100")
    b = await make_user("100")
    celebrity = await make_celebrity("10")
    await bookings.create_booking(a.id, celebrity.id)
    await bookings.create_booking(b.id, celebrity.id)
    assert len(await bookings.list_bookings(a)) == 1
    assert len(await bookings.list_bookings(admin)) == 2
