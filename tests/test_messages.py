import pytest

from skyline.core.exceptions import BadRequestError, ForbiddenError
from skyline.services import bookings, campaigns, messages, notifications

pytestmark = pytest.mark.asyncio


async def test_user_message_goes_to_admins_only(make_user, make_celebrity, admin, notifier, connect):
    user = await make_user("100")
    other = await make_user()
    celebrity = await make_celebrity("10")
    booking = await bookings.create_booking(user.id, celebrity.id)
    admin_channel = connect(admin.id)
    other_channel = connect(other.id)

    m = await messages.send_message(user, "booking", booking.id, "Hello", notifier=notifier)
    await notifier.flush()
    assert m.sender == "user"
    [frame] = admin_channel.sent
    assert frame["type"] == "new_message"
    assert frame["payload"]["is_from_user"] is True
    assert frame["payload"]["thread_id"] == f"booking-{booking.id}"
    assert other_channel.sent == []


async def test_admin_reply_goes_to_owner(make_user, make_celebrity, admin, notifier, connect):
    user = await make_user("100")
    celebrity = await make_celebrity("10")
    booking = await bookings.create_booking(user.id, celebrity.id)
    owner_channel = connect(user.id)

    await messages.send_message(admin, "booking", booking.id, "Confirmed soon", notifier=notifier)
    await notifier.flush()
    [frame] = owner_channel.sent
    assert frame["payload"]["message"]["sender"] == "admin"
    assert "is_from_user" not in frame["payload"]


async def test_thread_access(make_user, make_celebrity):
    owner = await make_user()
    stranger = await make_user()
    celebrity = await make_celebrity()
    campaign = await campaigns.create_campaign(owner.id, celebrity.id, "appearance")
    with pytest.raises(ForbiddenError):
        await messages.send_message(stranger, "campaign", campaign.id, "hi")
    with pytest.raises(BadRequestError):
        await messages.list_thread_messages(owner, "invoice-123")


async def test_campaign_status_change_notifies(make_user, make_celebrity, admin, notifier, connect):
    user = await make_user()
    celebrity = await make_celebrity()
    campaign = await campaigns.create_campaign(user.id, celebrity.id, "appearance")
    channel = connect(user.id)
    await campaigns.update_campaign(campaign.id, admin, description="Two hours", notifier=notifier)
    await notifier.flush()
    assert channel.sent == []
    await campaigns.update_campaign(campaign.id, admin, status="approved", notifier=notifier)
    await notifier.flush()
    assert channel.types() == ["campaign_update"]
    # Creation + status change
    assert await notifications.unread_count(user.id) == 2
