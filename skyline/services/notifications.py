"""Durable per-user notifications plus the real-time hint."""

from beanie import PydanticObjectId
from beanie.operators import Set

from skyline.core.exceptions import NotFoundError
from skyline.core.logging import get_logger
from skyline.models.notification import Notification
from skyline.realtime.events import ServerEvent
from skyline.realtime.notifier import EventNotifier

log = get_logger(__name__)


def notification_payload(n: Notification) -> dict:
    return {
        "id": str(n.id),
        "title": n.title,
        "message": n.message,
        "type": n.type,
        "is_read": n.is_read,
        "created_at": n.created_at.isoformat(),
    }


async def notify(
    user_id: PydanticObjectId,
    title: str,
    message: str,
    type: str,
    notifier: EventNotifier | None = None,
    event: ServerEvent | None = None,
) -> Notification:
    """
    Store a notification, then push event (default: the notification itself)
    to the user's channel if one is connected.
    """
    n = Notification(user_id=user_id, title=title, message=message, type=type)
    await n.insert()
    if notifier is not None:
        event = event or ServerEvent(type="notification", payload=notification_payload(n))
        queued = await notifier.push(str(user_id), event)
        log.debug("notification_pushed", user_id=str(user_id), event_type=event.type, queued=queued)
    return n


async def list_notifications(user_id: PydanticObjectId, limit: int = 50, offset: int = 0) -> list[Notification]:
    return (
        await Notification.find(Notification.user_id == user_id)
        .sort(-Notification.created_at)
        .skip(offset)
        .limit(limit)
        .to_list()
    )


async def unread_count(user_id: PydanticObjectId) -> int:
    return await Notification.find(Notification.user_id == user_id, Notification.is_read == False).count()


async def mark_read(notification_id: PydanticObjectId, user_id: PydanticObjectId) -> Notification:
    """Mark one of the user's notifications read. Read never goes back to unread."""
    n = await Notification.find_one(Notification.id == notification_id, Notification.user_id == user_id)
    if not n:
        raise NotFoundError("Notification not found")
    if not n.is_read:
        n.is_read = True
        await n.save()
    return n


async def mark_all_read(user_id: PydanticObjectId) -> int:
    result = await Notification.find(
        Notification.user_id == user_id,
        Notification.is_read == False,
    ).update(Set({Notification.is_read: True}))
    return result.modified_count if result is not None else 0
