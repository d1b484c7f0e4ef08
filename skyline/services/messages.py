"""Booking/campaign conversation threads between a user and the admins."""

from beanie import PydanticObjectId
from bson.errors import InvalidId

from skyline.core.exceptions import BadRequestError, ForbiddenError, NotFoundError
from skyline.core.logging import get_logger
from skyline.models.booking import Booking
from skyline.models.campaign import Campaign
from skyline.models.message import Message
from skyline.models.user import User
from skyline.realtime.events import ServerEvent
from skyline.realtime.notifier import EventNotifier

log = get_logger(__name__)

THREAD_TYPES = ("booking", "campaign")


def make_thread_id(thread_type: str, reference_id: PydanticObjectId) -> str:
    return f"{thread_type}-{reference_id}"


def parse_thread_id(thread_id: str) -> tuple[str, PydanticObjectId]:
    thread_type, _, ref = thread_id.partition("-")
    if thread_type not in THREAD_TYPES:
        raise BadRequestError("Invalid thread id")
    try:
        return thread_type, PydanticObjectId(ref)
    except InvalidId:
        raise BadRequestError("Invalid thread id")


def message_payload(m: Message) -> dict:
    return {
        "id": str(m.id),
        "thread_id": m.thread_id,
        "thread_type": m.thread_type,
        "reference_id": str(m.reference_id),
        "sender": m.sender,
        "sender_user_id": str(m.sender_user_id),
        "text": m.text,
        "created_at": m.created_at.isoformat(),
    }


async def thread_owner(thread_type: str, reference_id: PydanticObjectId) -> PydanticObjectId | None:
    """User id owning the booking/campaign behind a thread."""
    if thread_type == "booking":
        ref = await Booking.get(reference_id)
    else:
        ref = await Campaign.get(reference_id)
    return ref.user_id if ref else None


async def _check_access(user: User, thread_type: str, reference_id: PydanticObjectId) -> PydanticObjectId | None:
    owner = await thread_owner(thread_type, reference_id)
    if not user.is_admin and owner != user.id:
        raise ForbiddenError("Access denied to this conversation")
    return owner


async def list_thread_messages(user: User, thread_id: str) -> list[Message]:
    thread_type, reference_id = parse_thread_id(thread_id)
    await _check_access(user, thread_type, reference_id)
    return await Message.find(Message.thread_id == thread_id).sort(+Message.created_at).to_list()


async def send_message(
    user: User,
    thread_type: str,
    reference_id: PydanticObjectId,
    text: str,
    notifier: EventNotifier | None = None,
) -> Message:
    """
    Append to a thread. Admin replies go to the thread owner only; user
    messages are broadcast to every connected admin.
    """
    if thread_type not in THREAD_TYPES:
        raise BadRequestError("Invalid thread type")
    owner = await _check_access(user, thread_type, reference_id)
    if owner is None:
        raise NotFoundError(f"{thread_type.capitalize()} not found")
    message = Message(
        thread_id=make_thread_id(thread_type, reference_id),
        thread_type=thread_type,
        reference_id=reference_id,
        sender="admin" if user.is_admin else "user",
        sender_user_id=user.id,
        text=text,
    )
    await message.insert()
    log.info("message_sent", thread_id=message.thread_id, sender=message.sender, user_id=str(user.id))

    if notifier is not None:
        payload = {"thread_id": message.thread_id, "message": message_payload(message)}
        if user.is_admin:
            await notifier.push(str(owner), ServerEvent(type="new_message", payload=payload))
        else:
            admin_ids = [str(a.id) for a in await User.find(User.role == "admin").to_list()]
            payload["is_from_user"] = True
            await notifier.broadcast(ServerEvent(type="new_message", payload=payload), user_ids=admin_ids)
    return message


async def list_threads(user: User) -> list[dict]:
    """Latest message per thread, newest thread first. Users see only their own threads."""
    if user.is_admin:
        messages = await Message.find_all().sort(-Message.created_at).to_list()
    else:
        booking_ids = [b.id for b in await Booking.find(Booking.user_id == user.id).to_list()]
        campaign_ids = [c.id for c in await Campaign.find(Campaign.user_id == user.id).to_list()]
        refs = booking_ids + campaign_ids
        if not refs:
            return []
        messages = (
            await Message.find({"reference_id": {"$in": refs}})
            .sort(-Message.created_at)
            .to_list()
        )
    threads: dict[str, dict] = {}
    for m in messages:
        if m.thread_id in threads:
            continue
        threads[m.thread_id] = {
            "thread_id": m.thread_id,
            "thread_type": m.thread_type,
            "reference_id": str(m.reference_id),
            "last_message": message_payload(m),
        }
    if user.is_admin:
        for t in threads.values():
            owner = await thread_owner(t["thread_type"], PydanticObjectId(t["reference_id"]))
            t["user_id"] = str(owner) if owner else None
    return list(threads.values())
