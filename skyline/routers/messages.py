from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from skyline.deps import get_current_user, get_notifier, parse_object_id
from skyline.models.user import User
from skyline.realtime.notifier import EventNotifier
from skyline.services import messages as messages_service

router = APIRouter()


class MessageCreate(BaseModel):
    thread_type: Literal["booking", "campaign"]
    reference_id: str
    text: str = Field(min_length=1, max_length=5000)


@router.get("")
async def threads_list(user: User = Depends(get_current_user)):
    """Threads with their latest message; admins see every thread."""
    return {"threads": await messages_service.list_threads(user)}


@router.get("/{thread_id}")
async def thread_messages(thread_id: str, user: User = Depends(get_current_user)):
    items = await messages_service.list_thread_messages(user, thread_id)
    return {"messages": [messages_service.message_payload(m) for m in items]}


@router.post("", status_code=201)
async def message_create(
    body: MessageCreate,
    user: User = Depends(get_current_user),
    notifier: EventNotifier = Depends(get_notifier),
):
    m = await messages_service.send_message(
        user,
        body.thread_type,
        parse_object_id(body.reference_id, body.thread_type.capitalize()),
        body.text,
        notifier=notifier,
    )
    return messages_service.message_payload(m)
