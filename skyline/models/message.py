from datetime import datetime
from typing import Literal

from beanie import Document, PydanticObjectId
from pydantic import Field

ThreadType = Literal["booking", "campaign"]


class Message(Document):
    thread_id: str  # "<thread_type>-<reference_id>"
    thread_type: ThreadType
    reference_id: PydanticObjectId
    sender: Literal["user", "admin"]
    sender_user_id: PydanticObjectId
    text: str
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "messages"
        indexes = [
            [("thread_id", 1), ("created_at", 1)],
            [("reference_id", 1)],
        ]
