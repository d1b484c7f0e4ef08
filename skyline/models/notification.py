from datetime import datetime

from beanie import Document, PydanticObjectId
from pydantic import Field


class Notification(Document):
    user_id: PydanticObjectId
    title: str
    message: str
    type: str  # booking, campaign, deposit, wallet, message
    is_read: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "notifications"
        indexes = [[("user_id", 1), ("created_at", -1)]]
