from datetime import datetime
from typing import Literal

from beanie import Document, PydanticObjectId
from pydantic import Field

BookingStatus = Literal["pending", "confirmed", "completed", "cancelled"]


class Booking(Document):
    user_id: PydanticObjectId
    celebrity_id: PydanticObjectId
    price_cents: int  # snapshot of the celebrity price when booked
    status: BookingStatus = "pending"
    event_date: datetime | None = None
    event_details: str | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "bookings"
        indexes = [
            [("user_id", 1), ("created_at", -1)],
            [("status", 1)],
        ]
