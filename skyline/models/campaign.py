from datetime import datetime
from typing import Literal

from beanie import Document, PydanticObjectId
from pydantic import Field

CampaignStatus = Literal["pending", "negotiating", "approved", "rejected", "completed"]


class Campaign(Document):
    user_id: PydanticObjectId
    celebrity_id: PydanticObjectId
    campaign_type: str
    description: str | None = None
    custom_price_cents: int | None = None  # set by an admin while negotiating
    status: CampaignStatus = "pending"
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "campaigns"
        indexes = [[("user_id", 1), ("created_at", -1)]]
