from datetime import datetime

from beanie import Document
from pydantic import Field


class Celebrity(Document):
    """A bookable offering; price_cents is the current catalog price."""
    name: str
    price_cents: int
    category: str
    image_url: str | None = None
    bio: str | None = None
    status: str = "active"
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "celebrities"
