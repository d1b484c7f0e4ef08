from datetime import datetime
from typing import Literal

from beanie import Document, Indexed
from pydantic import Field


class User(Document):
    email: Indexed(str, unique=True)
    first_name: str = ""
    last_name: str = ""
    profile_image_url: str | None = None
    phone: str | None = None
    country: str | None = None
    # Only ever changed through services.ledger.adjust_balance
    balance_cents: int = 0
    role: Literal["user", "admin"] = "user"
    status: Literal["active", "suspended"] = "active"
    session_version: int = 0
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "users"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
