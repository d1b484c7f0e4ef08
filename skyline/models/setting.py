from datetime import datetime

from beanie import Document, Indexed
from pydantic import Field


class Setting(Document):
    key: Indexed(str, unique=True)  # e.g. wallet_btc
    value: str
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "settings"
