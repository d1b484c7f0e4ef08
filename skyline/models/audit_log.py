from datetime import datetime
from typing import Any

from beanie import Document
from pydantic import Field


class AuditLog(Document):
    """Admin action log."""
    admin_id: str
    action: str
    entity_type: str
    entity_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "admin_logs"
        indexes = [
            [("created_at", -1)],
            [("entity_type", 1), ("entity_id", 1)],
        ]
