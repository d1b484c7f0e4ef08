"""Wire contracts for the /ws channel."""

from typing import Any, Literal

from pydantic import BaseModel, Field

EventType = Literal[
    "notification",
    "booking_update",
    "deposit_update",
    "campaign_update",
    "new_message",
]


class AuthMessage(BaseModel):
    """The only client-to-server frame: bind this connection to a user."""
    type: Literal["auth"]
    token: str = Field(min_length=1, max_length=256)


class AuthResult(BaseModel):
    type: Literal["auth_success", "auth_error"]
    message: str | None = None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


AUTH_SUCCESS = AuthResult(type="auth_success")
AUTH_ERROR = AuthResult(type="auth_error", message="Invalid or expired token")


class ServerEvent(BaseModel):
    type: EventType
    payload: dict[str, Any] = Field(default_factory=dict)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json")
