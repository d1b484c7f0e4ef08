from datetime import datetime

from beanie import PydanticObjectId, UpdateResponse
from beanie.operators import Set

from skyline.core.exceptions import NotFoundError
from skyline.core.logging import get_logger
from skyline.core.money import format_usd
from skyline.models.user import User

log = get_logger(__name__)


def user_public(user: User) -> dict:
    return {
        "id": str(user.id),
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "profile_image_url": user.profile_image_url,
        "phone": user.phone,
        "country": user.country,
        "balance": format_usd(user.balance_cents),
        "role": user.role,
        "status": user.status,
        "created_at": user.created_at.isoformat(),
    }


async def update_profile(user_id: PydanticObjectId, phone: str | None, country: str | None) -> User:
    """Self-service profile edit: contact fields only, written with a targeted $set."""
    user = await User.find_one(User.id == user_id).update(
        Set({User.phone: phone, User.country: country, User.updated_at: datetime.utcnow()}),
        response_type=UpdateResponse.NEW_DOCUMENT,
    )
    if not user:
        raise NotFoundError("User not found")
    log.info("profile_updated", user_id=str(user.id))
    return user


def session_payload_for_user(user: User) -> dict:
    return {"user_id": str(user.id), "session_version": user.session_version}
