from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from skyline.deps import get_current_user
from skyline.models.user import User
from skyline.services import users as user_service

router = APIRouter()


class ProfileUpdate(BaseModel):
    phone: str | None = Field(default=None, max_length=50)
    country: str | None = Field(default=None, max_length=100)


@router.get("")
async def profile_get(user: User = Depends(get_current_user)):
    return user_service.user_public(user)


@router.patch("")
async def profile_update(body: ProfileUpdate, user: User = Depends(get_current_user)):
    updated = await user_service.update_profile(user.id, body.phone, body.country)
    return user_service.user_public(updated)
