"""Shared FastAPI dependencies."""

import httpx
from beanie import PydanticObjectId
from bson.errors import InvalidId
from fastapi import Request

from skyline.core.exceptions import ForbiddenError, NotFoundError, UnauthorizedError
from skyline.core.logging import bind_user_id
from skyline.core.security import load_session_cookie
from skyline.models.user import User
from skyline.realtime.notifier import EventNotifier

SESSION_COOKIE_NAME = "skyline_session"


async def get_current_user(request: Request) -> User:
    """Dependency: load session from cookie and return User."""
    cookie = request.cookies.get(SESSION_COOKIE_NAME)
    if not cookie:
        raise UnauthorizedError("Not authenticated")
    payload = load_session_cookie(cookie)
    if not payload:
        raise UnauthorizedError("Invalid or expired session")
    user_id = payload.get("user_id")
    if not user_id:
        raise UnauthorizedError("Invalid session")
    try:
        user = await User.get(PydanticObjectId(user_id))
    except InvalidId:
        raise UnauthorizedError("Invalid session")
    if not user:
        raise UnauthorizedError("User not found")
    if payload.get("session_version") != user.session_version:
        raise UnauthorizedError("Session invalidated")
    if user.status != "active":
        raise ForbiddenError("Account suspended")
    bind_user_id(str(user.id))
    return user


async def require_admin(request: Request) -> User:
    """Dependency: require current user to have role admin."""
    user = await get_current_user(request)
    if user.role != "admin":
        raise ForbiddenError("Admin only")
    return user


def get_notifier(request: Request) -> EventNotifier:
    return request.app.state.notifier


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


def parse_object_id(value: str, entity: str = "Resource") -> PydanticObjectId:
    """Path ids that are not ObjectIds cannot exist: report them as not found."""
    try:
        return PydanticObjectId(value)
    except (InvalidId, TypeError):
        raise NotFoundError(f"{entity} not found")
