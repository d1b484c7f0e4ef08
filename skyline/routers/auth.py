from fastapi import APIRouter, Depends

from skyline.deps import get_current_user, get_notifier
from skyline.models.user import User
from skyline.realtime.notifier import EventNotifier
from skyline.services.users import user_public

router = APIRouter()


@router.get("/me")
async def auth_me(user: User = Depends(get_current_user)):
    """Return current user. Requires session cookie."""
    return user_public(user)


@router.get("/ws-token")
async def auth_ws_token(
    user: User = Depends(get_current_user),
    notifier: EventNotifier = Depends(get_notifier),
):
    """Mint a single-use token for the /ws auth handshake."""
    token = notifier.issue_token(str(user.id))
    return {"token": token, "expires_in": notifier.token_ttl_seconds}
