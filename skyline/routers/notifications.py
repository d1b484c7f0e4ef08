from fastapi import APIRouter, Depends, Query

from skyline.core.pagination import paginate
from skyline.deps import get_current_user, parse_object_id
from skyline.models.user import User
from skyline.services import notifications as notifications_service

router = APIRouter()


@router.get("")
async def notifications_list(
    user: User = Depends(get_current_user),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    limit, offset = paginate(limit, offset)
    items = await notifications_service.list_notifications(user.id, limit=limit, offset=offset)
    return {
        "notifications": [notifications_service.notification_payload(n) for n in items],
        "unread": await notifications_service.unread_count(user.id),
        "limit": limit,
        "offset": offset,
    }


@router.patch("/{notification_id}/read")
async def notification_read(notification_id: str, user: User = Depends(get_current_user)):
    await notifications_service.mark_read(parse_object_id(notification_id, "Notification"), user.id)
    return {"success": True}


@router.post("/read-all")
async def notifications_read_all(user: User = Depends(get_current_user)):
    updated = await notifications_service.mark_all_read(user.id)
    return {"success": True, "updated": updated}
