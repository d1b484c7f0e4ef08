from decimal import Decimal
from typing import Literal

from fastapi import APIRouter, Depends, Header, Query
from pydantic import BaseModel, Field

from skyline.core.audit import list_admin_actions
from skyline.core.pagination import page, paginate
from skyline.deps import get_notifier, parse_object_id, require_admin
from skyline.models.user import User
from skyline.realtime.notifier import EventNotifier
from skyline.services import admin as admin_service
from skyline.services.users import user_public

router = APIRouter()


class UserUpdate(BaseModel):
    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    phone: str | None = Field(default=None, max_length=50)
    country: str | None = Field(default=None, max_length=100)
    role: Literal["user", "admin"] | None = None
    status: Literal["active", "suspended"] | None = None


class BalanceAdjustment(BaseModel):
    amount_usd: Decimal = Field(max_digits=12, decimal_places=2)


@router.get("/users")
async def admin_users(
    admin: User = Depends(require_admin),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    limit, offset = paginate(limit, offset)
    users = await admin_service.list_users(limit=limit, offset=offset)
    return page("users", map(user_public, users), limit, offset)


@router.patch("/users/{user_id}")
async def admin_user_update(user_id: str, body: UserUpdate, admin: User = Depends(require_admin)):
    user = await admin_service.update_user(
        parse_object_id(user_id, "User"),
        admin,
        body.model_dump(exclude_unset=True),
    )
    return user_public(user)


@router.patch("/users/{user_id}/balance")
async def admin_user_balance(
    user_id: str,
    body: BalanceAdjustment,
    admin: User = Depends(require_admin),
    notifier: EventNotifier = Depends(get_notifier),
    idempotency_key: str | None = Header(None, alias="Idempotency-Key"),
):
    """Admin: credit (positive) or debit (negative) a wallet. Optional Idempotency-Key."""
    user = await admin_service.adjust_user_balance(
        parse_object_id(user_id, "User"),
        body.amount_usd,
        admin,
        notifier=notifier,
        idempotency_key=idempotency_key,
    )
    return user_public(user)


@router.get("/logs")
async def admin_logs(
    admin: User = Depends(require_admin),
    limit: int = Query(100, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    limit, offset = paginate(limit, offset)
    logs = await list_admin_actions(limit, offset)
    return {
        "logs": [
            {
                "id": str(entry.id),
                "admin_id": entry.admin_id,
                "action": entry.action,
                "entity_type": entry.entity_type,
                "entity_id": entry.entity_id,
                "metadata": entry.metadata,
                "created_at": entry.created_at.isoformat(),
            }
            for entry in logs
        ],
        "limit": limit,
        "offset": offset,
    }


@router.get("/stats")
async def admin_stats(admin: User = Depends(require_admin)):
    return await admin_service.dashboard_stats()
