from decimal import Decimal
from typing import Literal

import httpx
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from skyline.core.money import format_usd
from skyline.core.pagination import page, paginate
from skyline.deps import get_current_user, get_http_client, get_notifier, parse_object_id, require_admin
from skyline.models.deposit import Deposit
from skyline.models.user import User
from skyline.realtime.notifier import EventNotifier
from skyline.services import deposits as deposits_service

router = APIRouter()


class DepositCreate(BaseModel):
    amount_usd: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    coin: Literal["BTC", "ETH", "USDT"]


class DepositStatusUpdate(BaseModel):
    status: Literal["approved", "rejected"]
    tx_hash: str | None = Field(default=None, max_length=500)


def deposit_out(d: Deposit) -> dict:
    return {
        "id": str(d.id),
        "user_id": str(d.user_id),
        "amount_usd": format_usd(d.amount_cents),
        "coin": d.coin,
        "rate_usd": str(d.rate_usd),
        "rate_source": d.rate_source,
        "crypto_amount_expected": f"{d.crypto_amount_expected:.8f}",
        "wallet_address": d.wallet_address,
        "tx_hash": d.tx_hash,
        "status": d.status,
        "created_at": d.created_at.isoformat(),
    }


@router.get("")
async def deposits_list(
    user: User = Depends(get_current_user),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    """Own deposits (all deposits for admins), newest first."""
    limit, offset = paginate(limit, offset)
    items = await deposits_service.list_deposits(user, limit=limit, offset=offset)
    return page("deposits", map(deposit_out, items), limit, offset)


@router.post("", status_code=201)
async def deposit_create(
    body: DepositCreate,
    user: User = Depends(get_current_user),
    notifier: EventNotifier = Depends(get_notifier),
    http_client: httpx.AsyncClient = Depends(get_http_client),
):
    """Start a deposit; the crypto amount to send is fixed at the current rate."""
    deposit = await deposits_service.create_deposit(
        user.id,
        body.amount_usd,
        body.coin,
        notifier=notifier,
        http_client=http_client,
    )
    return deposit_out(deposit)


@router.get("/{deposit_id}")
async def deposit_get(deposit_id: str, user: User = Depends(get_current_user)):
    deposit = await deposits_service.get_deposit(parse_object_id(deposit_id, "Deposit"), user)
    return deposit_out(deposit)


@router.patch("/{deposit_id}/status")
async def deposit_status_update(
    deposit_id: str,
    body: DepositStatusUpdate,
    admin: User = Depends(require_admin),
    notifier: EventNotifier = Depends(get_notifier),
):
    """Admin: approve (credits the wallet once) or reject a pending deposit."""
    deposit = await deposits_service.set_deposit_status(
        parse_object_id(deposit_id, "Deposit"),
        body.status,
        admin,
        tx_hash=body.tx_hash,
        notifier=notifier,
    )
    return deposit_out(deposit)
