import httpx
from fastapi import APIRouter, Depends, Query

from skyline.core.money import format_usd
from skyline.core.pagination import page, paginate
from skyline.deps import get_current_user, get_http_client
from skyline.models.user import User
from skyline.services import deposits as deposits_service
from skyline.services import ledger
from skyline.services import prices as prices_service

router = APIRouter()


@router.get("/wallet/balance")
async def wallet_balance(user: User = Depends(get_current_user)):
    """Return current wallet balance in USD."""
    balance = await ledger.get_balance(user.id)
    return {"balance_usd": format_usd(balance)}


@router.get("/wallet/ledger")
async def wallet_ledger(
    user: User = Depends(get_current_user),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    """Return ledger entries for current user (newest first)."""
    limit, offset = paginate(limit, offset)
    entries = await ledger.list_entries(user.id, limit=limit, offset=offset)
    out = [
        {
            "id": str(e.id),
            "amount_usd": format_usd(e.amount_cents),
            "balance_after_usd": format_usd(e.balance_after_cents),
            "reason": e.reason,
            "reference_type": e.reference_type,
            "reference_id": e.reference_id,
            "created_at": e.created_at.isoformat(),
        }
        for e in entries
    ]
    return page("entries", out, limit, offset)


@router.get("/crypto/prices")
async def crypto_prices(http_client: httpx.AsyncClient = Depends(get_http_client)):
    """USD price per asset; static fallback values when the price API is down."""
    prices = await prices_service.get_all_prices(client=http_client)
    return {symbol: str(price) for symbol, price in prices.items()}


@router.get("/settings/wallets")
async def deposit_wallets():
    """Deposit addresses per asset (empty string when not configured)."""
    return await deposits_service.get_wallet_addresses()
