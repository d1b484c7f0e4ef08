"""Crypto deposits: frozen-rate creation and exactly-once crediting on approval."""

from datetime import datetime
from decimal import Decimal

import httpx
from beanie import PydanticObjectId, UpdateResponse
from beanie.operators import Set
from motor.motor_asyncio import AsyncIOMotorClientSession

from skyline.core.audit import log_admin_action
from skyline.core.exceptions import BadRequestError, ForbiddenError, NotFoundError
from skyline.core.logging import get_logger
from skyline.core.money import crypto_amount, format_usd, to_cents
from skyline.db.transactions import run_in_transaction
from skyline.models.deposit import Deposit
from skyline.models.setting import Setting
from skyline.models.user import User
from skyline.realtime.events import ServerEvent
from skyline.realtime.notifier import EventNotifier
from skyline.services import ledger, prices
from skyline.services.notifications import notify

log = get_logger(__name__)

COINS = ("BTC", "ETH", "USDT")


def deposit_credit_key(deposit_id: PydanticObjectId) -> str:
    return f"deposit:{deposit_id}"


async def get_wallet_address(coin: str) -> str | None:
    setting = await Setting.find_one(Setting.key == f"wallet_{coin.lower()}")
    return setting.value if setting and setting.value else None


async def get_wallet_addresses() -> dict[str, str]:
    return {coin: (await get_wallet_address(coin)) or "" for coin in COINS}


async def create_deposit(
    user_id: PydanticObjectId,
    amount_usd: Decimal,
    coin: str,
    notifier: EventNotifier | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> Deposit:
    """
    Record a pending deposit. The asset's USD rate is looked up once here and
    frozen on the document; approval credits amount_usd and never re-prices.
    """
    if coin not in COINS:
        raise BadRequestError(f"Unsupported coin: {coin}")
    amount_cents = to_cents(amount_usd)
    if amount_cents <= 0:
        raise BadRequestError("Amount must be positive")
    user = await User.get(user_id)
    if not user:
        raise NotFoundError("User not found")

    rate, source = await prices.get_asset_price_usd(coin, client=http_client)
    expected = crypto_amount(amount_cents, rate)
    wallet_address = await get_wallet_address(coin) or f"{coin}_WALLET_ADDRESS_NOT_SET"

    deposit = Deposit(
        user_id=user_id,
        amount_cents=amount_cents,
        coin=coin,
        rate_usd=rate,
        rate_source=source,
        crypto_amount_expected=expected,
        wallet_address=wallet_address,
    )
    await deposit.insert()
    log.info(
        "deposit_created",
        deposit_id=str(deposit.id),
        user_id=str(user_id),
        amount=format_usd(amount_cents),
        coin=coin,
        rate=str(rate),
        rate_source=source,
    )
    await notify(
        user_id,
        "Deposit Initiated",
        f"Your deposit of ${format_usd(amount_cents)} via {coin} has been initiated.",
        "deposit",
        notifier=notifier,
    )
    return deposit


async def set_deposit_status(
    deposit_id: PydanticObjectId,
    new_status: str,
    admin: User,
    tx_hash: str | None = None,
    notifier: EventNotifier | None = None,
) -> Deposit:
    """
    Move a pending deposit to approved or rejected.

    A deposit that is no longer pending is returned unchanged: duplicate
    approvals are a no-op for the ledger and for the stored proof. The
    pending->approved claim, the tx_hash and the credit go in one unit.
    """
    if new_status not in ("approved", "rejected"):
        raise BadRequestError(f"Invalid deposit status: {new_status}")
    deposit = await Deposit.get(deposit_id)
    if not deposit:
        raise NotFoundError("Deposit not found")
    if deposit.status != "pending":
        log.info("deposit_transition_ignored", deposit_id=str(deposit_id), status=deposit.status, requested=new_status)
        return deposit

    async def _work(session: AsyncIOMotorClientSession | None) -> Deposit | None:
        updates = {Deposit.status: new_status, Deposit.updated_at: datetime.utcnow()}
        if new_status == "approved" and tx_hash:
            updates[Deposit.tx_hash] = tx_hash
        claimed = await Deposit.find_one(
            Deposit.id == deposit_id,
            Deposit.status == "pending",
            session=session,
        ).update(Set(updates), session=session, response_type=UpdateResponse.NEW_DOCUMENT)
        if claimed is None:
            return None
        if new_status == "approved":
            try:
                await ledger.adjust_balance(
                    claimed.user_id,
                    claimed.amount_cents,
                    "deposit",
                    reference_type="deposit",
                    reference_id=str(deposit_id),
                    idempotency_key=deposit_credit_key(deposit_id),
                    session=session,
                )
            except Exception:
                if session is None:
                    await _release_claim(deposit_id, new_status)
                raise
        return claimed

    updated = await run_in_transaction(_work, operation="set_deposit_status")
    if updated is None:
        # Lost the race to another admin; their transition stands
        current = await Deposit.get(deposit_id)
        if current is None:
            raise NotFoundError("Deposit not found")
        log.info("deposit_transition_ignored", deposit_id=str(deposit_id), status=current.status, requested=new_status)
        return current

    log.info(
        "deposit_approved" if new_status == "approved" else "deposit_rejected",
        deposit_id=str(deposit_id),
        user_id=str(updated.user_id),
        amount=format_usd(updated.amount_cents),
        admin_id=str(admin.id),
    )
    if new_status == "approved":
        message = f"Your deposit of ${format_usd(updated.amount_cents)} has been approved and credited."
    else:
        message = f"Your deposit has been {new_status}."
    await notify(
        updated.user_id,
        "Deposit Update",
        message,
        "deposit",
        notifier=notifier,
        event=ServerEvent(type="deposit_update", payload={"deposit_id": str(deposit_id), "status": new_status}),
    )
    await log_admin_action(
        str(admin.id),
        f"Updated deposit status to {new_status}",
        "deposit",
        str(deposit_id),
        {"tx_hash": tx_hash},
    )
    return updated


async def _release_claim(deposit_id: PydanticObjectId, claimed_status: str) -> None:
    await Deposit.find_one(Deposit.id == deposit_id, Deposit.status == claimed_status).update(
        Set({Deposit.status: "pending", Deposit.tx_hash: None, Deposit.updated_at: datetime.utcnow()})
    )


async def get_deposit(deposit_id: PydanticObjectId, user: User) -> Deposit:
    deposit = await Deposit.get(deposit_id)
    if not deposit:
        raise NotFoundError("Deposit not found")
    if deposit.user_id != user.id and not user.is_admin:
        raise ForbiddenError("Access denied")
    return deposit


async def list_deposits(user: User, limit: int = 50, offset: int = 0) -> list[Deposit]:
    """Own deposits, or every deposit for admins; newest first."""
    query = Deposit.find_all() if user.is_admin else Deposit.find(Deposit.user_id == user.id)
    return await query.sort(-Deposit.created_at).skip(offset).limit(limit).to_list()
