"""Wallet ledger: atomic per-user balance adjustments with an entry per mutation."""

from datetime import datetime

from beanie import PydanticObjectId, UpdateResponse
from beanie.operators import Inc, Set
from motor.motor_asyncio import AsyncIOMotorClientSession
from pymongo.errors import DuplicateKeyError

from skyline.core.exceptions import BadRequestError, InsufficientBalanceError, NotFoundError
from skyline.core.logging import get_logger
from skyline.core.money import format_usd
from skyline.models.ledger_entry import LedgerEntry
from skyline.models.user import User

log = get_logger(__name__)

REASONS = ("booking", "booking_refund", "deposit", "admin_adjustment")


async def get_balance(user_id: PydanticObjectId, session: AsyncIOMotorClientSession | None = None) -> int:
    """Return current balance in cents."""
    user = await User.get(user_id, session=session)
    if not user:
        raise NotFoundError("User not found")
    return user.balance_cents


async def find_entry(
    idempotency_key: str,
    session: AsyncIOMotorClientSession | None = None,
) -> LedgerEntry | None:
    return await LedgerEntry.find_one(LedgerEntry.idempotency_key == idempotency_key, session=session)


async def adjust_balance(
    user_id: PydanticObjectId,
    delta_cents: int,
    reason: str,
    reference_type: str | None = None,
    reference_id: str | None = None,
    idempotency_key: str | None = None,
    floor_cents: int | None = None,
    session: AsyncIOMotorClientSession | None = None,
) -> tuple[LedgerEntry, int]:
    """
    Atomically apply delta_cents to the user's balance and append a ledger entry.
    Returns (ledger_entry, balance_after_cents).

    The balance change is one conditional $inc on the user document, so
    concurrent adjustments for a user serialize on that document and never
    lose updates. With floor_cents set, a debit that would take the balance
    below the floor matches nothing and raises InsufficientBalanceError.
    Idempotency: an existing entry with the same idempotency_key is returned
    and nothing is applied again. Two concurrent calls with one key both pass
    the lookup; the unique index rejects the second entry and its $inc is
    taken back (or its transaction aborted and re-run).
    """
    if reason not in REASONS:
        raise BadRequestError(f"Invalid reason: {reason}")
    if idempotency_key:
        existing = await find_entry(idempotency_key, session=session)
        if existing:
            return existing, await get_balance(user_id, session=session)

    conditions = [User.id == user_id]
    if floor_cents is not None and delta_cents < 0:
        conditions.append(User.balance_cents >= floor_cents - delta_cents)
    user = await User.find_one(*conditions, session=session).update(
        Inc({User.balance_cents: delta_cents}),
        Set({User.updated_at: datetime.utcnow()}),
        session=session,
        response_type=UpdateResponse.NEW_DOCUMENT,
    )
    if user is None:
        current = await User.get(user_id, session=session)
        if current is None:
            raise NotFoundError("User not found")
        log.info(
            "ledger_insufficient_balance",
            user_id=str(user_id),
            balance=format_usd(current.balance_cents),
            requested=format_usd(-delta_cents),
        )
        raise InsufficientBalanceError(
            details={
                "balance": format_usd(current.balance_cents),
                "required": format_usd(-delta_cents),
            }
        )

    entry = LedgerEntry(
        user_id=user_id,
        amount_cents=delta_cents,
        balance_after_cents=user.balance_cents,
        reason=reason,
        reference_type=reference_type,
        reference_id=reference_id,
        idempotency_key=idempotency_key,
    )
    try:
        await entry.insert(session=session)
    except DuplicateKeyError:
        if session is not None:
            # Aborts the transaction; run_in_transaction re-runs the unit and the
            # idempotency lookup then finds the committed entry
            raise
        return await _revert_duplicate(user_id, delta_cents, idempotency_key)
    log.info(
        "ledger_adjusted",
        user_id=str(user_id),
        amount=format_usd(delta_cents),
        balance_after=format_usd(user.balance_cents),
        reason=reason,
        reference_id=reference_id,
    )
    return entry, user.balance_cents


async def _revert_duplicate(
    user_id: PydanticObjectId,
    delta_cents: int,
    idempotency_key: str,
) -> tuple[LedgerEntry, int]:
    """
    A concurrent call with the same key inserted its entry first. Take back
    this call's $inc and answer with the winner's entry.
    """
    user = await User.find_one(User.id == user_id).update(
        Inc({User.balance_cents: -delta_cents}),
        Set({User.updated_at: datetime.utcnow()}),
        response_type=UpdateResponse.NEW_DOCUMENT,
    )
    log.warning(
        "ledger_duplicate_reverted",
        user_id=str(user_id),
        amount=format_usd(delta_cents),
        idempotency_key=idempotency_key,
    )
    existing = await find_entry(idempotency_key)
    return existing, user.balance_cents


async def list_entries(user_id: PydanticObjectId, limit: int, offset: int) -> list[LedgerEntry]:
    """Ledger entries for a user, newest first."""
    return (
        await LedgerEntry.find(LedgerEntry.user_id == user_id)
        .sort(-LedgerEntry.created_at)
        .skip(offset)
        .limit(limit)
        .to_list()
    )
