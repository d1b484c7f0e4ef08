"""Unit-of-work helper for ledger-affecting operations."""

from typing import Awaitable, Callable, TypeVar

from motor.motor_asyncio import AsyncIOMotorClientSession
from pymongo.errors import DuplicateKeyError, PyMongoError

from skyline.core.config import get_settings
from skyline.core.exceptions import TransientLockConflictError
from skyline.core.logging import get_logger
from skyline.db.init import get_client

log = get_logger(__name__)

T = TypeVar("T")

Work = Callable[[AsyncIOMotorClientSession | None], Awaitable[T]]


def transactions_enabled() -> bool:
    return get_settings().mongodb_transactions


async def run_in_transaction(work: Work, *, operation: str) -> T:
    """
    Run work(session) inside a MongoDB transaction, retrying write conflicts.

    A concurrent transaction touching the same user document aborts with a
    TransientTransactionError, and a ledger entry racing a committed one with
    the same idempotency key hits the unique index; the whole unit is retried up to
    LEDGER_MAX_RETRIES times, then TransientLockConflictError is raised.
    Any other exception aborts the transaction and propagates unchanged.
    With transactions disabled, work runs once with session=None and callers
    are responsible for compensating partial writes.
    """
    if not transactions_enabled():
        return await work(None)
    attempts = max(1, get_settings().ledger_max_retries)
    client = get_client()
    for attempt in range(1, attempts + 1):
        async with await client.start_session() as session:
            try:
                async with session.start_transaction():
                    return await work(session)
            except PyMongoError as e:
                if not _retryable(e):
                    raise
                log.warning("transaction_conflict", operation=operation, attempt=attempt, max_attempts=attempts)
    raise TransientLockConflictError(details={"operation": operation, "attempts": attempts})


def _retryable(e: PyMongoError) -> bool:
    # A re-run of the unit sees the committed entry through the idempotency lookup
    return e.has_error_label("TransientTransactionError") or isinstance(e, DuplicateKeyError)
