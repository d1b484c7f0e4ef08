"""Deposits: frozen rate at creation, one credit per approval."""

import asyncio
from decimal import Decimal

import httpx
import pytest

from skyline.core.exceptions import BadRequestError, ForbiddenError, NotFoundError
from skyline.models.deposit import Deposit
from skyline.models.ledger_entry import LedgerEntry
from skyline.models.setting import Setting
from skyline.services import deposits, ledger

from conftest import ledger_sum

pytestmark = pytest.mark.asyncio


async def _credits(user_id):
    return await LedgerEntry.find(LedgerEntry.user_id == user_id, LedgerEntry.reason == "deposit").to_list()


async def test_create_freezes_live_rate(make_user, prices_client):
    user = await make_user()
    d = await deposits.create_deposit(user.id, Decimal("50"), "BTC", http_client=prices_client)
    assert d.status == "pending"
    assert d.amount_cents == 5000
    assert d.rate_usd == Decimal("50000")
    assert d.rate_source == "live"
    assert d.crypto_amount_expected == Decimal("0.00100000")
    assert d.wallet_address == "BTC_WALLET_ADDRESS_NOT_SET"
    # Persisted values survive a reload
    stored = await Deposit.get(d.id)
    assert stored.crypto_amount_expected == Decimal("0.001")
    assert stored.rate_usd == Decimal("50000")
    # Creating a deposit never touches the balance
    assert await ledger.get_balance(user.id) == 0


async def test_create_uses_fallback_when_upstream_down(make_user):
    user = await make_user()
    async with httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(503))) as c:
        d = await deposits.create_deposit(user.id, Decimal("97"), "BTC", http_client=c)
    assert d.rate_usd == Decimal("97000")
    assert d.rate_source == "fallback"
    assert d.crypto_amount_expected == Decimal("0.00100000")


async def test_create_uses_configured_wallet(make_user, prices_client):
    await Setting(key="wallet_eth", value="0xabc").insert()
    user = await make_user()
    d = await deposits.create_deposit(user.id, Decimal("25"), "ETH", http_client=prices_client)
    assert d.wallet_address == "0xabc"
    assert d.crypto_amount_expected == Decimal("0.01000000")
    assert await deposits.get_wallet_addresses() == {"BTC": "", "ETH": "0xabc", "USDT": ""}


async def test_create_rejects_bad_input(make_user, prices_client):
    user = await make_user()
    with pytest.raises(BadRequestError):
        await deposits.create_deposit(user.id, Decimal("10"), "DOGE", http_client=prices_client)
    with pytest.raises(BadRequestError):
        await deposits.create_deposit(user.id, Decimal("0"), "BTC", http_client=prices_client)


async def test_approve_credits_once(make_user, admin, prices_client):
    user = await make_user()
    d = await deposits.create_deposit(user.id, Decimal("50"), "BTC", http_client=prices_client)
    approved = await deposits.set_deposit_status(d.id, "approved", admin, tx_hash="0xfeed")
    assert approved.status == "approved"
    assert approved.tx_hash == "0xfeed"
    assert await ledger.get_balance(user.id) == 5000

    again = await deposits.set_deposit_status(d.id, "approved", admin, tx_hash="0xother")
    assert again.status == "approved"
    assert again.tx_hash == "0xfeed"
    assert await ledger.get_balance(user.id) == 5000
    [credit] = await _credits(user.id)
    assert credit.idempotency_key == deposits.deposit_credit_key(d.id)


async def test_concurrent_approvals_credit_once(make_user, admin, prices_client):
    user = await make_user()
    d = await deposits.create_deposit(user.id, Decimal("50"), "USDT", http_client=prices_client)
    await asyncio.gather(
        deposits.set_deposit_status(d.id, "approved", admin),
        deposits.set_deposit_status(d.id, "approved", admin),
    )
    assert await ledger.get_balance(user.id) == 5000
    assert len(await _credits(user.id)) == 1
    assert await ledger_sum(user.id) == 5000


async def test_reject_leaves_balance(make_user, admin, prices_client):
    user = await make_user("5")
    d = await deposits.create_deposit(user.id, Decimal("50"), "BTC", http_client=prices_client)
    rejected = await deposits.set_deposit_status(d.id, "rejected", admin, tx_hash="0xignored")
    assert rejected.status == "rejected"
    assert rejected.tx_hash is None
    assert await ledger.get_balance(user.id) == 500
    # A later approval of a rejected deposit is ignored
    after = await deposits.set_deposit_status(d.id, "approved", admin)
    assert after.status == "rejected"
    assert await _credits(user.id) == []


async def test_approval_credits_usd_amount_not_current_price(make_user, admin):
    user = await make_user()

    def expensive(request):
        return httpx.Response(200, json={"bitcoin": {"usd": 100000}})

    async with httpx.AsyncClient(transport=httpx.MockTransport(expensive)) as c:
        d = await deposits.create_deposit(user.id, Decimal("50"), "BTC", http_client=c)
    assert d.crypto_amount_expected == Decimal("0.00050000")
    # Approval does not consult the price source at all
    await deposits.set_deposit_status(d.id, "approved", admin)
    assert await ledger.get_balance(user.id) == 5000
    stored = await Deposit.get(d.id)
    assert stored.rate_usd == Decimal("100000")


async def test_invalid_transition(make_user, admin, prices_client):
    user = await make_user()
    d = await deposits.create_deposit(user.id, Decimal("5"), "ETH", http_client=prices_client)
    with pytest.raises(BadRequestError):
        await deposits.set_deposit_status(d.id, "pending", admin)


async def test_deposit_update_event(make_user, admin, prices_client, notifier, connect):
    user = await make_user()
    d = await deposits.create_deposit(user.id, Decimal("5"), "ETH", http_client=prices_client)
    channel = connect(user.id)
    await deposits.set_deposit_status(d.id, "approved", admin, notifier=notifier)
    await notifier.flush()
    assert channel.sent == [{"type": "deposit_update", "payload": {"deposit_id": str(d.id), "status": "approved"}}]


async def test_get_deposit_access(make_user, admin, prices_client):
    owner = await make_user()
    stranger = await make_user()
    d = await deposits.create_deposit(owner.id, Decimal("5"), "ETH", http_client=prices_client)
    assert (await deposits.get_deposit(d.id, admin)).id == d.id
    with pytest.raises(ForbiddenError):
        await deposits.get_deposit(d.id, stranger)
    with pytest.raises(NotFoundError):
        await deposits.set_deposit_status(stranger.id, "approved", admin)
