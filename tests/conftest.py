import asyncio
import os
import uuid
from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# In-memory Mongo has no replica set: run ledger units without transactions
os.environ.setdefault("MONGODB_DB_NAME", "skyline_test")
os.environ.setdefault("SECRET_KEY", "test-secret-key-min-32-characters-long")
os.environ["MONGODB_TRANSACTIONS"] = "false"

from mongomock_motor import AsyncMongoMockClient  # noqa: E402

TEST_PRICES = {"bitcoin": 50000, "ethereum": 2500, "tether": 1}


class FakeChannel:
    """Stands in for a WebSocket: records frames, fails every send, or never completes one."""

    def __init__(self, fail: bool = False, hang: bool = False):
        self.sent: list[dict] = []
        self.fail = fail
        self.hang = hang

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("socket closed")
        if self.hang:
            await asyncio.Event().wait()
        self.sent.append(data)

    def types(self) -> list[str]:
        return [frame["type"] for frame in self.sent]


async def ledger_sum(user_id) -> int:
    """Sum of every ledger delta for the user; must always equal the cached balance."""
    from skyline.models.ledger_entry import LedgerEntry
    entries = await LedgerEntry.find(LedgerEntry.user_id == user_id).to_list()
    return sum(e.amount_cents for e in entries)


def price_handler(request: httpx.Request) -> httpx.Response:
    coin_id = request.url.params.get("ids")
    if coin_id not in TEST_PRICES:
        return httpx.Response(404, json={"error": "unknown coin"})
    return httpx.Response(200, json={coin_id: {"usd": TEST_PRICES[coin_id]}})


@pytest_asyncio.fixture
async def db():
    from skyline.db.init import init_db
    client = await init_db(AsyncMongoMockClient())
    yield client


@pytest_asyncio.fixture
async def notifier():
    from skyline.realtime.notifier import EventNotifier
    n = EventNotifier(token_ttl_seconds=60, sweep_interval_seconds=0, send_timeout_seconds=0.05)
    yield n
    await n.stop()


@pytest.fixture
def connect(notifier):
    """Register a FakeChannel for user through the token handshake."""
    def _connect(user_id, fail: bool = False, hang: bool = False) -> FakeChannel:
        channel = FakeChannel(fail=fail, hang=hang)
        token = notifier.issue_token(str(user_id))
        assert notifier.authenticate(token, channel) == str(user_id)
        return channel
    return _connect


@pytest_asyncio.fixture
async def prices_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(price_handler)) as c:
        yield c


@pytest_asyncio.fixture
async def make_user(db):
    from skyline.core.money import to_cents
    from skyline.models.user import User
    from skyline.services import ledger

    async def _make(balance_usd: str = "0", role: str = "user", email: str | None = None) -> User:
        user = User(
            email=email or f"{uuid.uuid4().hex[:10]}@example.com",
            first_name="Test",
            last_name="User",
            role=role,
        )
        await user.insert()
        cents = to_cents(balance_usd)
        if cents:
            await ledger.adjust_balance(
                user.id,
                cents,
                "admin_adjustment",
                reference_type="admin",
                idempotency_key=f"seed:{user.id}",
            )
            user = await User.get(user.id)
        return user
    return _make


@pytest_asyncio.fixture
async def admin(make_user):
    return await make_user(role="admin")


@pytest_asyncio.fixture
async def make_celebrity(db):
    from skyline.core.money import to_cents
    from skyline.models.celebrity import Celebrity

    async def _make(price_usd: str = "100", name: str = "Jane Star"):
        celebrity = Celebrity(name=name, price_cents=to_cents(price_usd), category="music")
        await celebrity.insert()
        return celebrity
    return _make


@pytest.fixture
def auth_headers():
    from skyline.core.security import create_session_cookie
    from skyline.deps import SESSION_COOKIE_NAME
    from skyline.services.users import session_payload_for_user

    def _headers(user) -> dict[str, str]:
        cookie = create_session_cookie(session_payload_for_user(user))
        return {"Cookie": f"{SESSION_COOKIE_NAME}={cookie}"}
    return _headers


@pytest_asyncio.fixture
async def client(db, prices_client) -> AsyncGenerator[AsyncClient, None]:
    from skyline.main import app
    app.state.http_client = prices_client
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.state.http_client = None
