import certifi
from beanie import init_beanie
from motor.motor_asyncio import AsyncIOMotorClient

from skyline.core.config import get_settings
from skyline.models.audit_log import AuditLog
from skyline.models.booking import Booking
from skyline.models.campaign import Campaign
from skyline.models.celebrity import Celebrity
from skyline.models.deposit import Deposit
from skyline.models.ledger_entry import LedgerEntry
from skyline.models.message import Message
from skyline.models.notification import Notification
from skyline.models.setting import Setting
from skyline.models.user import User

DOCUMENT_MODELS = [
    User,
    Celebrity,
    Booking,
    Deposit,
    LedgerEntry,
    Notification,
    Campaign,
    Message,
    AuditLog,
    Setting,
]

_client: AsyncIOMotorClient | None = None


def _use_tls(uri: str) -> bool:
    """True if URI uses TLS (Atlas or explicit tls=true). Avoids TLS for plain mongodb:// in CI."""
    return "mongodb+srv://" in uri or "tls=true" in uri.lower()


async def init_db(client: AsyncIOMotorClient | None = None) -> AsyncIOMotorClient:
    """Bind Beanie to the configured database. Tests pass an in-memory client."""
    global _client
    settings = get_settings()
    if client is None:
        # Atlas in Docker: tlsCAFile + tlsDisableOCSPEndpointCheck avoid TLSV1_ALERT_INTERNAL_ERROR
        kwargs = {}
        if _use_tls(settings.mongodb_uri):
            kwargs["tlsCAFile"] = certifi.where()
            kwargs["tlsDisableOCSPEndpointCheck"] = True
        client = AsyncIOMotorClient(settings.mongodb_uri, **kwargs)
    database = client[settings.mongodb_db_name]
    await init_beanie(database=database, document_models=DOCUMENT_MODELS)
    _client = client
    return client


def get_client() -> AsyncIOMotorClient:
    if _client is None:
        raise RuntimeError("Database not initialised; call init_db() first")
    return _client


def close_db() -> None:
    global _client
    if _client is not None:
        _client.close()
        _client = None
