from decimal import Decimal
from functools import lru_cache
from typing import Any, List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_CORS = ["http://localhost:3000", "http://localhost:5173"]


def _parse_cors_origins(v: Any) -> List[str]:
    try:
        if v is None or v == "":
            return _DEFAULT_CORS.copy()
        if isinstance(v, list):
            return [x for x in v if isinstance(x, str) and x.strip()]
        s = str(v).strip()
        if not s:
            return _DEFAULT_CORS.copy()
        if s.startswith("["):
            import json
            out = json.loads(s)
            return [x for x in out if isinstance(x, str) and x.strip()] or _DEFAULT_CORS.copy()
        return [x.strip() for x in s.split(",") if x.strip()] or _DEFAULT_CORS.copy()
    except ValueError:
        return _DEFAULT_CORS.copy()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    env: str = Field(default="development", description="ENV")
    debug: bool = Field(default=False, description="DEBUG")
    secret_key: str = Field(default="change-me-in-production-min-32-chars")

    # MongoDB
    mongodb_uri: str = Field(default="mongodb://localhost:27017", alias="MONGODB_URI")
    mongodb_db_name: str = Field(default="skyline", alias="MONGODB_DB_NAME")
    # Multi-document transactions need a replica set; without them ledger writes are compensated
    mongodb_transactions: bool = Field(default=True, alias="MONGODB_TRANSACTIONS")

    # Sentry
    sentry_dsn: str | None = Field(default=None, alias="SENTRY_DSN")

    # CORS: env as string, exposed as list
    cors_origins_raw: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        alias="CORS_ORIGINS",
        description="Comma-separated or JSON list",
    )

    @property
    def cors_origins(self) -> List[str]:
        return _parse_cors_origins(getattr(self, "cors_origins_raw", None))

    # Price source (CoinGecko)
    coingecko_base_url: str = Field(default="https://api.coingecko.com/api/v3", alias="COINGECKO_BASE_URL")
    price_timeout_seconds: float = Field(default=5.0, alias="PRICE_TIMEOUT_SECONDS")
    fallback_prices_usd: dict[str, Decimal] = Field(
        default_factory=lambda: {"BTC": Decimal("97000"), "ETH": Decimal("3400"), "USDT": Decimal("1")},
        alias="FALLBACK_PRICES_USD",
    )

    # Real-time channel
    ws_token_ttl_seconds: int = Field(default=60, alias="WS_TOKEN_TTL_SECONDS")
    ws_token_sweep_seconds: int = Field(default=30, alias="WS_TOKEN_SWEEP_SECONDS")
    ws_send_timeout_seconds: float = Field(default=5.0, alias="WS_SEND_TIMEOUT_SECONDS")
    ws_outbox_size: int = Field(default=100, alias="WS_OUTBOX_SIZE")

    # Ledger
    ledger_max_retries: int = Field(default=3, alias="LEDGER_MAX_RETRIES")


@lru_cache
def get_settings() -> Settings:
    return Settings()
