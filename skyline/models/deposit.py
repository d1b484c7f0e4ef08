from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal

from beanie import Document, PydanticObjectId
from bson import Decimal128
from pydantic import BeforeValidator, Field

DepositStatus = Literal["pending", "approved", "rejected"]
Coin = Literal["BTC", "ETH", "USDT"]


def _from_decimal128(value):
    if isinstance(value, Decimal128):
        return value.to_decimal()
    return value


# Beanie encodes Decimal as Decimal128; decode it back on load
BsonDecimal = Annotated[Decimal, BeforeValidator(_from_decimal128)]


class Deposit(Document):
    user_id: PydanticObjectId
    amount_cents: int
    coin: Coin
    rate_usd: BsonDecimal  # frozen at creation, never re-queried
    rate_source: Literal["live", "fallback"] = "live"
    crypto_amount_expected: BsonDecimal
    wallet_address: str | None = None
    tx_hash: str | None = None
    status: DepositStatus = "pending"
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "deposits"
        indexes = [
            [("user_id", 1), ("created_at", -1)],
            [("status", 1)],
        ]
