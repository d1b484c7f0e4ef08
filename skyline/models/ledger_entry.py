from datetime import datetime
from typing import Literal

import pymongo
from beanie import Document, PydanticObjectId
from pydantic import Field
from pymongo import IndexModel

LedgerReason = Literal["booking", "booking_refund", "deposit", "admin_adjustment"]


class LedgerEntry(Document):
    user_id: PydanticObjectId
    amount_cents: int  # positive = credit, negative = debit
    balance_after_cents: int
    reason: LedgerReason
    reference_type: str | None = None  # booking, deposit, admin
    reference_id: str | None = None
    idempotency_key: str | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "wallet_ledger"
        # Unset fields are left out of the document so keyless entries stay
        # outside the sparse unique index below
        keep_nulls = False
        indexes = [
            [("user_id", 1), ("created_at", -1)],
            IndexModel(
                [("idempotency_key", pymongo.ASCENDING)],
                name="idempotency_key_unique",
                unique=True,
                sparse=True,
            ),
        ]
