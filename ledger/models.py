from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict


class EntryType(str, Enum):
    CREDIT = "CREDIT"
    DEBIT = "DEBIT"


class Account(str, Enum):
    BALANCE = "balance"
    REFERRAL_EARNINGS = "referral_earnings"


class EntryCause(str, Enum):
    REDEMPTION_APPROVED = "redemption_approved"
    WITHDRAWAL_RESERVED = "withdrawal_reserved"
    WITHDRAWAL_REFUNDED = "withdrawal_refunded"
    REFERRAL_BONUS = "referral_bonus"


class LedgerEntry(BaseModel):
    id: UUID
    user_id: UUID
    account: Account = Account.BALANCE
    entry_type: EntryType
    amount: Decimal = Field(..., description="Signed: positive for credits, negative for debits")
    currency: str = "USD"
    balance_after: Decimal
    cause: EntryCause
    reference_id: Optional[UUID] = None
    idempotency_key: Optional[str] = None
    description: str
    created_at: datetime
    metadata: dict = Field(default_factory=dict)

    model_config = ConfigDict(from_attributes=True)


class UserBalance(BaseModel):
    user_id: UUID
    currency: str
    current_balance: Decimal
    referral_earnings: Decimal
    total_entries: int
    last_transaction_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class LedgerHistoryResponse(BaseModel):
    user_id: UUID
    entries: list[LedgerEntry]
    total_count: int
    current_balance: Decimal


class ReplayResult(BaseModel):
    user_id: UUID
    account: Account
    cached_balance: Decimal
    replayed_balance: Decimal
    entry_count: int

    @property
    def consistent(self) -> bool:
        return self.cached_balance == self.replayed_balance
