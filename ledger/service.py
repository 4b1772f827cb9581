from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional
from uuid import UUID, uuid4

import structlog

from core.errors import (
    InsufficientFundsError,
    InvalidAmountError,
    LedgerIntegrityError,
    NotFoundError,
)
from core.storage import InMemoryStorage

from .models import (
    Account,
    EntryCause,
    EntryType,
    LedgerEntry,
    LedgerHistoryResponse,
    ReplayResult,
    UserBalance,
)

logger = structlog.get_logger()

ACCOUNT_FIELDS = {
    Account.BALANCE: "balance",
    Account.REFERRAL_EARNINGS: "referral_earnings",
}


class LedgerService:
    """Credit and debit are the only legal way to move a user's money.

    Every movement appends an immutable entry and updates the cached
    scalar on the user record inside the same storage lock.
    """

    def __init__(self, storage: Optional[InMemoryStorage] = None, currency: str = "USD"):
        self.storage = storage or InMemoryStorage()
        self.currency = currency

    @staticmethod
    def verify_amount(amount: Any) -> Decimal:
        try:
            value = Decimal(str(amount))
        except (ValueError, InvalidOperation):
            raise InvalidAmountError("Amount must be a number.") from None

        if not value.is_finite() or value <= 0:
            raise InvalidAmountError("Amount must be positive.")
        return value

    def credit(
        self,
        user_id: UUID,
        amount: Any,
        cause: EntryCause,
        reference_id: Optional[UUID] = None,
        idempotency_key: Optional[str] = None,
        account: Account = Account.BALANCE,
        description: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> LedgerEntry:
        return self._post(
            user_id, self.verify_amount(amount), EntryType.CREDIT, cause,
            reference_id, idempotency_key, account, description, metadata,
        )

    def debit(
        self,
        user_id: UUID,
        amount: Any,
        cause: EntryCause,
        reference_id: Optional[UUID] = None,
        idempotency_key: Optional[str] = None,
        description: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> LedgerEntry:
        return self._post(
            user_id, self.verify_amount(amount), EntryType.DEBIT, cause,
            reference_id, idempotency_key, Account.BALANCE, description, metadata,
        )

    def get_balance(self, user_id: UUID) -> UserBalance:
        with self.storage.atomic():
            user = self.storage.users.get(user_id)
            if user is None:
                raise NotFoundError(f"User {user_id} not found")
            entries = [e for e in self.storage.ledger_entries.values() if e["user_id"] == user_id]
            last_entry = max(entries, key=lambda e: e["created_at"]) if entries else None

            return UserBalance(
                user_id=user_id,
                currency=self.currency,
                current_balance=user["balance"],
                referral_earnings=user["referral_earnings"],
                total_entries=len(entries),
                last_transaction_at=last_entry["created_at"] if last_entry else None,
            )

    def get_ledger_history(
        self,
        user_id: UUID,
        limit: int = 50,
        offset: int = 0,
        account: Optional[Account] = None,
    ) -> LedgerHistoryResponse:
        balance = self.get_balance(user_id)
        with self.storage.atomic():
            all_entries = [
                LedgerEntry(**e) for e in self.storage.ledger_entries.values()
                if e["user_id"] == user_id and (account is None or e["account"] == account)
            ]
        all_entries.sort(key=lambda e: e.created_at, reverse=True)
        paginated = all_entries[offset:offset + limit]

        return LedgerHistoryResponse(
            user_id=user_id,
            entries=paginated,
            total_count=len(all_entries),
            current_balance=balance.current_balance,
        )

    def replay_balance(self, user_id: UUID, account: Account = Account.BALANCE, strict: bool = True) -> ReplayResult:
        """Re-derive an account from its entries and compare with the cached value."""
        with self.storage.atomic():
            user = self.storage.users.get(user_id)
            if user is None:
                raise NotFoundError(f"User {user_id} not found")
            entries = [
                e for e in self.storage.ledger_entries.values()
                if e["user_id"] == user_id and e["account"] == account
            ]
            result = ReplayResult(
                user_id=user_id,
                account=account,
                cached_balance=user[ACCOUNT_FIELDS[account]],
                replayed_balance=sum((e["amount"] for e in entries), Decimal("0")),
                entry_count=len(entries),
            )

        if strict and not result.consistent:
            logger.error(
                "Ledger replay mismatch",
                user_id=str(user_id),
                account=account.value,
                cached=str(result.cached_balance),
                replayed=str(result.replayed_balance),
            )
            raise LedgerIntegrityError(
                f"{account.value} for user {user_id} is {result.cached_balance}, "
                f"entries sum to {result.replayed_balance}"
            )
        return result

    def get_entry_by_key(self, idempotency_key: str) -> Optional[LedgerEntry]:
        with self.storage.atomic():
            entry_id = self.storage.idempotency_index.get(idempotency_key)
            if entry_id is None:
                return None
            return LedgerEntry(**self.storage.ledger_entries[entry_id])

    def _post(
        self,
        user_id: UUID,
        amount: Decimal,
        entry_type: EntryType,
        cause: EntryCause,
        reference_id: Optional[UUID],
        idempotency_key: Optional[str],
        account: Account,
        description: Optional[str],
        metadata: Optional[dict],
    ) -> LedgerEntry:
        field = ACCOUNT_FIELDS[account]

        with self.storage.atomic():
            if idempotency_key:
                existing = self.get_entry_by_key(idempotency_key)
                if existing:
                    logger.info("Ledger entry already exists", idempotency_key=idempotency_key)
                    return existing

            user = self.storage.users.get(user_id)
            if user is None:
                raise NotFoundError(f"User {user_id} not found")

            if entry_type == EntryType.DEBIT and user[field] < amount:
                raise InsufficientFundsError(
                    f"Insufficient funds. Balance: {user[field]}, Required: {amount}"
                )

            signed = amount if entry_type == EntryType.CREDIT else -amount
            updated = self.storage.increment("users", user_id, field, signed)

            entry_id = uuid4()
            entry_data = {
                "id": entry_id,
                "user_id": user_id,
                "account": account,
                "entry_type": entry_type,
                "amount": signed,
                "currency": self.currency,
                "balance_after": updated[field],
                "cause": cause,
                "reference_id": reference_id,
                "idempotency_key": idempotency_key,
                "description": description or f"{cause.value.replace('_', ' ').capitalize()}",
                "created_at": datetime.now(timezone.utc),
                "metadata": dict(metadata or {}),
            }
            self.storage.ledger_entries[entry_id] = entry_data
            if idempotency_key:
                self.storage.idempotency_index[idempotency_key] = entry_id

        logger.info(
            "Ledger entry posted",
            user_id=str(user_id),
            account=account.value,
            entry_type=entry_type.value,
            amount=str(signed),
            balance_after=str(entry_data["balance_after"]),
            cause=cause.value,
        )
        return LedgerEntry(**entry_data)
