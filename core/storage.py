import threading
from contextlib import contextmanager
from typing import Any, Iterator, Optional
from uuid import UUID

from .errors import AlreadyProcessedError, NotFoundError


class InMemoryStorage:
    """Dict-backed record store shared by every service.

    All mutations go through ``lock``. ``transition`` is the compare-and-set
    used by the state machines, ``increment`` the direct counter update used
    by the ledger.
    """

    def __init__(self):
        self.lock = threading.RLock()
        self.users: dict[UUID, dict] = {}
        self.gift_cards: dict[UUID, dict] = {}
        self.redemptions: dict[UUID, dict] = {}
        self.referrals: dict[UUID, dict] = {}
        self.ledger_entries: dict[UUID, dict] = {}
        self.activities: dict[UUID, dict] = {}

        self.email_index: dict[str, UUID] = {}
        self.referral_code_index: dict[str, UUID] = {}
        self.referral_by_referred: dict[UUID, UUID] = {}
        self.idempotency_index: dict[str, UUID] = {}
        self.withdrawal_index: dict[UUID, UUID] = {}

    @contextmanager
    def atomic(self) -> Iterator["InMemoryStorage"]:
        with self.lock:
            yield self

    def collection(self, name: str) -> dict[UUID, dict]:
        return getattr(self, name)

    def get(self, name: str, record_id: UUID) -> Optional[dict]:
        with self.lock:
            record = self.collection(name).get(record_id)
            return dict(record) if record is not None else None

    def transition(
        self,
        name: str,
        record_id: UUID,
        expected: Any,
        new_status: Any,
        label: str = "Record",
        **changes: Any,
    ) -> dict:
        with self.lock:
            record = self.collection(name).get(record_id)
            if record is None:
                raise NotFoundError(f"{label} {record_id} not found")
            if record["status"] != expected:
                raise AlreadyProcessedError(
                    f"{label} {record_id} already processed (status: {_value(record['status'])})"
                )
            record["status"] = new_status
            record.update(changes)
            return dict(record)

    def increment(self, name: str, record_id: UUID, field: str, delta: Any) -> dict:
        with self.lock:
            record = self.collection(name).get(record_id)
            if record is None:
                raise NotFoundError(f"{record_id} not found in {name}")
            record[field] = record[field] + delta
            return dict(record)

    def find_withdrawal(self, withdrawal_id: UUID) -> tuple[Optional[dict], Optional[dict]]:
        with self.lock:
            owner_id = self.withdrawal_index.get(withdrawal_id)
            if owner_id is None:
                return None, None
            owner = self.users.get(owner_id)
            if owner is None:
                return None, None
            for withdrawal in owner["withdrawals"]:
                if withdrawal["id"] == withdrawal_id:
                    return owner, withdrawal
            return owner, None

    def transition_withdrawal(
        self,
        withdrawal_id: UUID,
        expected: Any,
        new_status: Any,
        **changes: Any,
    ) -> tuple[UUID, dict]:
        with self.lock:
            owner, withdrawal = self.find_withdrawal(withdrawal_id)
            if withdrawal is None:
                raise NotFoundError(f"Withdrawal {withdrawal_id} not found")
            if withdrawal["status"] != expected:
                raise AlreadyProcessedError(
                    f"Withdrawal {withdrawal_id} is not pending (status: {_value(withdrawal['status'])})"
                )
            withdrawal["status"] = new_status
            withdrawal.update(changes)
            return owner["id"], dict(withdrawal)


def _value(status: Any) -> Any:
    return getattr(status, "value", status)
