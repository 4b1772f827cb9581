from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

import structlog

from core.collaborators import (
    ActivityType,
    Identity,
    NotificationEvent,
    NotificationSink,
    notify_safely,
    require_admin,
)
from core.errors import NotFoundError
from ledger.models import EntryCause
from ledger.service import LedgerService

from .models import (
    SubmitWithdrawalRequest,
    Withdrawal,
    WithdrawalResponse,
    WithdrawalStatus,
)

logger = structlog.get_logger()


class WithdrawalService:
    """Withdrawals reserve funds on submission.

    Approval only finalizes the reservation; rejection refunds it.
    """

    def __init__(self, ledger: LedgerService, notifier: Optional[NotificationSink] = None):
        self.ledger = ledger
        self.storage = ledger.storage
        self.notifier = notifier

    def submit_withdrawal(self, request: SubmitWithdrawalRequest) -> WithdrawalResponse:
        withdrawal_id = uuid4()
        with self.storage.atomic():
            entry = self.ledger.debit(
                request.user_id,
                request.amount,
                EntryCause.WITHDRAWAL_RESERVED,
                reference_id=withdrawal_id,
                idempotency_key=f"withdrawal:{withdrawal_id}:reserve",
                description=f"Withdrawal to {request.bank_details.bank_name}",
            )
            withdrawal_data = {
                "id": withdrawal_id,
                "user_id": request.user_id,
                "amount": -entry.amount,
                "status": WithdrawalStatus.PENDING,
                "bank_details": request.bank_details.model_dump(),
                "created_at": entry.created_at,
                "processed_at": None,
                "processed_by": None,
            }
            self.storage.users[request.user_id]["withdrawals"].append(withdrawal_data)
            self.storage.withdrawal_index[withdrawal_id] = request.user_id
            withdrawal = Withdrawal(**withdrawal_data)

        logger.info(
            "Withdrawal requested",
            withdrawal_id=str(withdrawal_id),
            user_id=str(request.user_id),
            amount=str(withdrawal.amount),
            remaining_balance=str(entry.balance_after),
        )
        warnings: list[str] = []
        notify_safely(self.notifier, NotificationEvent(
            user_id=request.user_id,
            type=ActivityType.WITHDRAWAL,
            title="Withdrawal Requested",
            description=f"You requested a withdrawal of {withdrawal.amount}.",
            metadata={"withdrawal_id": str(withdrawal_id)},
        ), warnings)

        return WithdrawalResponse(
            withdrawal=withdrawal,
            remaining_balance=entry.balance_after,
            warnings=warnings,
            message="Withdrawal request submitted successfully",
        )

    def approve_withdrawal(self, withdrawal_id: UUID, admin: Identity) -> WithdrawalResponse:
        require_admin(admin)
        user_id, withdrawal_data = self.storage.transition_withdrawal(
            withdrawal_id,
            WithdrawalStatus.PENDING,
            WithdrawalStatus.APPROVED,
            processed_by=admin.user_id,
            processed_at=datetime.now(timezone.utc),
        )
        withdrawal = Withdrawal(**withdrawal_data)
        logger.info("Withdrawal approved", withdrawal_id=str(withdrawal_id), user_id=str(user_id))

        warnings: list[str] = []
        notify_safely(self.notifier, NotificationEvent(
            user_id=user_id,
            type=ActivityType.WITHDRAWAL,
            title="Withdrawal Approved",
            description=f"Your withdrawal of {withdrawal.amount} was approved.",
            metadata={"withdrawal_id": str(withdrawal_id)},
        ), warnings)

        return WithdrawalResponse(
            withdrawal=withdrawal,
            remaining_balance=self.ledger.get_balance(user_id).current_balance,
            warnings=warnings,
            message="Withdrawal approved successfully",
        )

    def reject_withdrawal(self, withdrawal_id: UUID, admin: Identity) -> WithdrawalResponse:
        require_admin(admin)
        with self.storage.atomic():
            user_id, withdrawal_data = self.storage.transition_withdrawal(
                withdrawal_id,
                WithdrawalStatus.PENDING,
                WithdrawalStatus.REJECTED,
                processed_by=admin.user_id,
                processed_at=datetime.now(timezone.utc),
            )
            try:
                entry = self.ledger.credit(
                    user_id,
                    withdrawal_data["amount"],
                    EntryCause.WITHDRAWAL_REFUNDED,
                    reference_id=withdrawal_id,
                    idempotency_key=f"withdrawal:{withdrawal_id}:refund",
                    description="Refund of rejected withdrawal",
                )
            except Exception:
                self.storage.transition_withdrawal(
                    withdrawal_id,
                    WithdrawalStatus.REJECTED,
                    WithdrawalStatus.PENDING,
                    processed_by=None,
                    processed_at=None,
                )
                logger.exception("Withdrawal rejection rolled back", withdrawal_id=str(withdrawal_id))
                raise
            withdrawal = Withdrawal(**withdrawal_data)

        logger.info(
            "Withdrawal rejected and refunded",
            withdrawal_id=str(withdrawal_id),
            user_id=str(user_id),
            amount=str(withdrawal.amount),
        )
        warnings: list[str] = []
        notify_safely(self.notifier, NotificationEvent(
            user_id=user_id,
            type=ActivityType.WITHDRAWAL,
            title="Withdrawal Rejected",
            description=(
                f"Your withdrawal of {withdrawal.amount} was rejected "
                "and funds have been returned to your balance."
            ),
            metadata={"withdrawal_id": str(withdrawal_id)},
        ), warnings)

        return WithdrawalResponse(
            withdrawal=withdrawal,
            remaining_balance=entry.balance_after,
            warnings=warnings,
            message="Withdrawal rejected successfully",
        )

    def get_withdrawal(self, withdrawal_id: UUID) -> Withdrawal:
        with self.storage.atomic():
            _, withdrawal_data = self.storage.find_withdrawal(withdrawal_id)
            if withdrawal_data is None:
                raise NotFoundError(f"Withdrawal {withdrawal_id} not found")
            return Withdrawal(**withdrawal_data)

    def list_withdrawals(
        self,
        user_id: Optional[UUID] = None,
        status: Optional[WithdrawalStatus] = None,
    ) -> list[Withdrawal]:
        with self.storage.atomic():
            if user_id is not None and user_id not in self.storage.users:
                raise NotFoundError(f"User {user_id} not found")
            owners = [self.storage.users[user_id]] if user_id else list(self.storage.users.values())
            withdrawals = [
                Withdrawal(**w) for owner in owners for w in owner["withdrawals"]
                if status is None or w["status"] == status
            ]
        withdrawals.sort(key=lambda w: w.created_at, reverse=True)
        return withdrawals
