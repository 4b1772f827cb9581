from decimal import Decimal
from typing import Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from api.deps import get_admin, get_identity, get_services
from core.collaborators import Identity
from core.container import Services

from .models import (
    BankDetails,
    SubmitWithdrawalRequest,
    Withdrawal,
    WithdrawalResponse,
    WithdrawalStatus,
)

router = APIRouter(prefix="/withdrawals", tags=["Withdrawals"])


class WithdrawalBody(BaseModel):
    amount: Decimal = Field(..., ge=1)
    bank_details: BankDetails


class WithdrawalStatusBody(BaseModel):
    status: Literal["approved", "rejected"]


@router.post("", response_model=WithdrawalResponse)
def submit_withdrawal(
    body: WithdrawalBody,
    identity: Identity = Depends(get_identity),
    services: Services = Depends(get_services),
) -> WithdrawalResponse:
    return services.withdrawals.submit_withdrawal(SubmitWithdrawalRequest(
        user_id=identity.user_id,
        amount=body.amount,
        bank_details=body.bank_details,
    ))


@router.get("", response_model=list[Withdrawal])
def list_withdrawals(
    status: Optional[WithdrawalStatus] = None,
    admin: Identity = Depends(get_admin),
    services: Services = Depends(get_services),
) -> list[Withdrawal]:
    return services.withdrawals.list_withdrawals(status=status)


@router.get("/mine", response_model=list[Withdrawal])
def list_my_withdrawals(
    identity: Identity = Depends(get_identity),
    services: Services = Depends(get_services),
) -> list[Withdrawal]:
    return services.withdrawals.list_withdrawals(user_id=identity.user_id)


@router.patch("/{withdrawal_id}", response_model=WithdrawalResponse)
def update_withdrawal(
    withdrawal_id: UUID,
    body: WithdrawalStatusBody,
    admin: Identity = Depends(get_admin),
    services: Services = Depends(get_services),
) -> WithdrawalResponse:
    if body.status == "approved":
        return services.withdrawals.approve_withdrawal(withdrawal_id, admin)
    return services.withdrawals.reject_withdrawal(withdrawal_id, admin)
