from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict


class WithdrawalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class BankDetails(BaseModel):
    account_number: str = Field(..., min_length=1)
    bank_name: str = Field(..., min_length=1)
    account_name: str = Field(..., min_length=1)


class SubmitWithdrawalRequest(BaseModel):
    user_id: UUID
    amount: Decimal = Field(..., gt=0)
    bank_details: BankDetails

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "user_id": "550e8400-e29b-41d4-a716-446655440000",
            "amount": 100.00,
            "bank_details": {
                "account_number": "0123456789",
                "bank_name": "First Bank",
                "account_name": "Jane Doe"
            }
        }
    })


class Withdrawal(BaseModel):
    id: UUID
    user_id: UUID
    amount: Decimal
    status: WithdrawalStatus
    bank_details: BankDetails
    created_at: datetime
    processed_at: Optional[datetime] = None
    processed_by: Optional[UUID] = None

    model_config = ConfigDict(from_attributes=True)

    def can_process(self) -> bool:
        return self.status == WithdrawalStatus.PENDING


class WithdrawalResponse(BaseModel):
    withdrawal: Withdrawal
    remaining_balance: Decimal
    warnings: list[str] = Field(default_factory=list)
    message: str
