from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict

from referrals.models import BonusOutcome


class RedemptionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class GiftCardRequest(BaseModel):
    name: str = Field(..., min_length=1)
    brand: str = Field(..., min_length=1)
    value: Decimal = Field(..., ge=0, description="Face value credited on approval")
    currency: str = Field(default="USD")
    image: str = Field(..., min_length=1)


class GiftCardUpdate(BaseModel):
    name: Optional[str] = None
    brand: Optional[str] = None
    value: Optional[Decimal] = Field(None, ge=0)
    currency: Optional[str] = None
    image: Optional[str] = None


class GiftCard(BaseModel):
    id: UUID
    name: str
    brand: str
    value: Decimal
    currency: str
    image: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SubmitRedemptionRequest(BaseModel):
    user_id: UUID
    gift_card_id: UUID
    amount: Decimal = Field(default=Decimal("0"), ge=0, description="Value claimed by the user")
    image_url: Optional[str] = Field(None, description="Already stored proof image")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "user_id": "550e8400-e29b-41d4-a716-446655440000",
            "gift_card_id": "11111111-1111-1111-1111-111111111111",
            "amount": 25.00
        }
    })


class RejectRedemptionRequest(BaseModel):
    reason: Optional[str] = Field(None, description="Shown to the user")


class Redemption(BaseModel):
    id: UUID
    user_id: UUID
    gift_card_id: UUID
    amount: Decimal
    image_url: str
    image_id: Optional[str] = None
    status: RedemptionStatus
    reason: Optional[str] = None
    credited_amount: Optional[Decimal] = None
    processed_by: Optional[UUID] = None
    created_at: datetime
    processed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    def can_process(self) -> bool:
        return self.status == RedemptionStatus.PENDING


class RedemptionResponse(BaseModel):
    redemption: Redemption
    balance: Optional[Decimal] = None
    referral_bonus: Optional[BonusOutcome] = None
    warnings: list[str] = Field(default_factory=list)
    message: str
