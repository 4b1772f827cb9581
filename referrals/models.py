from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict


class RegisterReferralRequest(BaseModel):
    referrer_code: str = Field(..., min_length=1)
    referred_user_id: UUID


class Referral(BaseModel):
    id: UUID
    referrer_code: str
    referrer_user_id: UUID
    referred_user_id: UUID
    is_redeemed: bool = False
    total_approved_amount: Decimal = Decimal("0")
    bonus_amount: Optional[Decimal] = None
    created_at: datetime
    redeemed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class BonusOutcome(BaseModel):
    paid: bool
    amount: Decimal = Decimal("0")
    referral: Optional[Referral] = None
    reason: str


class ReferralStats(BaseModel):
    referral_code: str
    referred_count: int
    redeemed_count: int
    earnings: Decimal


class LeaderboardEntry(BaseModel):
    user_id: UUID
    name: str
    email: str
    referral_earnings: Decimal
    referred_count: int
