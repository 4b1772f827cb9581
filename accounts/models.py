from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict, field_validator

from core.collaborators import Role
from withdrawals.models import Withdrawal


class RegisterUserRequest(BaseModel):
    name: str = Field(..., min_length=3)
    email: str = Field(..., min_length=3)
    password_hash: str = Field(..., min_length=1, description="Already hashed; opaque to the core")
    referred_by: Optional[str] = Field(None, description="Referral code of the referrer")
    role: Role = Role.USER

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("email must contain '@'")
        return v

    @field_validator("referred_by")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None


class User(BaseModel):
    id: UUID
    name: str
    email: str
    password_hash: str = Field(..., exclude=True)
    role: Role = Role.USER
    balance: Decimal = Decimal("0")
    referral_code: str
    referred_by: Optional[str] = None
    referrals: list[UUID] = Field(default_factory=list)
    referral_earnings: Decimal = Decimal("0")
    withdrawals: list[Withdrawal] = Field(default_factory=list)
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class UserProfile(BaseModel):
    id: UUID
    name: str
    email: str
    role: Role
    balance: Decimal
    referral_code: str
    referred_count: int
    referral_earnings: Decimal
