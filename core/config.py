"""
Application settings.
Uses pydantic-settings for environment variable parsing and validation.
"""
from decimal import Decimal
from enum import Enum
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ReferralPolicy(str, Enum):
    FIRST_APPROVAL = "first_approval"
    THRESHOLD = "threshold"


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    environment: str = Field("development")
    debug: bool = Field(False)

    # Logging
    log_level: str = Field("INFO")
    log_format: str = Field("console", description="console or json")

    # Money
    currency: str = Field("USD", description="Single platform currency")

    # Referral program
    referral_bonus: Decimal = Field(Decimal("3"), description="Flat bonus paid to a referrer")
    referral_policy: ReferralPolicy = Field(ReferralPolicy.FIRST_APPROVAL)
    referral_threshold: Decimal = Field(
        Decimal("100"),
        description="Cumulative approved amount required by the threshold policy"
    )
    referral_code_length: int = Field(8, ge=4, le=32)
    leaderboard_limit: int = Field(10, ge=1)

    # Redemptions
    default_reject_reason: str = Field("No reason provided")

    @field_validator("referral_bonus", "referral_threshold")
    @classmethod
    def validate_non_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("must not be negative")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in ("console", "json"):
            raise ValueError("log_format must be 'console' or 'json'")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


@lru_cache
def get_settings() -> Settings:
    return Settings()
