"""
Referral linking and bonus engine

Provides referrer -> referred edges, the one-time bonus payout on a
qualifying redemption approval, and referral stats.
"""

from .models import BonusOutcome, Referral, ReferralStats
from .policy import BonusPolicy, first_approval_policy, threshold_policy
from .service import ReferralService

__all__ = [
    "BonusOutcome",
    "Referral",
    "ReferralStats",
    "BonusPolicy",
    "first_approval_policy",
    "threshold_policy",
    "ReferralService",
]
