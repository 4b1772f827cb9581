"""
Gift card catalog and redemption workflow

pending -> approved (credits the submitter, may pay a referral bonus)
pending -> rejected (no balance effect)
"""

from .models import GiftCard, Redemption, RedemptionStatus
from .catalog import GiftCardService
from .service import RedemptionService

__all__ = [
    "GiftCard",
    "Redemption",
    "RedemptionStatus",
    "GiftCardService",
    "RedemptionService",
]
