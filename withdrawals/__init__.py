from .models import BankDetails, Withdrawal, WithdrawalStatus
from .service import WithdrawalService

__all__ = [
    "BankDetails",
    "Withdrawal",
    "WithdrawalStatus",
    "WithdrawalService",
]
