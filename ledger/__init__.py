"""
Ledger primitives for user balances

This module provides:
- Credit and debit, the only operations that move money
- Immutable ledger entries with cause and reference
- Cached balances that can be replayed from the entry log
- Idempotency keys against double posting
"""

from .models import (
    Account,
    EntryCause,
    EntryType,
    LedgerEntry,
    UserBalance,
)
from .service import LedgerService

__all__ = [
    "Account",
    "EntryCause",
    "EntryType",
    "LedgerEntry",
    "UserBalance",
    "LedgerService",
]
