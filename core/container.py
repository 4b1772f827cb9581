from dataclasses import dataclass
from typing import Optional

from accounts.service import AccountService
from ledger.service import LedgerService
from redemptions.catalog import GiftCardService
from redemptions.service import RedemptionService
from referrals.policy import policy_from_settings
from referrals.service import ReferralService
from withdrawals.service import WithdrawalService

from .collaborators import (
    ActivityLogSink,
    BlobStore,
    IdentityProvider,
    InMemoryBlobStore,
    InMemoryIdentityProvider,
    NotificationSink,
)
from .config import Settings, get_settings
from .storage import InMemoryStorage


@dataclass
class Services:
    settings: Settings
    storage: InMemoryStorage
    identity: IdentityProvider
    blob_store: BlobStore
    notifier: NotificationSink
    ledger: LedgerService
    referrals: ReferralService
    accounts: AccountService
    gift_cards: GiftCardService
    redemptions: RedemptionService
    withdrawals: WithdrawalService


def build_services(
    settings: Optional[Settings] = None,
    storage: Optional[InMemoryStorage] = None,
    identity: Optional[IdentityProvider] = None,
    blob_store: Optional[BlobStore] = None,
    notifier: Optional[NotificationSink] = None,
) -> Services:
    settings = settings or get_settings()
    storage = storage or InMemoryStorage()
    identity = identity or InMemoryIdentityProvider()
    blob_store = blob_store or InMemoryBlobStore()
    notifier = notifier or ActivityLogSink(storage)

    ledger = LedgerService(storage, currency=settings.currency)
    referrals = ReferralService(ledger, policy=policy_from_settings(settings), notifier=notifier)
    accounts = AccountService(storage, referrals, referral_code_length=settings.referral_code_length)
    gift_cards = GiftCardService(storage)
    redemptions = RedemptionService(
        ledger,
        referrals,
        gift_cards,
        blob_store=blob_store,
        notifier=notifier,
        default_reject_reason=settings.default_reject_reason,
    )
    withdrawals = WithdrawalService(ledger, notifier=notifier)

    return Services(
        settings=settings,
        storage=storage,
        identity=identity,
        blob_store=blob_store,
        notifier=notifier,
        ledger=ledger,
        referrals=referrals,
        accounts=accounts,
        gift_cards=gift_cards,
        redemptions=redemptions,
        withdrawals=withdrawals,
    )
