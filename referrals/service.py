from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from core.collaborators import ActivityType, NotificationEvent, NotificationSink, notify_safely
from core.errors import NotFoundError
from core.storage import InMemoryStorage
from ledger.models import Account, EntryCause
from ledger.service import LedgerService

from .models import BonusOutcome, LeaderboardEntry, Referral, ReferralStats
from .policy import BonusPolicy, first_approval_policy

logger = structlog.get_logger()

DEFAULT_REFERRAL_BONUS = Decimal("3")


class ReferralService:
    def __init__(
        self,
        ledger: LedgerService,
        policy: Optional[BonusPolicy] = None,
        notifier: Optional[NotificationSink] = None,
    ):
        self.ledger = ledger
        self.storage: InMemoryStorage = ledger.storage
        self.policy = policy or first_approval_policy(DEFAULT_REFERRAL_BONUS)
        self.notifier = notifier

    def register_edge(
        self,
        referrer_code: str,
        referred_user_id: UUID,
        warnings: Optional[list[str]] = None,
    ) -> Optional[Referral]:
        """Link a referred user to a referrer. An unknown code creates nothing.

        Notification failures are appended to ``warnings`` when given.
        """
        warnings = [] if warnings is None else warnings
        with self.storage.atomic():
            referred = self.storage.users.get(referred_user_id)
            if referred is None:
                raise NotFoundError(f"User {referred_user_id} not found")

            referrer_id = self.storage.referral_code_index.get(referrer_code)
            if referrer_id is None or referrer_id == referred_user_id:
                logger.info("Referral code ignored", referrer_code=referrer_code, referred_user_id=str(referred_user_id))
                return None

            existing_id = self.storage.referral_by_referred.get(referred_user_id)
            if existing_id is not None:
                existing = self.storage.referrals[existing_id]
                if existing["referrer_code"] == referrer_code:
                    return Referral(**existing)
                return None

            if referred["referred_by"] and referred["referred_by"] != referrer_code:
                return None
            referred["referred_by"] = referrer_code

            referral_id = uuid4()
            referral_data = {
                "id": referral_id,
                "referrer_code": referrer_code,
                "referrer_user_id": referrer_id,
                "referred_user_id": referred_user_id,
                "is_redeemed": False,
                "total_approved_amount": Decimal("0"),
                "bonus_amount": None,
                "created_at": datetime.now(timezone.utc),
                "redeemed_at": None,
            }
            self.storage.referrals[referral_id] = referral_data
            self.storage.referral_by_referred[referred_user_id] = referral_id

            referrer = self.storage.users[referrer_id]
            if referred_user_id not in referrer["referrals"]:
                referrer["referrals"].append(referred_user_id)
            referred_name = referred["name"]

        logger.info("Referral registered", referrer_code=referrer_code, referred_user_id=str(referred_user_id))
        notify_safely(self.notifier, NotificationEvent(
            user_id=referrer_id,
            type=ActivityType.REFERRAL,
            title="New Referral",
            description=f"{referred_name} signed up with your referral code.",
        ), warnings)
        return Referral(**referral_data)

    def evaluate(
        self,
        referred_user_id: UUID,
        approved_amount: Decimal,
        warnings: Optional[list[str]] = None,
    ) -> BonusOutcome:
        """Pay the referral bonus if this approval qualifies the user's edge.

        The edge's ``is_redeemed`` check-and-set and the bonus credit run
        under one storage lock, so concurrent approvals pay at most once.
        Notification failures are appended to ``warnings`` when given.
        """
        warnings = [] if warnings is None else warnings
        with self.storage.atomic():
            user = self.storage.users.get(referred_user_id)
            if user is None:
                raise NotFoundError(f"User {referred_user_id} not found")

            referred_by = user["referred_by"]
            if not referred_by:
                return BonusOutcome(paid=False, reason="User was not referred")

            referral_id = self.storage.referral_by_referred.get(referred_user_id)
            edge = self.storage.referrals.get(referral_id) if referral_id else None
            if edge is None or edge["referrer_code"] != referred_by:
                return BonusOutcome(paid=False, reason="No referral edge for user")
            if edge["is_redeemed"]:
                return BonusOutcome(paid=False, referral=Referral(**edge), reason="Referral already redeemed")

            edge["total_approved_amount"] += approved_amount
            context = {
                "referral": {
                    "is_redeemed": edge["is_redeemed"],
                    "total_approved_amount": edge["total_approved_amount"],
                },
                "approval": {"amount": approved_amount},
            }
            if not self.policy.qualifies(context):
                return BonusOutcome(
                    paid=False,
                    referral=Referral(**edge),
                    reason=f"Approval does not satisfy {self.policy.name.value} policy",
                )

            edge["is_redeemed"] = True
            edge["redeemed_at"] = datetime.now(timezone.utc)

            referrer_id = self.storage.referral_code_index.get(referred_by)
            if referrer_id is None:
                logger.warning("Referrer no longer exists", referrer_code=referred_by, referral_id=str(edge["id"]))
                return BonusOutcome(paid=False, referral=Referral(**edge), reason="Referrer not found")

            bonus = self.policy.bonus
            if bonus > 0:
                try:
                    self.ledger.credit(
                        referrer_id,
                        bonus,
                        EntryCause.REFERRAL_BONUS,
                        reference_id=edge["id"],
                        idempotency_key=f"referral:{edge['id']}:bonus",
                        account=Account.REFERRAL_EARNINGS,
                        description=f"Referral bonus for {user['name']}",
                        metadata={"referred_user_id": str(referred_user_id)},
                    )
                except Exception:
                    edge["is_redeemed"] = False
                    edge["redeemed_at"] = None
                    raise
            edge["bonus_amount"] = bonus
            referral = Referral(**edge)

        logger.info(
            "Referral bonus paid",
            referral_id=str(referral.id),
            referrer_user_id=str(referrer_id),
            amount=str(bonus),
        )
        notify_safely(self.notifier, NotificationEvent(
            user_id=referrer_id,
            type=ActivityType.REFERRAL,
            title="Referral Bonus Earned",
            description=f"You earned a referral bonus of {bonus}.",
        ), warnings)
        return BonusOutcome(paid=True, amount=bonus, referral=referral, reason="Bonus paid")

    def get_referral_for(self, referred_user_id: UUID) -> Optional[Referral]:
        with self.storage.atomic():
            referral_id = self.storage.referral_by_referred.get(referred_user_id)
            if referral_id is None:
                return None
            return Referral(**self.storage.referrals[referral_id])

    def list_referrals(self, referrer_code: str) -> list[Referral]:
        with self.storage.atomic():
            referrals = [
                Referral(**r) for r in self.storage.referrals.values()
                if r["referrer_code"] == referrer_code
            ]
        referrals.sort(key=lambda r: r.created_at)
        return referrals

    def get_stats(self, referral_code: str) -> ReferralStats:
        with self.storage.atomic():
            referrer_id = self.storage.referral_code_index.get(referral_code)
            if referrer_id is None:
                raise NotFoundError("Referrer not found")
            referrer = self.storage.users[referrer_id]
            redeemed = sum(
                1 for r in self.storage.referrals.values()
                if r["referrer_code"] == referral_code and r["is_redeemed"]
            )
            return ReferralStats(
                referral_code=referral_code,
                referred_count=len(referrer["referrals"]),
                redeemed_count=redeemed,
                earnings=referrer["referral_earnings"],
            )

    def leaderboard(self, limit: int = 10) -> list[LeaderboardEntry]:
        with self.storage.atomic():
            earners = [u for u in self.storage.users.values() if u["referral_earnings"] > 0]
            earners.sort(key=lambda u: u["referral_earnings"], reverse=True)
            return [
                LeaderboardEntry(
                    user_id=u["id"],
                    name=u["name"],
                    email=u["email"],
                    referral_earnings=u["referral_earnings"],
                    referred_count=len(u["referrals"]),
                )
                for u in earners[:limit]
            ]
