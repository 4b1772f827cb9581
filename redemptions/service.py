from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from core.collaborators import (
    ActivityType,
    BlobStore,
    Identity,
    NotificationEvent,
    NotificationSink,
    StoredBlob,
    notify_safely,
    require_admin,
)
from core.errors import (
    DependencyFailureError,
    InvalidAmountError,
    InvalidReferenceError,
    NotFoundError,
)
from ledger.models import EntryCause
from ledger.service import LedgerService
from referrals.models import BonusOutcome
from referrals.service import ReferralService

from .catalog import GiftCardService
from .models import (
    Redemption,
    RedemptionResponse,
    RedemptionStatus,
    SubmitRedemptionRequest,
)

logger = structlog.get_logger()

DEFAULT_REJECT_REASON = "No reason provided"


class RedemptionService:
    def __init__(
        self,
        ledger: LedgerService,
        referrals: ReferralService,
        catalog: GiftCardService,
        blob_store: Optional[BlobStore] = None,
        notifier: Optional[NotificationSink] = None,
        default_reject_reason: str = DEFAULT_REJECT_REASON,
    ):
        self.ledger = ledger
        self.storage = ledger.storage
        self.referrals = referrals
        self.catalog = catalog
        self.blob_store = blob_store
        self.notifier = notifier
        self.default_reject_reason = default_reject_reason

    def submit_redemption(
        self,
        request: SubmitRedemptionRequest,
        image: Optional[bytes] = None,
        filename: str = "",
    ) -> RedemptionResponse:
        if self.storage.get("users", request.user_id) is None:
            raise NotFoundError(f"User {request.user_id} not found")

        gift_card = self.catalog.find(request.gift_card_id)
        if gift_card is None:
            raise InvalidReferenceError(f"Gift card {request.gift_card_id} not found")

        blob = None
        if image is not None:
            blob = self._upload_proof(image, filename)
            image_url = blob.url
        elif request.image_url:
            image_url = request.image_url
        else:
            raise InvalidReferenceError("Image is required")

        redemption_id = uuid4()
        redemption_data = {
            "id": redemption_id,
            "user_id": request.user_id,
            "gift_card_id": request.gift_card_id,
            "amount": request.amount,
            "image_url": image_url,
            "image_id": blob.id if blob else None,
            "status": RedemptionStatus.PENDING,
            "reason": None,
            "credited_amount": None,
            "processed_by": None,
            "created_at": datetime.now(timezone.utc),
            "processed_at": None,
        }
        try:
            with self.storage.atomic():
                self.storage.redemptions[redemption_id] = redemption_data
            redemption = Redemption(**redemption_data)
        except Exception:
            logger.exception("Redemption could not be stored", user_id=str(request.user_id))
            if blob is not None:
                self._discard_proof(blob)
            raise

        logger.info(
            "Redemption submitted",
            redemption_id=str(redemption_id),
            user_id=str(request.user_id),
            gift_card_id=str(request.gift_card_id),
            amount=str(request.amount),
        )
        warnings: list[str] = []
        notify_safely(self.notifier, NotificationEvent(
            user_id=request.user_id,
            type=ActivityType.GIFT_CARD_SUBMISSION,
            title="Gift Card Submitted",
            description=f"You submitted a {gift_card.brand} gift card worth {request.amount} for review.",
            metadata={"redemption_id": str(redemption_id)},
        ), warnings)

        return RedemptionResponse(
            redemption=redemption,
            warnings=warnings,
            message="Gift card submitted for review",
        )

    def approve_redemption(self, redemption_id: UUID, admin: Identity) -> RedemptionResponse:
        require_admin(admin)
        current = self.get_redemption(redemption_id)
        amount = self._resolve_credit_amount(current)

        with self.storage.atomic():
            redemption_data = self.storage.transition(
                "redemptions",
                redemption_id,
                RedemptionStatus.PENDING,
                RedemptionStatus.APPROVED,
                label="Redemption",
                credited_amount=amount,
                processed_by=admin.user_id,
                processed_at=datetime.now(timezone.utc),
            )
            user_id = redemption_data["user_id"]

            try:
                if amount <= 0:
                    raise InvalidAmountError("Redemption has no value to credit")
                self.ledger.credit(
                    user_id,
                    amount,
                    EntryCause.REDEMPTION_APPROVED,
                    reference_id=redemption_id,
                    idempotency_key=f"redemption:{redemption_id}:approve",
                    description=f"Gift card redemption {redemption_id} approved",
                )
            except Exception:
                self.storage.transition(
                    "redemptions",
                    redemption_id,
                    RedemptionStatus.APPROVED,
                    RedemptionStatus.PENDING,
                    label="Redemption",
                    credited_amount=None,
                    processed_by=None,
                    processed_at=None,
                )
                logger.exception("Redemption approval rolled back", redemption_id=str(redemption_id))
                raise

        logger.info("Redemption approved", redemption_id=str(redemption_id), user_id=str(user_id), amount=str(amount))

        warnings: list[str] = []
        bonus = self._evaluate_referral(user_id, amount, warnings)
        notify_safely(self.notifier, NotificationEvent(
            user_id=user_id,
            type=ActivityType.REDEMPTION,
            title="Gift Card Approved",
            description=f"Your gift card was approved and {amount} was added to your balance.",
            metadata={"redemption_id": str(redemption_id)},
        ), warnings)

        return RedemptionResponse(
            redemption=Redemption(**redemption_data),
            balance=self.ledger.get_balance(user_id).current_balance,
            referral_bonus=bonus,
            warnings=warnings,
            message="Redemption approved successfully",
        )

    def reject_redemption(
        self,
        redemption_id: UUID,
        admin: Identity,
        reason: Optional[str] = None,
    ) -> RedemptionResponse:
        require_admin(admin)
        redemption_data = self.storage.transition(
            "redemptions",
            redemption_id,
            RedemptionStatus.PENDING,
            RedemptionStatus.REJECTED,
            label="Redemption",
            reason=reason or self.default_reject_reason,
            processed_by=admin.user_id,
            processed_at=datetime.now(timezone.utc),
        )
        redemption = Redemption(**redemption_data)
        logger.info("Redemption rejected", redemption_id=str(redemption_id), reason=redemption.reason)

        warnings: list[str] = []
        notify_safely(self.notifier, NotificationEvent(
            user_id=redemption.user_id,
            type=ActivityType.REDEMPTION,
            title="Gift Card Rejected",
            description=f"Your gift card was rejected: {redemption.reason}",
            metadata={"redemption_id": str(redemption_id)},
        ), warnings)

        return RedemptionResponse(
            redemption=redemption,
            warnings=warnings,
            message="Redemption rejected successfully",
        )

    def get_redemption(self, redemption_id: UUID) -> Redemption:
        redemption_data = self.storage.get("redemptions", redemption_id)
        if not redemption_data:
            raise NotFoundError(f"Redemption {redemption_id} not found")
        return Redemption(**redemption_data)

    def list_redemptions(
        self,
        status: Optional[RedemptionStatus] = None,
        user_id: Optional[UUID] = None,
    ) -> list[Redemption]:
        with self.storage.atomic():
            redemptions = [
                Redemption(**r) for r in self.storage.redemptions.values()
                if (status is None or r["status"] == status)
                and (user_id is None or r["user_id"] == user_id)
            ]
        redemptions.sort(key=lambda r: r.created_at, reverse=True)
        return redemptions

    def _resolve_credit_amount(self, redemption: Redemption) -> Decimal:
        gift_card = self.catalog.find(redemption.gift_card_id)
        if gift_card is not None and gift_card.value > 0:
            return gift_card.value
        return redemption.amount

    def _evaluate_referral(self, user_id: UUID, amount: Decimal, warnings: list[str]) -> Optional[BonusOutcome]:
        try:
            return self.referrals.evaluate(user_id, amount, warnings)
        except Exception:
            logger.exception("Referral bonus evaluation failed", user_id=str(user_id))
            warnings.append("Referral bonus could not be processed")
            return None

    def _upload_proof(self, image: bytes, filename: str) -> StoredBlob:
        if self.blob_store is None:
            raise DependencyFailureError("Image storage is not configured")
        try:
            return self.blob_store.upload(image, filename)
        except DependencyFailureError:
            raise
        except Exception as e:
            logger.exception("Proof upload failed", filename=filename)
            raise DependencyFailureError("Image upload failed") from e

    def _discard_proof(self, blob: StoredBlob) -> None:
        try:
            self.blob_store.delete(blob.id)
        except Exception:
            logger.exception("Orphaned proof image could not be deleted", blob_id=blob.id)
