from decimal import Decimal
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from api.deps import get_admin, get_identity, get_services
from core.collaborators import Identity
from core.container import Services

from .models import (
    GiftCard,
    GiftCardRequest,
    GiftCardUpdate,
    RejectRedemptionRequest,
    Redemption,
    RedemptionResponse,
    RedemptionStatus,
    SubmitRedemptionRequest,
)

router = APIRouter(tags=["Redemptions"])


@router.get("/giftcards", response_model=list[GiftCard])
def list_gift_cards(services: Services = Depends(get_services)) -> list[GiftCard]:
    return services.gift_cards.list_cards()


@router.get("/giftcards/{card_id}", response_model=GiftCard)
def get_gift_card(card_id: UUID, services: Services = Depends(get_services)) -> GiftCard:
    return services.gift_cards.get(card_id)


@router.post("/giftcards", response_model=GiftCard, status_code=status.HTTP_201_CREATED)
def create_gift_card(
    request: GiftCardRequest,
    admin: Identity = Depends(get_admin),
    services: Services = Depends(get_services),
) -> GiftCard:
    return services.gift_cards.create(request, admin)


@router.patch("/giftcards/{card_id}", response_model=GiftCard)
def update_gift_card(
    card_id: UUID,
    request: GiftCardUpdate,
    admin: Identity = Depends(get_admin),
    services: Services = Depends(get_services),
) -> GiftCard:
    return services.gift_cards.update(card_id, request, admin)


@router.delete("/giftcards/{card_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_gift_card(
    card_id: UUID,
    admin: Identity = Depends(get_admin),
    services: Services = Depends(get_services),
) -> None:
    services.gift_cards.delete(card_id, admin)


@router.post("/redemptions", response_model=RedemptionResponse, status_code=status.HTTP_201_CREATED)
def submit_redemption(
    gift_card_id: UUID = Form(...),
    amount: Decimal = Form(Decimal("0")),
    image: UploadFile = File(...),
    identity: Identity = Depends(get_identity),
    services: Services = Depends(get_services),
) -> RedemptionResponse:
    request = SubmitRedemptionRequest(user_id=identity.user_id, gift_card_id=gift_card_id, amount=amount)
    return services.redemptions.submit_redemption(request, image.file.read(), image.filename or "")


@router.get("/redemptions", response_model=list[Redemption])
def list_redemptions(
    status: Optional[RedemptionStatus] = None,
    admin: Identity = Depends(get_admin),
    services: Services = Depends(get_services),
) -> list[Redemption]:
    return services.redemptions.list_redemptions(status=status)


@router.get("/redemptions/mine", response_model=list[Redemption])
def list_my_redemptions(
    identity: Identity = Depends(get_identity),
    services: Services = Depends(get_services),
) -> list[Redemption]:
    return services.redemptions.list_redemptions(user_id=identity.user_id)


@router.post("/redemptions/{redemption_id}/approve", response_model=RedemptionResponse)
def approve_redemption(
    redemption_id: UUID,
    admin: Identity = Depends(get_admin),
    services: Services = Depends(get_services),
) -> RedemptionResponse:
    return services.redemptions.approve_redemption(redemption_id, admin)


@router.post("/redemptions/{redemption_id}/reject", response_model=RedemptionResponse)
def reject_redemption(
    redemption_id: UUID,
    request: Optional[RejectRedemptionRequest] = None,
    admin: Identity = Depends(get_admin),
    services: Services = Depends(get_services),
) -> RedemptionResponse:
    reason = request.reason if request else None
    return services.redemptions.reject_redemption(redemption_id, admin, reason)
