from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

import structlog

from core.collaborators import Identity, require_admin
from core.errors import NotFoundError
from core.storage import InMemoryStorage

from .models import GiftCard, GiftCardRequest, GiftCardUpdate

logger = structlog.get_logger()


class GiftCardService:
    """Admin-managed gift card catalog."""

    def __init__(self, storage: InMemoryStorage):
        self.storage = storage

    def create(self, request: GiftCardRequest, admin: Identity) -> GiftCard:
        require_admin(admin)
        now = datetime.now(timezone.utc)
        card_id = uuid4()
        card_data = {"id": card_id, **request.model_dump(), "created_at": now, "updated_at": now}
        with self.storage.atomic():
            self.storage.gift_cards[card_id] = card_data
        logger.info("Gift card created", gift_card_id=str(card_id), brand=request.brand)
        return GiftCard(**card_data)

    def get(self, card_id: UUID) -> GiftCard:
        card_data = self.storage.get("gift_cards", card_id)
        if not card_data:
            raise NotFoundError(f"Gift card {card_id} not found")
        return GiftCard(**card_data)

    def find(self, card_id: UUID) -> Optional[GiftCard]:
        card_data = self.storage.get("gift_cards", card_id)
        return GiftCard(**card_data) if card_data else None

    def list_cards(self) -> list[GiftCard]:
        with self.storage.atomic():
            cards = [GiftCard(**c) for c in self.storage.gift_cards.values()]
        cards.sort(key=lambda c: (c.brand, c.name))
        return cards

    def update(self, card_id: UUID, request: GiftCardUpdate, admin: Identity) -> GiftCard:
        require_admin(admin)
        changes = request.model_dump(exclude_unset=True, exclude_none=True)
        with self.storage.atomic():
            card_data = self.storage.gift_cards.get(card_id)
            if not card_data:
                raise NotFoundError(f"Gift card {card_id} not found")
            card_data.update(changes)
            card_data["updated_at"] = datetime.now(timezone.utc)
            card = GiftCard(**card_data)
        logger.info("Gift card updated", gift_card_id=str(card_id), fields=sorted(changes))
        return card

    def delete(self, card_id: UUID, admin: Identity) -> None:
        require_admin(admin)
        with self.storage.atomic():
            if self.storage.gift_cards.pop(card_id, None) is None:
                raise NotFoundError(f"Gift card {card_id} not found")
        logger.info("Gift card deleted", gift_card_id=str(card_id))
