"""
Pytest fixtures shared by the package test suites.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from accounts.models import RegisterUserRequest
from core.collaborators import Identity, Role
from core.config import Settings
from core.container import build_services
from ledger.models import EntryCause
from redemptions.models import GiftCardRequest, SubmitRedemptionRequest


@pytest.fixture()
def settings():
    return Settings(referral_bonus=Decimal("3"), environment="test")


@pytest.fixture()
def services(settings):
    return build_services(settings)


@pytest.fixture()
def admin(services):
    """An admin identity backed by a registered admin user."""
    user = services.accounts.register_user(RegisterUserRequest(
        name="Site Admin",
        email="admin@example.com",
        password_hash="x",
        role=Role.ADMIN,
    ))
    return Identity(user_id=user.id, role=Role.ADMIN)


@pytest.fixture()
def user_factory(services):
    """Factory for registering test users."""

    def create_user(name=None, referred_by=None, **kwargs):
        name = name or f"user_{uuid4().hex[:8]}"
        return services.accounts.register_user(RegisterUserRequest(
            name=name,
            email=f"{name}@example.com",
            password_hash="hashed",
            referred_by=referred_by,
            **kwargs,
        ))

    return create_user


@pytest.fixture()
def user_with_balance(services, user_factory):
    """Factory for users with an initial balance."""

    def create_user_with_balance(amount=Decimal("100.00"), **kwargs):
        user = user_factory(**kwargs)
        services.ledger.credit(user.id, amount, EntryCause.REDEMPTION_APPROVED, description="Test fixture funding")
        return user

    return create_user_with_balance


@pytest.fixture()
def gift_card_factory(services, admin):
    def create_gift_card(value=Decimal("25.00"), brand="Amazon"):
        return services.gift_cards.create(GiftCardRequest(
            name=f"{brand} {value}",
            brand=brand,
            value=value,
            currency="USD",
            image="https://cdn.example.com/cards/amazon.png",
        ), admin)

    return create_gift_card


@pytest.fixture()
def submit(services):
    """Submit a redemption for ``user`` against ``card`` with an uploaded proof."""

    def submit_redemption(user, card, amount=Decimal("20.00")):
        response = services.redemptions.submit_redemption(
            SubmitRedemptionRequest(user_id=user.id, gift_card_id=card.id, amount=amount),
            image=b"\x89PNG fake image bytes",
            filename="receipt.png",
        )
        return response.redemption

    return submit_redemption
