"""
Unit Tests for User Accounts
"""

import pytest
from pydantic import ValidationError

from accounts.models import RegisterUserRequest
from accounts.passwords import hash_password, verify_password
from core.collaborators import Role
from core.config import Settings
from core.container import build_services
from core.errors import DuplicateError, NotFoundError


class TestRegistration:
    """Tests for registering users."""

    def test_register_user(self, services):
        user = services.accounts.register_user(RegisterUserRequest(
            name="Jane Doe",
            email="  Jane@Example.com ",
            password_hash="hashed",
        ))

        assert user.email == "jane@example.com"
        assert user.balance == 0
        assert user.referral_earnings == 0
        assert user.referrals == []
        assert user.withdrawals == []
        assert user.role == Role.USER
        assert len(user.referral_code) == 8
        assert user.referral_code.isalnum()

    def test_duplicate_email_rejected(self, services, user_factory):
        user_factory(name="jane")

        with pytest.raises(DuplicateError) as exc_info:
            user_factory(name="jane")

        assert exc_info.value.kind == "duplicate"
        assert len(services.storage.users) == 1

    def test_referral_codes_unique(self, user_factory):
        codes = {user_factory().referral_code for _ in range(50)}

        assert len(codes) == 50

    def test_code_length_configurable(self):
        services = build_services(Settings(referral_code_length=12))

        user = services.accounts.register_user(RegisterUserRequest(
            name="long code", email="long@example.com", password_hash="hashed",
        ))

        assert len(user.referral_code) == 12

    def test_blank_referral_code_ignored(self, user_factory):
        user = user_factory(referred_by="   ")

        assert user.referred_by is None

    @pytest.mark.parametrize("email", ["not-an-email", ""])
    def test_invalid_email_rejected(self, email):
        with pytest.raises(ValidationError):
            RegisterUserRequest(name="Jane Doe", email=email, password_hash="hashed")

    def test_password_hash_not_serialized(self, user_factory):
        user = user_factory()

        assert "password_hash" not in user.model_dump()


class TestLookups:
    """Tests for fetching users and profiles."""

    def test_lookup_by_email_and_code(self, services, user_factory):
        user = user_factory(name="lookup_user")

        assert services.accounts.get_user_by_email("LOOKUP_USER@example.com").id == user.id
        assert services.accounts.get_user_by_referral_code(user.referral_code).id == user.id
        assert services.accounts.get_user_by_referral_code("missing") is None

    def test_unknown_email(self, services):
        with pytest.raises(NotFoundError):
            services.accounts.get_user_by_email("nobody@example.com")

    def test_profile_counts_referrals(self, services, user_factory):
        referrer = user_factory()
        user_factory(referred_by=referrer.referral_code)
        user_factory(referred_by=referrer.referral_code)

        profile = services.accounts.get_profile(referrer.id)

        assert profile.referral_code == referrer.referral_code
        assert profile.referred_count == 2


class TestPasswords:
    def test_hash_and_verify(self):
        hashed = hash_password("s3cret-pass")

        assert hashed != "s3cret-pass"
        assert verify_password("s3cret-pass", hashed)
        assert not verify_password("wrong", hashed)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
