"""
Unit Tests for the Referral Bonus Engine

Tests cover:
1. Edge registration (valid, invalid, duplicate codes)
2. One-time bonus on first approval
3. Idempotency of evaluate
4. Threshold policy
5. Stats and leaderboard
"""

import threading
from decimal import Decimal
from uuid import uuid4

import pytest

from core.config import ReferralPolicy, Settings
from core.container import build_services
from core.errors import NotFoundError
from ledger.models import Account
from referrals.policy import (
    Condition,
    ConditionOperator,
    first_approval_policy,
    policy_from_settings,
    threshold_policy,
)


class TestRegisterEdge:
    """Tests for linking referrers to referred users."""

    def test_registration_with_valid_code_creates_edge(self, services, user_factory):
        referrer = user_factory()
        referred = user_factory(referred_by=referrer.referral_code)

        referral = services.referrals.get_referral_for(referred.id)

        assert referred.referred_by == referrer.referral_code
        assert referral is not None
        assert referral.referrer_user_id == referrer.id
        assert referral.is_redeemed is False
        assert services.accounts.get_user(referrer.id).referrals == [referred.id]

    def test_invalid_code_is_soft_failure(self, services, user_factory):
        """Test that an unknown code registers the user without a referrer."""
        referred = user_factory(referred_by="NOPE1234")

        assert referred.referred_by is None
        assert services.referrals.get_referral_for(referred.id) is None
        assert services.referrals.register_edge("NOPE1234", referred.id) is None

    def test_one_edge_per_referred_user(self, services, user_factory):
        first = user_factory()
        second = user_factory()
        referred = user_factory(referred_by=first.referral_code)

        again = services.referrals.register_edge(first.referral_code, referred.id)
        other = services.referrals.register_edge(second.referral_code, referred.id)

        assert again.id == services.referrals.get_referral_for(referred.id).id
        assert other is None
        assert services.accounts.get_user(referred.id).referred_by == first.referral_code
        assert services.accounts.get_user(second.id).referrals == []

    def test_edge_for_existing_user_sets_referred_by(self, services, user_factory):
        referrer = user_factory()
        referred = user_factory()

        referral = services.referrals.register_edge(referrer.referral_code, referred.id)

        assert referral is not None
        assert services.accounts.get_user(referred.id).referred_by == referrer.referral_code

    def test_self_referral_ignored(self, services, user_factory):
        user = user_factory()

        assert services.referrals.register_edge(user.referral_code, user.id) is None

    def test_unknown_referred_user_fails(self, services, user_factory):
        referrer = user_factory()

        with pytest.raises(NotFoundError):
            services.referrals.register_edge(referrer.referral_code, uuid4())


class TestReferralBonus:
    """Tests for paying the referral bonus on approval."""

    def test_bonus_paid_once_across_approvals(
        self, services, user_factory, gift_card_factory, submit, admin
    ):
        referrer = user_factory()
        referred = user_factory(referred_by=referrer.referral_code)
        card = gift_card_factory(value=Decimal("10"))

        first = services.redemptions.approve_redemption(submit(referred, card).id, admin)
        services.redemptions.approve_redemption(submit(referred, card).id, admin)

        assert first.referral_bonus.paid is True
        assert first.referral_bonus.amount == Decimal("3")
        referrer_after = services.accounts.get_user(referrer.id)
        assert referrer_after.referral_earnings == Decimal("3")
        assert referrer_after.balance == Decimal("0")
        assert services.referrals.get_referral_for(referred.id).is_redeemed is True
        assert services.accounts.get_user(referred.id).balance == Decimal("20")

    def test_evaluate_twice_pays_at_most_once(self, services, user_factory):
        referrer = user_factory()
        referred = user_factory(referred_by=referrer.referral_code)

        first = services.referrals.evaluate(referred.id, Decimal("10"))
        second = services.referrals.evaluate(referred.id, Decimal("10"))

        assert first.paid is True
        assert second.paid is False
        assert services.ledger.get_balance(referrer.id).referral_earnings == Decimal("3")

    def test_concurrent_evaluate_pays_once(self, services, user_factory):
        referrer = user_factory()
        referred = user_factory(referred_by=referrer.referral_code)
        outcomes = []

        def evaluate():
            outcomes.append(services.referrals.evaluate(referred.id, Decimal("10")).paid)

        threads = [threading.Thread(target=evaluate) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert outcomes.count(True) == 1
        assert services.ledger.get_balance(referrer.id).referral_earnings == Decimal("3")

    def test_unreferred_user_is_noop(self, services, user_factory):
        user = user_factory()

        outcome = services.referrals.evaluate(user.id, Decimal("10"))

        assert outcome.paid is False
        assert outcome.referral is None

    def test_bonus_amount_is_configurable(self):
        services = build_services(Settings(referral_bonus=Decimal("7.50")))
        referrer = services.accounts.register_user(_register("referrer"))
        referred = services.accounts.register_user(_register("referred", referrer.referral_code))

        services.referrals.evaluate(referred.id, Decimal("10"))

        assert services.accounts.get_user(referrer.id).referral_earnings == Decimal("7.50")

    def test_bonus_recorded_in_ledger(self, services, user_factory):
        referrer = user_factory()
        referred = user_factory(referred_by=referrer.referral_code)

        outcome = services.referrals.evaluate(referred.id, Decimal("10"))

        history = services.ledger.get_ledger_history(referrer.id, account=Account.REFERRAL_EARNINGS)
        assert history.total_count == 1
        assert history.entries[0].reference_id == outcome.referral.id
        assert services.ledger.replay_balance(referrer.id, Account.REFERRAL_EARNINGS).consistent

    def test_failed_bonus_credit_leaves_edge_unredeemed(self, services, user_factory, monkeypatch):
        referrer = user_factory()
        referred = user_factory(referred_by=referrer.referral_code)

        def broken_credit(*args, **kwargs):
            raise RuntimeError("ledger unavailable")

        monkeypatch.setattr(services.ledger, "credit", broken_credit)

        with pytest.raises(RuntimeError):
            services.referrals.evaluate(referred.id, Decimal("10"))

        assert services.referrals.get_referral_for(referred.id).is_redeemed is False


class TestThresholdPolicy:
    """Tests for the cumulative-threshold policy configuration."""

    @pytest.fixture()
    def threshold_services(self):
        return build_services(Settings(
            referral_policy=ReferralPolicy.THRESHOLD,
            referral_threshold=Decimal("100"),
            referral_bonus=Decimal("3"),
        ))

    def test_bonus_waits_for_threshold(self, threshold_services):
        services = threshold_services
        referrer = services.accounts.register_user(_register("referrer"))
        referred = services.accounts.register_user(_register("referred", referrer.referral_code))

        first = services.referrals.evaluate(referred.id, Decimal("60"))
        second = services.referrals.evaluate(referred.id, Decimal("40"))
        third = services.referrals.evaluate(referred.id, Decimal("40"))

        assert first.paid is False
        assert first.referral.total_approved_amount == Decimal("60")
        assert second.paid is True
        assert third.paid is False
        assert services.accounts.get_user(referrer.id).referral_earnings == Decimal("3")

    def test_policy_from_settings(self):
        policy = policy_from_settings(Settings(referral_policy=ReferralPolicy.THRESHOLD))

        assert policy.name == ReferralPolicy.THRESHOLD
        assert policy.to_dict()["metadata"] == {"threshold": "100"}


class TestPolicyConditions:
    """Tests for policy condition evaluation."""

    def test_first_approval_policy(self):
        policy = first_approval_policy(Decimal("3"))

        assert policy.qualifies({"referral": {"is_redeemed": False}})
        assert not policy.qualifies({"referral": {"is_redeemed": True}})

    def test_threshold_policy(self):
        policy = threshold_policy(Decimal("3"), Decimal("100"))

        assert not policy.qualifies({"referral": {"is_redeemed": False, "total_approved_amount": Decimal("99.99")}})
        assert policy.qualifies({"referral": {"is_redeemed": False, "total_approved_amount": Decimal("100")}})

    def test_missing_field_does_not_qualify(self):
        condition = Condition(field="referral.total_approved_amount", operator=ConditionOperator.GREATER_THAN, value=1)

        assert condition.evaluate({}) is False


class TestStats:
    """Tests for referral stats and the leaderboard."""

    def test_stats(self, services, user_factory):
        referrer = user_factory()
        redeemed = user_factory(referred_by=referrer.referral_code)
        user_factory(referred_by=referrer.referral_code)
        services.referrals.evaluate(redeemed.id, Decimal("10"))

        stats = services.referrals.get_stats(referrer.referral_code)

        assert stats.referred_count == 2
        assert stats.redeemed_count == 1
        assert stats.earnings == Decimal("3")

    def test_stats_unknown_code(self, services):
        with pytest.raises(NotFoundError):
            services.referrals.get_stats("missing")

    def test_leaderboard_orders_by_earnings(self, services, user_factory):
        top = user_factory(name="top_referrer")
        second = user_factory(name="second_referrer")
        user_factory(name="no_referrals")
        for _ in range(2):
            referred = user_factory(referred_by=top.referral_code)
            services.referrals.evaluate(referred.id, Decimal("10"))
        referred = user_factory(referred_by=second.referral_code)
        services.referrals.evaluate(referred.id, Decimal("10"))

        board = services.referrals.leaderboard()

        assert [e.user_id for e in board] == [top.id, second.id]
        assert board[0].referral_earnings == Decimal("6")
        assert board[0].referred_count == 2


def _register(name, referred_by=None):
    from accounts.models import RegisterUserRequest

    return RegisterUserRequest(
        name=name,
        email=f"{name}@example.com",
        password_hash="hashed",
        referred_by=referred_by,
    )


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
