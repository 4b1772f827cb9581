"""
HTTP tests for the FastAPI application.
"""

from decimal import Decimal
from uuid import UUID

import pytest
from fastapi.testclient import TestClient

from api.deps import get_services
from api.index import app
from core.collaborators import Role
from ledger.models import EntryCause


@pytest.fixture()
def client(services):
    app.dependency_overrides[get_services] = lambda: services
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def admin_headers(services, admin):
    return {"Authorization": f"Bearer {services.identity.issue(admin.user_id, Role.ADMIN)}"}


def register(client, name, referred_by=None):
    response = client.post("/users", json={
        "name": name,
        "email": f"{name}@example.com",
        "password": "s3cret-pass",
        "referred_by": referred_by,
    })
    assert response.status_code == 201
    body = response.json()
    return body["user"], {"Authorization": f"Bearer {body['token']}"}


def upload(client, headers, card_id, amount="20"):
    return client.post(
        "/redemptions",
        data={"gift_card_id": str(card_id), "amount": amount},
        files={"image": ("receipt.png", b"\x89PNG fake", "image/png")},
        headers=headers,
    )


class TestSystem:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestAuth:
    """Tests for registration, login and token handling."""

    def test_register_and_login(self, client):
        user, headers = register(client, "jane_doe")

        assert "password_hash" not in user
        login = client.post("/auth/login", json={"email": "JANE_DOE@example.com", "password": "s3cret-pass"})
        me = client.get("/users/me", headers=headers)

        assert login.status_code == 200
        assert me.json()["referral_code"] == user["referral_code"]

    def test_wrong_password(self, client):
        register(client, "jane_doe")

        response = client.post("/auth/login", json={"email": "jane_doe@example.com", "password": "nope"})

        assert response.status_code == 401
        assert response.json()["error"]["kind"] == "unauthorized"

    def test_duplicate_registration(self, client):
        register(client, "jane_doe")

        response = client.post("/users", json={
            "name": "jane_doe", "email": "jane_doe@example.com", "password": "s3cret-pass",
        })

        assert response.status_code == 409
        assert response.json() == {"error": {"kind": "duplicate", "message": "User already registered."}}

    def test_missing_token(self, client):
        response = client.get("/users/me")

        assert response.status_code == 401


class TestRedemptionEndpoints:
    """Tests for the redemption and referral flow over HTTP."""

    def test_submit_approve_pays_referrer(self, client, admin_headers, gift_card_factory):
        referrer, referrer_headers = register(client, "referrer")
        _, headers = register(client, "referred", referred_by=referrer["referral_code"])
        card = gift_card_factory(value=Decimal("25"))

        submitted = upload(client, headers, card.id)
        assert submitted.status_code == 201
        redemption_id = submitted.json()["redemption"]["id"]

        approved = client.post(f"/redemptions/{redemption_id}/approve", headers=admin_headers)
        again = client.post(f"/redemptions/{redemption_id}/approve", headers=admin_headers)

        assert approved.status_code == 200
        assert Decimal(approved.json()["balance"]) == Decimal("25")
        assert approved.json()["referral_bonus"]["paid"] is True
        assert again.status_code == 409
        assert again.json()["error"]["kind"] == "already_processed"

        balance = client.get(f"/users/{referrer['id']}/balance", headers=referrer_headers)
        assert Decimal(balance.json()["referral_earnings"]) == Decimal("3")

    def test_unknown_gift_card(self, client):
        _, headers = register(client, "jane_doe")

        response = upload(client, headers, "00000000-0000-0000-0000-000000000000")

        assert response.status_code == 400
        assert response.json()["error"]["kind"] == "invalid_reference"

    def test_approve_requires_admin(self, client, gift_card_factory):
        _, headers = register(client, "jane_doe")
        card = gift_card_factory()
        redemption_id = upload(client, headers, card.id).json()["redemption"]["id"]

        response = client.post(f"/redemptions/{redemption_id}/approve", headers=headers)

        assert response.status_code == 403

    def test_reject_with_reason(self, client, admin_headers, gift_card_factory):
        _, headers = register(client, "jane_doe")
        card = gift_card_factory()
        redemption_id = upload(client, headers, card.id).json()["redemption"]["id"]

        response = client.post(
            f"/redemptions/{redemption_id}/reject", json={"reason": "blurry image"}, headers=admin_headers
        )

        assert response.status_code == 200
        assert response.json()["redemption"]["reason"] == "blurry image"
        mine = client.get("/redemptions/mine", headers=headers).json()
        assert mine[0]["status"] == "rejected"


class TestReferralEndpoints:
    """Tests for referral stats over HTTP."""

    def test_leaderboard_limit(self, client, services):
        for name in ("first_referrer", "second_referrer"):
            referrer, _ = register(client, name)
            referred, _ = register(client, f"{name}_friend", referred_by=referrer["referral_code"])
            services.referrals.evaluate(UUID(referred["id"]), Decimal("10"))

        everyone = client.get("/referrals/leaderboard")
        top = client.get("/referrals/leaderboard", params={"limit": 1})

        assert len(everyone.json()) == 2
        assert len(top.json()) == 1

    @pytest.mark.parametrize("limit", [-1, 0])
    def test_leaderboard_rejects_non_positive_limit(self, client, limit):
        response = client.get("/referrals/leaderboard", params={"limit": limit})

        assert response.status_code == 422


class TestWithdrawalEndpoints:
    """Tests for withdrawals over HTTP."""

    @pytest.fixture()
    def funded(self, client, services):
        user, headers = register(client, "saver")
        services.ledger.credit(UUID(user["id"]), Decimal("100"), EntryCause.REDEMPTION_APPROVED)
        return user, headers

    def test_submit_and_reject(self, client, admin_headers, funded):
        _, headers = funded
        bank = {"account_number": "0123", "bank_name": "First Bank", "account_name": "Saver"}

        submitted = client.post("/withdrawals", json={"amount": "100", "bank_details": bank}, headers=headers)
        withdrawal_id = submitted.json()["withdrawal"]["id"]
        rejected = client.patch(f"/withdrawals/{withdrawal_id}", json={"status": "rejected"}, headers=admin_headers)
        twice = client.patch(f"/withdrawals/{withdrawal_id}", json={"status": "rejected"}, headers=admin_headers)

        assert submitted.status_code == 200
        assert Decimal(submitted.json()["remaining_balance"]) == Decimal("0")
        assert Decimal(rejected.json()["remaining_balance"]) == Decimal("100")
        assert twice.status_code == 409

    def test_overdraw(self, client, funded):
        _, headers = funded
        bank = {"account_number": "0123", "bank_name": "First Bank", "account_name": "Saver"}

        response = client.post("/withdrawals", json={"amount": "500", "bank_details": bank}, headers=headers)

        assert response.status_code == 400
        assert response.json()["error"]["kind"] == "insufficient_funds"

    def test_other_users_balance_forbidden(self, client, funded):
        saver, _ = funded
        _, headers = register(client, "nosy_user")

        response = client.get(f"/users/{saver['id']}/balance", headers=headers)

        assert response.status_code == 403


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
