"""Tests for the FastAPI server."""

import pytest
from fastapi.testclient import TestClient

from api.main import app, get_guard
from walletguard.guard import SpendingGuard


WALLET = "GWALLET"


@pytest.fixture
def client(monkeypatch):
    monkeypatch.delenv("WALLETGUARD_API_KEY", raising=False)
    guard = SpendingGuard()
    app.dependency_overrides[get_guard] = lambda: guard
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_validate_and_spending_info(client):
    response = client.post("/smart-limit", json={
        "action": "validate_transaction",
        "walletKey": WALLET,
        "amount": 500,
        "recipient": "GDEST",
    })

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["isValid"] is True
    assert body["errors"] == []

    info = client.get(f"/wallets/{WALLET}/spending").json()["spendingInfo"]
    assert info["dailySpent"] == 500
    assert info["monthlySpent"] == 500
    assert info["isFrozen"] is False


def test_over_limit_returns_errors(client):
    client.post("/smart-limit", json={
        "action": "validate_transaction",
        "walletKey": WALLET,
        "amount": 900,
        "recipient": "GDEST",
    })

    response = client.post("/smart-limit", json={
        "action": "validate_transaction",
        "walletKey": WALLET,
        "amount": 200,
        "recipient": "GDEST",
    })

    body = response.json()
    assert response.status_code == 200
    assert body["isValid"] is False
    assert body["errors"] == [
        "Amount 200 XLM exceeds daily spending limit. Daily spent: 900/1000 XLM"
    ]


def test_domain_failure_maps_to_400(client):
    response = client.post("/smart-limit", json={
        "action": "set_contact_trusted",
        "walletKey": WALLET,
        "contactName": "Alice",
    })

    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "action": "set_contact_trusted",
        "error": 'Contact "Alice" not found',
    }


def test_missing_wallet_key_is_400(client):
    response = client.post("/smart-limit", json={"action": "freeze_wallet"})

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_unknown_action_is_400(client):
    response = client.post("/smart-limit", json={"action": "nope", "walletKey": WALLET})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid action: nope"


def test_check_limit(client, monkeypatch):
    monkeypatch.setenv("WALLETGUARD_SPENDING_LIMIT", "100")

    allowed = client.post("/check-limit", json={"publicKey": WALLET, "amount": 40}).json()
    blocked = client.post("/check-limit", json={"publicKey": WALLET, "amount": 150}).json()

    assert allowed["allowed"] is True
    assert allowed["message"] == "Transaction amount 40 XLM is within spending limit of 100 XLM"
    assert blocked["allowed"] is False
    assert blocked["message"] == "Transaction amount 150 XLM exceeds spending limit of 100 XLM"


def test_api_key_required_when_configured(client, monkeypatch):
    monkeypatch.setenv("WALLETGUARD_API_KEY", "secret")

    denied = client.post("/smart-limit", json={"action": "freeze_wallet", "walletKey": WALLET})
    allowed = client.post(
        "/smart-limit",
        json={"action": "freeze_wallet", "walletKey": WALLET},
        headers={"X-API-Key": "secret"},
    )

    assert denied.status_code == 401
    assert allowed.status_code == 200
    assert allowed.json()["isFrozen"] is True


def test_spending_info_matches_across_endpoints(client):
    client.post("/smart-limit", json={
        "action": "validate_transaction",
        "walletKey": WALLET,
        "amount": "12.5",
        "recipient": "GDEST",
    })

    via_action = client.post("/smart-limit", json={
        "action": "get_spending_info",
        "walletKey": WALLET,
    }).json()["spendingInfo"]
    via_route = client.get(f"/wallets/{WALLET}/spending").json()["spendingInfo"]

    assert via_action == via_route
    assert via_route["dailyLimit"] == 1000
    assert via_route["dailySpent"] == 12.5


def test_check_limit_amounts_are_numbers(client, monkeypatch):
    monkeypatch.setenv("WALLETGUARD_SPENDING_LIMIT", "100")

    body = client.post("/check-limit", json={"publicKey": WALLET, "amount": 40}).json()

    assert body["limit"] == 100
    assert body["requested"] == 40
