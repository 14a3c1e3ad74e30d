import hashlib
from unittest.mock import AsyncMock, patch

import pytest

from darahconnect.models.database import Donation
from darahconnect.services.donation_service import (
    generate_order_id,
    parse_order_user_id,
    parse_transaction_time,
)
from darahconnect.services.payment_gateway import MidtransClient

WEBHOOK_URL = "/api/v1/donations/webhook"


def signed(order_id, transaction_status, gross_amount="50000.00", status_code="200", **extra):
    raw = f"{order_id}{status_code}{gross_amount}SB-Mid-server-test"
    payload = {
        "order_id": order_id,
        "transaction_status": transaction_status,
        "status_code": status_code,
        "gross_amount": gross_amount,
        "signature_key": hashlib.sha512(raw.encode()).hexdigest(),
    }
    payload.update(extra)
    return payload


def test_order_id_round_trip():
    """Order ids carry the payer's id."""
    order_id = generate_order_id(42)
    assert order_id.startswith("ORDER-42-")
    assert parse_order_user_id(order_id) == 42
    assert parse_order_user_id("INV-42") is None


def test_transaction_time_is_stored_as_utc():
    """Gateway timestamps are local time, seven hours ahead of UTC."""
    parsed = parse_transaction_time("2025-01-15 14:30:00")
    assert parsed.hour == 7
    assert parsed.minute == 30
    assert parse_transaction_time("15/01/2025") is None
    assert parse_transaction_time(None) is None


@pytest.mark.asyncio
async def test_create_donation_transaction(client, user, user_headers, fetch):
    """A pending donation is recorded with the gateway's redirect URL."""
    with patch("darahconnect.services.donation_service.MidtransClient") as mock_gateway:
        gateway = AsyncMock()
        gateway.create_transaction.return_value = {
            "token": "snap-token-123",
            "redirect_url": "https://app.sandbox.midtrans.com/snap/v2/vtweb/snap-token-123",
        }
        mock_gateway.return_value.__aenter__.return_value = gateway

        response = await client.post("/api/v1/user/donations", json={"amount": 50000}, headers=user_headers)

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["token"] == "snap-token-123"
    assert data["order_id"].startswith(f"ORDER-{user.id}-")

    order_id, amount, customer = gateway.create_transaction.call_args.args
    assert order_id == data["order_id"]
    assert amount == 50000
    assert customer["email"] == "donor@darahconnect.id"

    listing = await client.get("/api/v1/user/donations", headers=user_headers)
    donation = listing.json()["data"][0]
    assert donation["status"] == "pending"
    assert donation["amount"] == 50000
    assert donation["redirect_url"].endswith("snap-token-123")


@pytest.mark.asyncio
async def test_create_donation_minimum_amount(client, user_headers):
    """Amounts below Rp1000 are rejected before reaching the gateway."""
    response = await client.post("/api/v1/user/donations", json={"amount": 500}, headers=user_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_admin_cannot_donate(client, admin_headers):
    """Monetary donations are made by users."""
    response = await client.post("/api/v1/user/donations", json={"amount": 50000}, headers=admin_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_webhook_rejects_bad_signature(client):
    """Notifications must carry a valid signature."""
    payload = signed("ORDER-1-20250115143000", "settlement")
    payload["signature_key"] = "0" * 128

    response = await client.post(WEBHOOK_URL, json=payload)

    assert response.status_code == 403
    assert response.json()["meta"]["message"] == "Signature tidak valid"


def test_verify_signature_accepts_only_exact_key():
    """Only the exact SHA-512 key validates; empty or non-ASCII keys are refused."""
    payload = signed("ORDER-1-20250115143000", "settlement")
    args = (payload["order_id"], payload["status_code"], payload["gross_amount"])

    assert MidtransClient.verify_signature(*args, payload["signature_key"])
    assert not MidtransClient.verify_signature(*args, payload["signature_key"][:-1])
    assert not MidtransClient.verify_signature(*args, "")
    assert not MidtransClient.verify_signature(*args, None)
    assert not MidtransClient.verify_signature(*args, "tanda-tangan-é")


@pytest.mark.asyncio
async def test_webhook_rejects_unknown_status(client):
    """Unknown transaction statuses are refused."""
    response = await client.post(WEBHOOK_URL, json=signed("ORDER-1-20250115143000", "refund"))

    assert response.status_code == 400
    assert response.json()["meta"]["message"] == "Invalid transaction status"


@pytest.mark.asyncio
async def test_webhook_settles_pending_donation(client, user, save):
    """Settlement marks the donation successful and records payment details."""
    order_id = f"ORDER-{user.id}-20250115143000"
    await save(Donation(user_id=user.id, order_id=order_id, amount=50000, status="pending"))

    response = await client.post(
        WEBHOOK_URL,
        json=signed(
            order_id,
            "settlement",
            payment_type="bank_transfer",
            transaction_time="2025-01-15 14:31:00",
        ),
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "success"
    assert data["payment_type"] == "bank_transfer"
    assert data["transaction_time"] == "2025-01-15T07:31:00"


@pytest.mark.asyncio
async def test_webhook_creates_unknown_order(client, user):
    """A notification for an unknown order creates the donation."""
    order_id = f"ORDER-{user.id}-20250115150000"
    response = await client.post(WEBHOOK_URL, json=signed(order_id, "pending", gross_amount="75000.00"))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["order_id"] == order_id
    assert data["user_id"] == user.id
    assert data["amount"] == 75000
    assert data["status"] == "pending"


@pytest.mark.asyncio
async def test_webhook_unknown_payer_is_anonymous(client):
    """Orders whose payer no longer exists are kept without a user."""
    response = await client.post(WEBHOOK_URL, json=signed("ORDER-999-20250115150000", "expire"))

    assert response.status_code == 200
    assert response.json()["data"]["user_id"] is None
    assert response.json()["data"]["status"] == "expired"


@pytest.mark.asyncio
async def test_webhook_never_downgrades_success(client, user, save):
    """Late failure notifications do not undo a settled payment."""
    order_id = f"ORDER-{user.id}-20250115160000"
    await save(Donation(user_id=user.id, order_id=order_id, amount=50000, status="success"))

    response = await client.post(WEBHOOK_URL, json=signed(order_id, "expire"))

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "success"


@pytest.mark.asyncio
async def test_webhook_fraud_challenge_stays_pending(client, user):
    """A challenged capture is not a payment yet."""
    order_id = f"ORDER-{user.id}-20250115170000"
    response = await client.post(WEBHOOK_URL, json=signed(order_id, "capture", fraud_status="challenge"))

    assert response.json()["data"]["status"] == "pending"


@pytest.mark.asyncio
async def test_admin_donation_listing(client, user, save, admin_headers, user_headers):
    """Administrators see every donation and can filter by status."""
    await save(
        Donation(user_id=user.id, order_id="ORDER-1-20250101000000", amount=10000, status="success"),
        Donation(user_id=user.id, order_id="ORDER-1-20250102000000", amount=20000, status="failed"),
    )

    response = await client.get("/api/v1/admin/donations", params={"status": "success"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["pagination"]["total_items"] == 1
    donation_id = response.json()["data"][0]["id"]

    response = await client.get(f"/api/v1/admin/donations/{donation_id}", headers=admin_headers)
    assert response.json()["data"]["amount"] == 10000

    response = await client.get("/api/v1/admin/donations/9999", headers=admin_headers)
    assert response.status_code == 404

    response = await client.get("/api/v1/admin/donations", headers=user_headers)
    assert response.status_code == 403
