import pytest

from darahconnect.models.database import HealthPassport
from darahconnect.utils.clock import utcnow

URL = "/api/v1/user/health-passport"


@pytest.mark.asyncio
async def test_create_then_renew_passport(client, user_headers):
    """The first call issues a passport, later calls renew it under the same number."""
    created = await client.post(URL, headers=user_headers)
    assert created.status_code == 201
    passport = created.json()["data"]
    assert passport["passport_number"].startswith("HP-")
    assert passport["status"] == "active"

    renewed = await client.post(URL, headers=user_headers)
    assert renewed.status_code == 200
    assert renewed.json()["data"]["passport_number"] == passport["passport_number"]


@pytest.mark.asyncio
async def test_renewing_expired_passport_reactivates_it(client, user, user_headers, make_passport, fetch):
    """An expired passport becomes active again on renewal."""
    passport = await make_passport(user, status="expired", hours=-5)

    response = await client.post(URL, headers=user_headers)

    assert response.status_code == 200
    reloaded = await fetch(HealthPassport, passport.id)
    assert reloaded.status == "active"
    assert reloaded.expiry_date > utcnow()


@pytest.mark.asyncio
async def test_suspended_passport_cannot_be_renewed(client, user, user_headers, make_passport):
    """Suspension can only be lifted by an administrator."""
    await make_passport(user, status="suspended")

    response = await client.post(URL, headers=user_headers)

    assert response.status_code == 400
    assert response.json()["meta"]["message"] == "Health passport anda sedang ditangguhkan"


@pytest.mark.asyncio
async def test_get_own_passport(client, user, user_headers, other_headers, make_passport):
    """Users see their own passport; a missing one is a 404."""
    await make_passport(user)

    response = await client.get(URL, headers=user_headers)
    assert response.json()["data"]["passport_number"] == f"HP-TEST{user.id:05d}"

    response = await client.get(URL, headers=other_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_admin_suspends_and_reactivates(client, user, admin_headers, make_passport):
    """Administrators move passports between active and suspended."""
    passport = await make_passport(user)
    url = f"/api/v1/admin/health-passports/{passport.id}/status"

    response = await client.patch(url, json={"status": "suspended"}, headers=admin_headers)
    assert response.json()["data"]["status"] == "suspended"

    response = await client.patch(url, json={"status": "expired"}, headers=admin_headers)
    assert response.status_code == 400

    response = await client.patch(url, json={"status": "active", "renew": True}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "active"

    listing = await client.get("/api/v1/admin/health-passports", params={"status": "active"}, headers=admin_headers)
    assert listing.json()["pagination"]["total_items"] == 1


@pytest.mark.asyncio
async def test_admins_do_not_hold_passports(client, admin_headers):
    """Passports are issued to donors only."""
    response = await client.post(URL, headers=admin_headers)
    assert response.status_code == 403
