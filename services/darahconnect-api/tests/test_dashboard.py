from datetime import datetime

import pytest

from darahconnect.models.database import BloodDonation, Certificate, DonorRegistration, Donation, Notification


async def record_donation(save, user, hospital, schedule, donation_date, blood_type="A+", status="completed"):
    registration = await save(DonorRegistration(user_id=user.id, schedule_id=schedule.id, status="completed"))
    return await save(BloodDonation(
        user_id=user.id,
        hospital_id=hospital.id,
        registration_id=registration.id,
        donation_date=donation_date,
        blood_type=blood_type,
        status=status,
    ))


@pytest.mark.asyncio
async def test_landing_page_is_public(
    client, user, other_user, admin, hospital, make_blood_request, make_schedule, save
):
    """Landing counters are available without logging in."""
    await make_blood_request(user, hospital, status="verified")
    await make_blood_request(user, hospital, status="pending")
    await make_blood_request(admin, hospital, status="verified", event_type="campaign")
    schedule = await make_schedule(hospital)
    await record_donation(save, user, hospital, schedule, datetime(2025, 1, 10))

    response = await client.get("/api/v1/landing-page")

    assert response.status_code == 200
    assert response.json()["data"] == {
        "total_pendonor": 2,
        "total_donasi_darah": 1,
        "total_rumah_sakit": 1,
        "campaign_active": 1,
        "permintaan_darah": 1,
    }


@pytest.mark.asyncio
async def test_user_dashboard(client, user, user_headers, hospital, make_schedule, make_passport, save):
    """The user dashboard summarizes the caller's own history."""
    await make_passport(user)
    schedule = await make_schedule(hospital)
    donation = await record_donation(save, user, hospital, schedule, datetime(2025, 2, 1))
    await save(
        Certificate(
            donation_id=donation.id,
            user_id=user.id,
            certificate_number="DC-20250201-AAAAAA",
            digital_signature="f" * 64,
        ),
        Notification(user_id=user.id, title="Halo", message="Selamat datang"),
    )

    response = await client.get("/api/v1/user/dashboard", headers=user_headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total_donor"] == 1
    assert data["total_sertifikat"] == 1
    assert data["health_passport_status"] == "active"
    assert data["unread_notifications"] == 1
    assert data["last_donation"] is not None


@pytest.mark.asyncio
async def test_user_dashboard_reports_lapsed_passport(client, user, user_headers, make_passport):
    """A passport past its expiry is shown as expired."""
    await make_passport(user, hours=-2)

    response = await client.get("/api/v1/user/dashboard", headers=user_headers)

    data = response.json()["data"]
    assert data["health_passport_status"] == "expired"
    assert data["total_donor"] == 0
    assert data["last_donation"] is None


@pytest.mark.asyncio
async def test_admin_dashboard(client, user, admin, admin_headers, hospital, make_blood_request, save):
    """The admin dashboard counts requests, campaigns, users and settled money."""
    await make_blood_request(user, hospital, status="pending")
    await make_blood_request(user, hospital, status="verified")
    await make_blood_request(admin, hospital, status="verified", event_type="campaign")
    await make_blood_request(admin, hospital, status="completed", event_type="campaign")
    await save(
        Donation(user_id=user.id, order_id="ORDER-1-20250101000000", amount=50000, status="success"),
        Donation(user_id=user.id, order_id="ORDER-1-20250102000000", amount=25000, status="success"),
        Donation(user_id=user.id, order_id="ORDER-1-20250103000000", amount=99000, status="failed"),
    )

    response = await client.get("/api/v1/admin/dashboard", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["data"] == {
        "total_donor": 2,
        "total_campaign": 2,
        "donor_terverifikasi": 1,
        "request_pending": 1,
        "campaign_active": 1,
        "total_users": 1,
        "total_donations_amount": 75000,
    }


@pytest.mark.asyncio
async def test_admin_dashboard_requires_admin(client, user_headers):
    """Regular users cannot open the admin dashboard."""
    response = await client.get("/api/v1/admin/dashboard", headers=user_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_donation_report(client, user, other_user, admin_headers, hospital, make_schedule, save):
    """The report groups donations by month, blood type and status."""
    schedule = await make_schedule(hospital)
    await record_donation(save, user, hospital, schedule, datetime(2025, 1, 5), "A+", "completed")
    await record_donation(save, user, hospital, schedule, datetime(2025, 1, 20), "A+", "deferred")
    await record_donation(save, other_user, hospital, schedule, datetime(2025, 2, 3), "O+", "completed")
    await record_donation(save, other_user, hospital, schedule, datetime(2025, 3, 9), "O+", "pending")

    response = await client.get("/api/v1/admin/reports", headers=admin_headers)

    assert response.status_code == 200
    report = response.json()["data"]
    assert report["total"] == 4
    assert report["completion_rate"] == 50.0
    assert report["monthly"] == {"2025-01": 2, "2025-02": 1, "2025-03": 1}
    assert report["blood_type_distribution"] == {"A+": 2, "O+": 2}
    assert report["status_distribution"] == {"completed": 2, "deferred": 1, "pending": 1}


@pytest.mark.asyncio
async def test_empty_donation_report(client, admin_headers):
    """Without donations the report is all zeros."""
    response = await client.get("/api/v1/admin/reports", headers=admin_headers)

    assert response.json()["data"] == {
        "total": 0,
        "completion_rate": 0.0,
        "monthly": {},
        "blood_type_distribution": {},
        "status_distribution": {},
    }
