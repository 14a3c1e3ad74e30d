import pytest

from darahconnect.models.database import DonorRegistration


async def register(client, headers, schedule_id):
    response = await client.post(
        "/api/v1/user/donor-registrations", json={"schedule_id": schedule_id}, headers=headers
    )
    assert response.status_code == 201
    return response.json()["data"]["id"]


@pytest.fixture
async def registration_id(client, user, user_headers, hospital, make_schedule, make_passport):
    await make_passport(user)
    schedule = await make_schedule(hospital)
    return await register(client, user_headers, schedule.id)


@pytest.mark.asyncio
async def test_create_donation_completes_registration(client, user_headers, registration_id, hospital, fetch):
    """Recording a donation closes the registration and inherits its event."""
    response = await client.post(
        "/api/v1/user/blood-donations", json={"registration_id": registration_id}, headers=user_headers
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["status"] == "pending"
    assert data["blood_type"] == "A+"
    assert data["hospital_id"] == hospital.id
    assert data["registration_id"] == registration_id

    registration = await fetch(DonorRegistration, registration_id)
    assert registration.status == "completed"


@pytest.mark.asyncio
async def test_create_donation_twice_rejected(client, user_headers, registration_id):
    """A registration yields at most one donation."""
    first = await client.post(
        "/api/v1/user/blood-donations", json={"registration_id": registration_id}, headers=user_headers
    )
    second = await client.post(
        "/api/v1/user/blood-donations", json={"registration_id": registration_id}, headers=user_headers
    )

    assert first.status_code == 201
    assert second.status_code == 400
    assert second.json()["meta"]["message"] == "Pendaftaran donor sudah completed"


@pytest.mark.asyncio
async def test_create_donation_for_someone_elses_registration(client, other_headers, registration_id):
    """Only the registered donor can record the donation."""
    response = await client.post(
        "/api/v1/user/blood-donations", json={"registration_id": registration_id}, headers=other_headers
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_blood_type_required_when_profile_has_none(
    client, make_user, headers_for, hospital, make_schedule, make_passport
):
    """Without a profile blood type the payload must carry one."""
    donor = await make_user("tanpa.golongan@darahconnect.id", blood_type=None)
    headers = headers_for(donor)
    await make_passport(donor)
    schedule = await make_schedule(hospital)
    reg_id = await register(client, headers, schedule.id)

    response = await client.post(
        "/api/v1/user/blood-donations", json={"registration_id": reg_id}, headers=headers
    )
    assert response.status_code == 400
    assert response.json()["meta"]["message"] == "Golongan darah wajib diisi"

    response = await client.post(
        "/api/v1/user/blood-donations", json={"registration_id": reg_id, "blood_type": "B-"}, headers=headers
    )
    assert response.status_code == 201
    assert response.json()["data"]["blood_type"] == "B-"


@pytest.mark.asyncio
async def test_completing_donation_issues_certificate(client, user_headers, admin_headers, registration_id):
    """Completion issues a verifiable certificate and tells the donor its number."""
    created = await client.post(
        "/api/v1/user/blood-donations", json={"registration_id": registration_id}, headers=user_headers
    )
    donation_id = created.json()["data"]["id"]

    response = await client.patch(
        f"/api/v1/admin/blood-donations/{donation_id}/status",
        json={"status": "completed"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["meta"]["message"] == (
        "berhasil memperbarui status donasi darah dan membuat sertifikat"
    )

    certificates = await client.get("/api/v1/user/certificates", headers=user_headers)
    assert certificates.json()["pagination"]["total_items"] == 1
    certificate = certificates.json()["data"][0]
    number = certificate["certificate_number"]
    assert number.startswith("DC-")
    assert len(number) == len("DC-20250101-ABCDEF")
    assert certificate["donation_id"] == donation_id

    notifications = await client.get(
        "/api/v1/user/notifications", params={"notification_type": "Certificate"}, headers=user_headers
    )
    assert notifications.json()["pagination"]["total_items"] == 1
    assert number in notifications.json()["data"][0]["message"]

    verification = await client.get(f"/api/v1/certificates/verify/{number}")
    assert verification.status_code == 200
    assert verification.json()["data"]["valid"] is True
    assert verification.json()["data"]["issued_to"] == "Budi Santoso"


@pytest.mark.asyncio
async def test_completed_donation_is_locked(client, user_headers, admin_headers, registration_id):
    """Completed donations can no longer be edited or deleted by the donor."""
    created = await client.post(
        "/api/v1/user/blood-donations", json={"registration_id": registration_id}, headers=user_headers
    )
    donation_id = created.json()["data"]["id"]
    await client.patch(
        f"/api/v1/admin/blood-donations/{donation_id}/status",
        json={"status": "completed"},
        headers=admin_headers,
    )

    response = await client.put(
        f"/api/v1/user/blood-donations/{donation_id}", json={"blood_type": "O-"}, headers=user_headers
    )
    assert response.status_code == 400
    assert response.json()["meta"]["message"] == "Donasi darah tidak bisa diubah"

    response = await client.delete(f"/api/v1/blood-donations/{donation_id}", headers=user_headers)
    assert response.status_code == 400

    response = await client.patch(
        f"/api/v1/admin/blood-donations/{donation_id}/status",
        json={"status": "rejected"},
        headers=admin_headers,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_rejected_donation_notifies_without_certificate(client, user_headers, admin_headers, registration_id):
    """Other decisions only notify the donor."""
    created = await client.post(
        "/api/v1/user/blood-donations", json={"registration_id": registration_id}, headers=user_headers
    )
    donation_id = created.json()["data"]["id"]

    response = await client.patch(
        f"/api/v1/admin/blood-donations/{donation_id}/status",
        json={"status": "deferred"},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "deferred"
    certificates = await client.get("/api/v1/user/certificates", headers=user_headers)
    assert certificates.json()["pagination"]["total_items"] == 0
    notifications = await client.get(
        "/api/v1/user/notifications", params={"notification_type": "information"}, headers=user_headers
    )
    assert notifications.json()["data"][0]["message"] == "Status donasi darah anda telah deferred"


@pytest.mark.asyncio
async def test_donation_visibility(client, user_headers, other_headers, admin_headers, registration_id):
    """Donations are visible to their donor and administrators only."""
    created = await client.post(
        "/api/v1/user/blood-donations", json={"registration_id": registration_id}, headers=user_headers
    )
    donation_id = created.json()["data"]["id"]

    assert (await client.get(f"/api/v1/blood-donations/{donation_id}", headers=user_headers)).status_code == 200
    assert (await client.get(f"/api/v1/blood-donations/{donation_id}", headers=admin_headers)).status_code == 200
    response = await client.get(f"/api/v1/blood-donations/{donation_id}", headers=other_headers)
    assert response.status_code == 403
    assert response.json()["meta"]["message"] == "Tidak memiliki izin"

    listing = await client.get("/api/v1/admin/blood-donations", headers=admin_headers)
    assert listing.json()["pagination"]["total_items"] == 1


@pytest.mark.asyncio
async def test_certificate_access_and_verification(
    client, user_headers, other_headers, admin_headers, registration_id
):
    """Certificates are private, their verification is public."""
    created = await client.post(
        "/api/v1/user/blood-donations", json={"registration_id": registration_id}, headers=user_headers
    )
    donation_id = created.json()["data"]["id"]
    await client.patch(
        f"/api/v1/admin/blood-donations/{donation_id}/status",
        json={"status": "completed"},
        headers=admin_headers,
    )
    certificate = (await client.get("/api/v1/admin/certificates", headers=admin_headers)).json()["data"][0]

    response = await client.get(f"/api/v1/certificates/{certificate['id']}", headers=other_headers)
    assert response.status_code == 403
    assert response.json()["meta"]["message"] == "Anda tidak memiliki akses ke sertifikat ini"

    response = await client.get("/api/v1/certificates/verify/DC-19990101-000000")
    assert response.status_code == 404
    assert response.json()["meta"]["message"] == "Sertifikat tidak ditemukan"

    response = await client.delete(f"/api/v1/admin/certificates/{certificate['id']}", headers=admin_headers)
    assert response.status_code == 200
    response = await client.get(f"/api/v1/certificates/{certificate['id']}", headers=user_headers)
    assert response.status_code == 404
