from datetime import timedelta

import pytest

from darahconnect.models.database import BloodRequest, DonorRegistration, DonorSchedule
from darahconnect.utils.clock import utcnow


URL = "/api/v1/user/donor-registrations"


@pytest.mark.asyncio
async def test_register_for_schedule_books_slot(client, user, user_headers, hospital, make_schedule, make_passport, fetch):
    """Registering takes one slot from the schedule."""
    await make_passport(user)
    schedule = await make_schedule(hospital, slots=2)

    response = await client.post(URL, json={"schedule_id": schedule.id, "notes": "Pagi"}, headers=user_headers)

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["status"] == "registered"
    assert data["schedule"]["id"] == schedule.id
    assert data["event_date"] is not None

    reloaded = await fetch(DonorSchedule, schedule.id)
    assert reloaded.slots_available == 1
    assert reloaded.slots_booked == 1


@pytest.mark.asyncio
async def test_register_requires_exactly_one_target(client, user_headers):
    """Either a schedule or a request, never both or neither."""
    response = await client.post(URL, json={}, headers=user_headers)
    assert response.status_code == 400
    assert response.json()["meta"]["message"] == "Pilih salah satu: schedule_id atau request_id"

    response = await client.post(URL, json={"schedule_id": 1, "request_id": 1}, headers=user_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_register_without_passport(client, user_headers, hospital, make_schedule):
    """A health passport is required."""
    schedule = await make_schedule(hospital)
    response = await client.post(URL, json={"schedule_id": schedule.id}, headers=user_headers)

    assert response.status_code == 400
    assert response.json()["meta"]["message"] == (
        "Anda belum memiliki health passport, silahkan buat terlebih dahulu"
    )


@pytest.mark.asyncio
async def test_register_with_expired_passport(client, user, user_headers, hospital, make_schedule, make_passport):
    """An expired passport blocks registration."""
    await make_passport(user, hours=-1)
    schedule = await make_schedule(hospital)
    response = await client.post(URL, json={"schedule_id": schedule.id}, headers=user_headers)

    assert response.status_code == 400
    assert response.json()["meta"]["message"] == "Health passport sudah expired"


@pytest.mark.asyncio
async def test_register_with_suspended_passport(client, user, user_headers, hospital, make_schedule, make_passport):
    """A suspended passport is not valid either."""
    await make_passport(user, status="suspended")
    schedule = await make_schedule(hospital)
    response = await client.post(URL, json={"schedule_id": schedule.id}, headers=user_headers)

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_duplicate_registration_rejected(client, user, user_headers, hospital, make_schedule, make_passport):
    """A donor cannot hold two active registrations for one event."""
    await make_passport(user)
    schedule = await make_schedule(hospital)

    first = await client.post(URL, json={"schedule_id": schedule.id}, headers=user_headers)
    second = await client.post(URL, json={"schedule_id": schedule.id}, headers=user_headers)

    assert first.status_code == 201
    assert second.status_code == 400
    assert second.json()["meta"]["message"] == "Anda sudah mendaftar di event ini"


@pytest.mark.asyncio
async def test_full_schedule_rejected(
    client, user, other_user, headers_for, hospital, make_schedule, make_passport, fetch
):
    """The last slot goes to exactly one donor."""
    await make_passport(user)
    await make_passport(other_user)
    schedule = await make_schedule(hospital, slots=1)

    first = await client.post(URL, json={"schedule_id": schedule.id}, headers=headers_for(user))
    second = await client.post(URL, json={"schedule_id": schedule.id}, headers=headers_for(other_user))

    assert first.status_code == 201
    assert second.status_code == 400
    assert second.json()["meta"]["message"] == "Slot donor sudah penuh"
    reloaded = await fetch(DonorSchedule, schedule.id)
    assert reloaded.slots_available == 0
    assert reloaded.slots_booked == 1


@pytest.mark.asyncio
async def test_closed_schedule_rejected(client, user, user_headers, hospital, make_schedule, make_passport):
    """Completed schedules no longer take registrations."""
    await make_passport(user)
    schedule = await make_schedule(hospital, status="completed")
    response = await client.post(URL, json={"schedule_id": schedule.id}, headers=user_headers)

    assert response.status_code == 400
    assert response.json()["meta"]["message"] == "Jadwal donor sudah completed"


@pytest.mark.asyncio
async def test_pending_request_rejected(
    client, user, other_user, user_headers, hospital, make_blood_request, make_passport
):
    """Requests must be verified before donors can join."""
    await make_passport(user)
    pending = await make_blood_request(other_user, hospital, status="pending")
    response = await client.post(URL, json={"request_id": pending.id}, headers=user_headers)
    assert response.status_code == 400
    assert response.json()["meta"]["message"] == "Permintaan darah masih pending"

    completed = await make_blood_request(other_user, hospital, status="completed")
    response = await client.post(URL, json={"request_id": completed.id}, headers=user_headers)
    assert response.json()["meta"]["message"] == "Permintaan darah sudah completed"


@pytest.mark.asyncio
async def test_last_request_slot_marks_request_registered(
    client, user, other_user, user_headers, hospital, make_blood_request, make_passport, fetch
):
    """Booking the last slot of a request moves it to registered; cancelling reopens it."""
    await make_passport(user)
    blood_request = await make_blood_request(other_user, hospital, status="verified", quantity=1)

    response = await client.post(URL, json={"request_id": blood_request.id}, headers=user_headers)
    assert response.status_code == 201
    registration_id = response.json()["data"]["id"]

    reloaded = await fetch(BloodRequest, blood_request.id)
    assert reloaded.status == "registered"
    assert reloaded.slots_available == 0
    assert reloaded.slots_booked == 1

    response = await client.put(
        f"{URL}/{registration_id}", json={"status": "cancelled"}, headers=user_headers
    )
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "cancelled"

    reloaded = await fetch(BloodRequest, blood_request.id)
    assert reloaded.status == "verified"
    assert reloaded.slots_available == 1
    assert reloaded.slots_booked == 0


@pytest.mark.asyncio
async def test_user_can_only_cancel_registration(
    client, user, user_headers, hospital, make_schedule, make_passport
):
    """Donors can edit notes or cancel, nothing else."""
    await make_passport(user)
    schedule = await make_schedule(hospital)
    created = await client.post(URL, json={"schedule_id": schedule.id}, headers=user_headers)
    registration_id = created.json()["data"]["id"]

    response = await client.put(f"{URL}/{registration_id}", json={"status": "completed"}, headers=user_headers)
    assert response.status_code == 400

    response = await client.put(f"{URL}/{registration_id}", json={"notes": "Datang jam 9"}, headers=user_headers)
    assert response.status_code == 200
    assert response.json()["data"]["notes"] == "Datang jam 9"


@pytest.mark.asyncio
async def test_cancel_after_event_rejected(client, user, user_headers, hospital, save):
    """Cancelling is only possible before the event starts."""
    past_schedule = await save(DonorSchedule(
        hospital_id=hospital.id,
        event_name="Donor Kemarin",
        event_date=utcnow() - timedelta(days=1),
        slots_available=4,
        slots_booked=1,
        status="ongoing",
    ))
    registration = await save(DonorRegistration(
        user_id=user.id, schedule_id=past_schedule.id, status="registered"
    ))

    response = await client.put(
        f"{URL}/{registration.id}", json={"status": "cancelled"}, headers=user_headers
    )

    assert response.status_code == 400
    assert response.json()["meta"]["message"] == "Pendaftaran tidak dapat dibatalkan setelah event berlangsung"


@pytest.mark.asyncio
async def test_registration_visible_to_owner_and_admin_only(
    client, user, user_headers, other_headers, admin_headers, hospital, make_schedule, make_passport
):
    """Registrations are private to their donor and administrators."""
    await make_passport(user)
    schedule = await make_schedule(hospital)
    created = await client.post(URL, json={"schedule_id": schedule.id}, headers=user_headers)
    registration_id = created.json()["data"]["id"]

    assert (await client.get(f"/api/v1/donor-registrations/{registration_id}", headers=user_headers)).status_code == 200
    assert (await client.get(f"/api/v1/donor-registrations/{registration_id}", headers=admin_headers)).status_code == 200
    assert (await client.get(f"/api/v1/donor-registrations/{registration_id}", headers=other_headers)).status_code == 403

    mine = await client.get(URL, headers=user_headers)
    assert mine.json()["pagination"]["total_items"] == 1
    theirs = await client.get(URL, headers=other_headers)
    assert theirs.json()["pagination"]["total_items"] == 0


@pytest.mark.asyncio
async def test_admin_no_show_releases_slot_and_clears_notes(
    client, user, user_headers, admin_headers, hospital, make_schedule, make_passport, fetch
):
    """A no-show frees the slot and wipes the donor's notes."""
    await make_passport(user)
    schedule = await make_schedule(hospital, slots=3)
    created = await client.post(
        URL, json={"schedule_id": schedule.id, "notes": "Mungkin telat"}, headers=user_headers
    )
    registration_id = created.json()["data"]["id"]

    response = await client.patch(
        f"/api/v1/admin/donor-registrations/{registration_id}/status",
        json={"status": "no-show"},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "no-show"
    assert response.json()["data"]["notes"] is None
    reloaded = await fetch(DonorSchedule, schedule.id)
    assert reloaded.slots_available == 3
    assert reloaded.slots_booked == 0

    response = await client.patch(
        f"/api/v1/admin/donor-registrations/{registration_id}/status",
        json={"status": "registered"},
        headers=admin_headers,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_delete_registration_releases_slot(
    client, user, user_headers, hospital, make_schedule, make_passport, fetch
):
    """Deleting an active registration gives its slot back."""
    await make_passport(user)
    schedule = await make_schedule(hospital, slots=2)
    created = await client.post(URL, json={"schedule_id": schedule.id}, headers=user_headers)
    registration_id = created.json()["data"]["id"]

    response = await client.delete(f"/api/v1/donor-registrations/{registration_id}", headers=user_headers)

    assert response.status_code == 200
    assert await fetch(DonorRegistration, registration_id) is None
    reloaded = await fetch(DonorSchedule, schedule.id)
    assert reloaded.slots_available == 2


@pytest.mark.asyncio
async def test_reopened_campaign_accepts_new_donors(
    client, user, other_user, user_headers, other_headers, admin_headers, hospital, make_blood_request, make_passport
):
    """Once a full campaign gains slots, another donor can sign up."""
    await make_passport(user)
    await make_passport(other_user)
    campaign = await make_blood_request(user, hospital, status="verified", quantity=1, event_type="campaign")

    response = await client.post(URL, json={"request_id": campaign.id}, headers=user_headers)
    assert response.status_code == 201

    response = await client.put(
        f"/api/v1/admin/campaigns/{campaign.id}", json={"slots_available": 3}, headers=admin_headers
    )
    assert response.json()["data"]["status"] == "verified"

    response = await client.post(URL, json={"request_id": campaign.id}, headers=other_headers)
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_registration_edit_is_owner_only(
    client, user, user_headers, admin_headers, hospital, make_schedule, make_passport
):
    """Even administrators cannot edit a donor's registration through the user route."""
    await make_passport(user)
    schedule = await make_schedule(hospital)
    created = await client.post(URL, json={"schedule_id": schedule.id}, headers=user_headers)
    registration_id = created.json()["data"]["id"]

    response = await client.put(f"{URL}/{registration_id}", json={"notes": "Ubah"}, headers=admin_headers)

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_deleting_user_gives_back_booked_slots(
    client, user, user_headers, admin_headers, hospital, make_schedule, make_passport, fetch
):
    """Removing an account releases the slots its signups were holding."""
    await make_passport(user)
    schedule = await make_schedule(hospital, slots=2)
    created = await client.post(URL, json={"schedule_id": schedule.id}, headers=user_headers)
    assert created.status_code == 201

    response = await client.delete(f"/api/v1/admin/users/{user.id}", headers=admin_headers)

    assert response.status_code == 200
    reloaded = await fetch(DonorSchedule, schedule.id)
    assert reloaded.slots_available == 2
    assert reloaded.slots_booked == 0
