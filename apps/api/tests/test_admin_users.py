"""Admin user management tests."""

import uuid

import pytest

from fertility_api.db.models import ActivityLog, PatientProfile, Provider, User


@pytest.mark.asyncio
async def test_create_provider_creates_profile(db, admin_client):
    response = await admin_client.post(
        "/admin/create-user",
        json={
            "email": "New.Doctor@Clinic.com",
            "role": "provider",
            "first_name": "Nina",
            "last_name": "Ng",
            "specialization": "Reproductive endocrinology",
        },
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["email"] == "new.doctor@clinic.com"
    assert data["role"] == "provider"

    provider = db.query(Provider).filter(Provider.user_id == uuid.UUID(data["id"])).one()
    assert provider.specialization == "Reproductive endocrinology"


@pytest.mark.asyncio
async def test_create_user_duplicate_email(db, admin_client, patient_user):
    response = await admin_client.post(
        "/admin/create-user",
        json={"email": "PATIENT@gmail.com", "role": "patient", "first_name": "P", "last_name": "L"},
    )

    assert response.status_code == 409
    assert response.json()["message"] == "A user with this email already exists."
    assert (
        db.query(ActivityLog).filter(ActivityLog.action_type == "USER_CREATE_DUPLICATE").count() == 1
    )


@pytest.mark.asyncio
async def test_create_user_invalid_role(db, admin_client):
    response = await admin_client.post(
        "/admin/create-user",
        json={"email": "x@clinic.com", "role": "superuser", "first_name": "X", "last_name": "Y"},
    )

    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "role"


@pytest.mark.asyncio
async def test_list_users(admin_client, admin_user, patient_user):
    response = await admin_client.get("/admin/users")

    emails = {u["email"] for u in response.json()["data"]}
    assert emails == {admin_user.email, patient_user.email}


@pytest.mark.asyncio
async def test_update_role_by_email(db, admin_client, staff_user):
    response = await admin_client.post(
        "/admin/update-role",
        json={"email": "STAFF@clinic.com", "role": "provider"},
    )

    assert response.status_code == 200
    assert response.json()["data"]["role"] == "provider"
    assert db.query(Provider).filter(Provider.user_id == staff_user.id).count() == 1

    entry = db.query(ActivityLog).filter(ActivityLog.action_type == "ROLE_UPDATE").one()
    assert entry.details == {"previous_role": "staff", "new_role": "provider"}


@pytest.mark.asyncio
async def test_update_role_requires_admin_session(client):
    response = await client.post(
        "/admin/update-role",
        json={"email": "staff@clinic.com", "role": "admin"},
    )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_update_role_unknown_email(admin_client):
    response = await admin_client.post(
        "/admin/update-role",
        json={"email": "nobody@clinic.com", "role": "staff"},
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_update_user_fields(db, admin_client, patient_user):
    response = await admin_client.put(
        f"/admin/users/{patient_user.id}",
        json={"first_name": "Patricia"},
    )

    assert response.status_code == 200
    assert response.json()["data"]["first_name"] == "Patricia"


@pytest.mark.asyncio
async def test_update_user_empty_payload(admin_client, patient_user):
    response = await admin_client.put(f"/admin/users/{patient_user.id}", json={})

    assert response.status_code == 400
    assert response.json()["message"] == "No fields provided for update."


@pytest.mark.asyncio
async def test_delete_user(db, admin_client, patient_user):
    user_id = patient_user.id

    response = await admin_client.delete(f"/admin/users/{user_id}")

    assert response.status_code == 200
    assert db.query(User).filter(User.id == user_id).count() == 0
    assert db.query(PatientProfile).filter(PatientProfile.user_id == user_id).count() == 0


@pytest.mark.asyncio
async def test_delete_unknown_user(admin_client):
    response = await admin_client.delete(f"/admin/users/{uuid.uuid4()}")

    assert response.status_code == 404
    assert response.json()["message"] == "User not found."
