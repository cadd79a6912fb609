"""
Benefit verification wizard tests.

Tests cover:
- Session start/resume and ownership
- Step precondition checks and redirects
- Employer flow end to end with an approved work email
- Declined verification (missing or unmatched email) still advances
- Non-sponsored flows skip straight to package selection
- Package listing: organization packages vs. defaults
- Going back: a new organization or source discards the verification result
"""

import uuid
from decimal import Decimal

import pytest

from fertility_api.db.models import (
    ActivityLog,
    ApprovedEmail,
    BenefitVerificationSession,
    Organization,
    OrganizationPackage,
    Package,
    PatientProfile,
    UserBenefitVerificationAttempt,
)
from fertility_api.services.benefit_verification_service import (
    EMAIL_NOT_APPROVED_REASON,
    EMAIL_REQUIRED_REASON,
    VERIFIED_MESSAGE,
)

PERSONAL_INFO = {
    "first_name": "Jane",
    "last_name": "Doe",
    "date_of_birth": "1990-05-01",
    "phone_number": "+1 (555) 123-4567",
    "address_line1": "123 Main St",
    "address_city": "Springfield",
    "address_state": "IL",
    "address_postal_code": "62701",
    "address_country": "us",
}


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def catalog(db):
    """Acme Co with an approved email, two linked packages and one default package."""
    acme = Organization(name="Acme Co", domain="acme.com")
    db.add(acme)
    db.flush()
    db.add(ApprovedEmail(organization_id=acme.id, email="jane@acme.com"))

    base = Package(name="Acme Basic", tier="basic", monthly_cost=Decimal("100.00"),
                   is_base_employer_package=True)
    premium = Package(name="Acme Premium", tier="premium", monthly_cost=Decimal("250.00"))
    default = Package(name="Standard", tier="basic", monthly_cost=Decimal("150.00"))
    db.add_all([base, premium, default])
    db.flush()
    db.add_all([
        OrganizationPackage(organization_id=acme.id, package_id=base.id),
        OrganizationPackage(organization_id=acme.id, package_id=premium.id),
    ])
    db.commit()
    return {"acme": acme, "base": base, "premium": premium, "default": default}


async def _start(client) -> str:
    response = await client.post("/benefit-verification/sessions")
    assert response.status_code == 200
    return response.json()["data"]["id"]


async def _employer_session_through_personal_info(client, catalog) -> str:
    session_id = await _start(client)
    await client.put(
        f"/benefit-verification/sessions/{session_id}/benefit-source",
        json={"benefit_source": "employer_or_plan"},
    )
    await client.put(
        f"/benefit-verification/sessions/{session_id}/sponsoring-organization",
        json={"organization_id": str(catalog["acme"].id)},
    )
    response = await client.put(
        f"/benefit-verification/sessions/{session_id}/personal-information",
        json=PERSONAL_INFO,
    )
    assert response.status_code == 200
    return session_id


# =============================================================================
# Session
# =============================================================================

@pytest.mark.asyncio
async def test_start_session_resumes_open_session(patient_client):
    first = await patient_client.post("/benefit-verification/sessions")
    second = await patient_client.post("/benefit-verification/sessions")

    assert first.json()["message"] == "Session started."
    assert second.json()["message"] == "Session resumed."
    assert first.json()["data"]["id"] == second.json()["data"]["id"]
    assert first.json()["data"]["current_step"] == "benefit_source"


@pytest.mark.asyncio
async def test_wizard_requires_session_cookie(client):
    response = await client.post("/benefit-verification/sessions")

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_session_is_private_to_owner(db, patient_client, admin_user):
    other = BenefitVerificationSession(user_id=admin_user.id)
    db.add(other)
    db.commit()

    response = await patient_client.get(f"/benefit-verification/sessions/{other.id}")

    assert response.status_code == 404
    assert response.json()["message"] == "Benefit verification session not found."


# =============================================================================
# Step checks
# =============================================================================

@pytest.mark.asyncio
async def test_step_check_redirects_to_first_missing_step(patient_client, catalog):
    session_id = await _start(patient_client)

    response = await patient_client.get(
        f"/benefit-verification/sessions/{session_id}/steps/personal_information"
    )
    assert response.json()["data"] == {
        "step": "personal_information",
        "allowed": False,
        "redirect_to": "benefit_source",
    }

    await patient_client.put(
        f"/benefit-verification/sessions/{session_id}/benefit-source",
        json={"benefit_source": "employer_or_plan"},
    )
    response = await patient_client.get(
        f"/benefit-verification/sessions/{session_id}/steps/package_selection"
    )
    assert response.json()["data"]["redirect_to"] == "organization_search"

    response = await patient_client.get(
        f"/benefit-verification/sessions/{session_id}/steps/organization_search"
    )
    assert response.json()["data"]["allowed"] is True


@pytest.mark.asyncio
async def test_guarded_step_rejects_skipped_prerequisite(patient_client, catalog):
    session_id = await _start(patient_client)

    response = await patient_client.put(
        f"/benefit-verification/sessions/{session_id}/sponsoring-organization",
        json={"organization_id": str(catalog["acme"].id)},
    )

    assert response.status_code == 400
    assert response.json()["errors"] == {"redirect_to": "benefit_source"}


# =============================================================================
# Employer flow
# =============================================================================

@pytest.mark.asyncio
async def test_employer_flow_with_approved_email(db, patient_client, patient_user, catalog):
    session_id = await _start(patient_client)

    response = await patient_client.put(
        f"/benefit-verification/sessions/{session_id}/benefit-source",
        json={"benefit_source": "employer_or_plan"},
    )
    assert response.json()["data"]["next_step"] == "organization_search"

    search = await patient_client.get("/benefit-verification/organizations/search", params={"q": "acm"})
    assert search.json()["data"] == [{"id": str(catalog["acme"].id), "label": "Acme Co"}]

    response = await patient_client.put(
        f"/benefit-verification/sessions/{session_id}/sponsoring-organization",
        json={"organization_id": str(catalog["acme"].id)},
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["next_step"] == "personal_information"
    assert data["session"]["sponsoring_organization_name"] == "Acme Co"

    response = await patient_client.put(
        f"/benefit-verification/sessions/{session_id}/personal-information",
        json=PERSONAL_INFO,
    )
    data = response.json()["data"]
    assert data["next_step"] == "work_email"
    assert data["session"]["personal_info"]["address_country"] == "US"

    response = await patient_client.post(
        f"/benefit-verification/sessions/{session_id}/work-email",
        json={"work_email": "Jane@Acme.com"},
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["verification_status"] == "verified"
    assert data["message"] == VERIFIED_MESSAGE
    assert data["next_step"] == "package_selection"
    assert data["session"]["selected_package_id"] == str(catalog["base"].id)

    packages = await patient_client.get(f"/benefit-verification/sessions/{session_id}/packages")
    offered = packages.json()["data"]
    assert [p["name"] for p in offered] == ["Acme Basic", "Acme Premium"]
    assert [p["is_employer_sponsored"] for p in offered] == [True, False]

    response = await patient_client.post(f"/benefit-verification/sessions/{session_id}/complete")
    assert response.status_code == 200
    assert response.json()["data"]["completed_at"] is not None

    db.expire_all()
    assert patient_user.benefit_source == "employer_or_plan"
    assert patient_user.benefit_status == "verified"
    assert patient_user.sponsoring_organization_id == catalog["acme"].id
    assert patient_user.selected_package_id == catalog["base"].id
    assert patient_user.address_city == "Springfield"

    profile = db.query(PatientProfile).filter(PatientProfile.user_id == patient_user.id).one()
    assert profile.first_name == "Jane"
    assert profile.phone == "+1 (555) 123-4567"

    attempt = db.query(UserBenefitVerificationAttempt).one()
    assert attempt.status == "success"
    assert attempt.submitted_work_email == "jane@acme.com"
    assert attempt.failure_reason is None

    # A completed session is not resumed
    assert await _start(patient_client) != session_id


@pytest.mark.asyncio
async def test_unapproved_email_is_declined_but_advances(db, patient_client, patient_user, catalog):
    session_id = await _employer_session_through_personal_info(patient_client, catalog)

    response = await patient_client.post(
        f"/benefit-verification/sessions/{session_id}/work-email",
        json={"work_email": "john@acme.com"},
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["verification_status"] == "declined"
    assert data["message"] == EMAIL_NOT_APPROVED_REASON
    assert data["next_step"] == "package_selection"
    assert data["session"]["selected_package_id"] is None

    attempt = db.query(UserBenefitVerificationAttempt).one()
    assert attempt.status == "failed"
    assert attempt.failure_reason == EMAIL_NOT_APPROVED_REASON

    check = await patient_client.get(
        f"/benefit-verification/sessions/{session_id}/steps/package_selection"
    )
    assert check.json()["data"]["allowed"] is True


@pytest.mark.asyncio
async def test_missing_email_is_declined(db, patient_client, catalog):
    session_id = await _employer_session_through_personal_info(patient_client, catalog)

    response = await patient_client.post(
        f"/benefit-verification/sessions/{session_id}/work-email",
        json={"work_email": "   "},
    )

    data = response.json()["data"]
    assert data["verification_status"] == "declined"
    assert data["message"] == EMAIL_REQUIRED_REASON
    assert db.query(UserBenefitVerificationAttempt).one().failure_reason == EMAIL_REQUIRED_REASON


@pytest.mark.asyncio
async def test_malformed_email_blocks_progress(db, patient_client, catalog):
    session_id = await _employer_session_through_personal_info(patient_client, catalog)

    response = await patient_client.post(
        f"/benefit-verification/sessions/{session_id}/work-email",
        json={"work_email": "jane-at-acme"},
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid email address"
    assert db.query(UserBenefitVerificationAttempt).count() == 0
    session = db.get(BenefitVerificationSession, uuid.UUID(session_id))
    assert session.work_email_submitted is False


@pytest.mark.asyncio
async def test_declined_flow_requires_package_before_completion(patient_client, catalog):
    session_id = await _employer_session_through_personal_info(patient_client, catalog)
    await patient_client.post(
        f"/benefit-verification/sessions/{session_id}/work-email",
        json={"work_email": "john@acme.com"},
    )

    response = await patient_client.post(f"/benefit-verification/sessions/{session_id}/complete")
    assert response.status_code == 400
    assert response.json()["message"] == "Select a package before completing setup."

    response = await patient_client.put(
        f"/benefit-verification/sessions/{session_id}/package",
        json={"package_id": str(catalog["premium"].id)},
    )
    assert response.status_code == 200

    response = await patient_client.post(f"/benefit-verification/sessions/{session_id}/complete")
    assert response.status_code == 200
    assert response.json()["data"]["benefit_status"] == "verified"


@pytest.mark.asyncio
async def test_invalid_personal_information(db, patient_client, catalog):
    session_id = await _start(patient_client)
    await patient_client.put(
        f"/benefit-verification/sessions/{session_id}/benefit-source",
        json={"benefit_source": "partner_or_parent"},
    )

    response = await patient_client.put(
        f"/benefit-verification/sessions/{session_id}/personal-information",
        json={**PERSONAL_INFO, "phone_number": "call me maybe", "address_postal_code": "1"},
    )

    assert response.status_code == 400
    fields = {e["field"] for e in response.json()["errors"]}
    assert fields == {"phone_number", "address_postal_code"}
    assert (
        db.query(ActivityLog)
        .filter(ActivityLog.action_type == "PERSONAL_INFORMATION_SUBMIT_VALIDATION_FAILED")
        .count()
        == 1
    )


# =============================================================================
# Non-sponsored flows
# =============================================================================

@pytest.mark.asyncio
async def test_no_benefit_skips_to_default_packages(db, patient_client, patient_user, catalog):
    session_id = await _start(patient_client)

    response = await patient_client.put(
        f"/benefit-verification/sessions/{session_id}/benefit-source",
        json={"benefit_source": "none"},
    )
    data = response.json()["data"]
    assert data["next_step"] == "package_selection"
    assert data["session"]["benefit_status"] == "not_applicable"

    check = await patient_client.get(f"/benefit-verification/sessions/{session_id}/steps/work_email")
    assert check.json()["data"]["redirect_to"] == "benefit_source"

    packages = await patient_client.get(f"/benefit-verification/sessions/{session_id}/packages")
    assert [p["name"] for p in packages.json()["data"]] == ["Standard"]

    response = await patient_client.put(
        f"/benefit-verification/sessions/{session_id}/package",
        json={"package_id": str(catalog["default"].id)},
    )
    assert response.status_code == 200

    db.expire_all()
    assert patient_user.benefit_status == "not_applicable"
    assert patient_user.selected_package_id == catalog["default"].id


@pytest.mark.asyncio
async def test_select_unknown_package(patient_client, catalog):
    session_id = await _start(patient_client)
    await patient_client.put(
        f"/benefit-verification/sessions/{session_id}/benefit-source",
        json={"benefit_source": "partner_or_parent"},
    )

    response = await patient_client.put(
        f"/benefit-verification/sessions/{session_id}/package",
        json={"package_id": str(uuid.uuid4())},
    )

    assert response.status_code == 404
    assert response.json()["message"] == "Package not found."


@pytest.mark.asyncio
async def test_short_search_returns_nothing(patient_client, catalog):
    response = await patient_client.get("/benefit-verification/organizations/search", params={"q": "a"})

    assert response.status_code == 200
    assert response.json()["data"] == []


# =============================================================================
# Re-entering earlier steps
# =============================================================================

@pytest.fixture
def other_corp(db):
    """A second organization whose base package must not inherit Acme's approval."""
    other = Organization(name="Other Corp", domain="other.com")
    db.add(other)
    db.flush()
    base = Package(name="Other Base", tier="basic", monthly_cost=Decimal("90.00"),
                   is_base_employer_package=True)
    db.add(base)
    db.flush()
    db.add(OrganizationPackage(organization_id=other.id, package_id=base.id))
    db.commit()
    return other


async def _verified_at_acme(client, catalog) -> str:
    session_id = await _employer_session_through_personal_info(client, catalog)
    response = await client.post(
        f"/benefit-verification/sessions/{session_id}/work-email",
        json={"work_email": "jane@acme.com"},
    )
    assert response.json()["data"]["verification_status"] == "verified"
    return session_id


@pytest.mark.asyncio
async def test_switching_organization_discards_verification(
    db, patient_client, patient_user, catalog, other_corp
):
    session_id = await _verified_at_acme(patient_client, catalog)

    response = await patient_client.put(
        f"/benefit-verification/sessions/{session_id}/sponsoring-organization",
        json={"organization_id": str(other_corp.id)},
    )

    assert response.status_code == 200
    session = response.json()["data"]["session"]
    assert session["sponsoring_organization_name"] == "Other Corp"
    assert session["benefit_status"] == "not_started"
    assert session["work_email"] is None
    assert session["work_email_submitted"] is False
    assert session["selected_package_id"] is None

    db.expire_all()
    assert patient_user.benefit_status == "not_started"
    assert patient_user.selected_package_id is None

    check = await patient_client.get(
        f"/benefit-verification/sessions/{session_id}/steps/package_selection"
    )
    assert check.json()["data"]["redirect_to"] == "work_email"

    packages = await patient_client.get(f"/benefit-verification/sessions/{session_id}/packages")
    offered = packages.json()["data"]
    assert [p["name"] for p in offered] == ["Other Base"]
    assert offered[0]["is_employer_sponsored"] is False

    # Other Corp has not approved Jane's address
    response = await patient_client.post(
        f"/benefit-verification/sessions/{session_id}/work-email",
        json={"work_email": "jane@acme.com"},
    )
    assert response.json()["data"]["verification_status"] == "declined"


@pytest.mark.asyncio
async def test_reselecting_same_organization_keeps_verification(patient_client, catalog):
    session_id = await _verified_at_acme(patient_client, catalog)

    response = await patient_client.put(
        f"/benefit-verification/sessions/{session_id}/sponsoring-organization",
        json={"organization_id": str(catalog["acme"].id)},
    )

    session = response.json()["data"]["session"]
    assert session["benefit_status"] == "verified"
    assert session["selected_package_id"] == str(catalog["base"].id)


@pytest.mark.asyncio
async def test_changing_benefit_source_discards_verification(
    db, patient_client, patient_user, catalog
):
    session_id = await _verified_at_acme(patient_client, catalog)

    response = await patient_client.put(
        f"/benefit-verification/sessions/{session_id}/benefit-source",
        json={"benefit_source": "none"},
    )

    data = response.json()["data"]
    assert data["next_step"] == "package_selection"
    assert data["session"]["benefit_status"] == "not_applicable"
    assert data["session"]["sponsoring_organization_id"] is None
    assert data["session"]["selected_package_id"] is None
    assert data["session"]["work_email_submitted"] is False

    db.expire_all()
    assert patient_user.benefit_status == "not_applicable"
    assert patient_user.selected_package_id is None
    assert patient_user.sponsoring_organization_id is None

    packages = await patient_client.get(f"/benefit-verification/sessions/{session_id}/packages")
    assert [p["is_employer_sponsored"] for p in packages.json()["data"]] == [False]

    # Back to the employer path: the organization must be chosen again
    await patient_client.put(
        f"/benefit-verification/sessions/{session_id}/benefit-source",
        json={"benefit_source": "employer_or_plan"},
    )
    check = await patient_client.get(f"/benefit-verification/sessions/{session_id}/steps/work_email")
    assert check.json()["data"] == {
        "step": "work_email",
        "allowed": False,
        "redirect_to": "organization_search",
    }


@pytest.mark.asyncio
async def test_back_button_to_benefit_source_keeps_progress(patient_client, catalog):
    session_id = await _verified_at_acme(patient_client, catalog)

    check = await patient_client.get(
        f"/benefit-verification/sessions/{session_id}/steps/benefit_source"
    )
    assert check.json()["data"]["allowed"] is True

    response = await patient_client.put(
        f"/benefit-verification/sessions/{session_id}/benefit-source",
        json={"benefit_source": "employer_or_plan"},
    )

    data = response.json()["data"]
    assert data["next_step"] == "organization_search"
    assert data["session"]["benefit_status"] == "verified"
    assert data["session"]["sponsoring_organization_name"] == "Acme Co"

    check = await patient_client.get(
        f"/benefit-verification/sessions/{session_id}/steps/package_selection"
    )
    assert check.json()["data"]["allowed"] is True
