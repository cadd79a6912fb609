"""Provider patient roster."""

from sqlalchemy import func
from sqlalchemy.orm import Session

from fertility_api.core.errors import NotFoundError
from fertility_api.db.models import Appointment, PatientProfile, Provider, User
from fertility_api.schemas.provider import RosterPatient


def get_provider_profile(db: Session, user: User) -> Provider:
    provider = db.query(Provider).filter(Provider.user_id == user.id).first()
    if not provider:
        raise NotFoundError("Provider profile not found.")
    return provider


def get_patients_for_provider(db: Session, user: User) -> list[RosterPatient]:
    """
    One row per distinct patient the provider has appointments with.

    Sorted by most recent appointment (newest first), ties broken by
    "last first" name, case-insensitive.
    """
    provider = get_provider_profile(db, user)

    last_visits = (
        db.query(
            Appointment.patient_id.label("patient_id"),
            func.max(Appointment.appointment_date).label("last_appointment_date"),
        )
        .filter(Appointment.provider_id == provider.id)
        .group_by(Appointment.patient_id)
        .subquery()
    )

    rows = (
        db.query(User, PatientProfile, last_visits.c.last_appointment_date)
        .join(last_visits, last_visits.c.patient_id == User.id)
        .outerjoin(PatientProfile, PatientProfile.user_id == User.id)
        .all()
    )

    roster = []
    for patient, profile, last_date in rows:
        roster.append(
            RosterPatient(
                id=patient.id,
                first_name=(profile.first_name if profile else None) or patient.first_name,
                last_name=(profile.last_name if profile else None) or patient.last_name,
                email=patient.email,
                phone=profile.phone if profile else None,
                date_of_birth=profile.date_of_birth if profile else None,
                last_appointment_date=last_date,
            )
        )

    # Two stable sorts: name ascending, then date descending
    roster.sort(key=lambda p: f"{p.last_name or ''} {p.first_name or ''}".lower())
    roster.sort(key=lambda p: p.last_appointment_date, reverse=True)
    return roster
