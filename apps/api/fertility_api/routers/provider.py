"""Provider router - patient roster."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from fertility_api.core.deps import get_db, require_provider
from fertility_api.db.models import User
from fertility_api.schemas.common import ApiResponse
from fertility_api.schemas.provider import RosterPatient
from fertility_api.services import provider_service

router = APIRouter(prefix="/provider", tags=["provider"])


@router.get("/patients", response_model=ApiResponse[list[RosterPatient]])
def list_patients(
    db: Session = Depends(get_db),
    user: User = Depends(require_provider),
):
    """Distinct patients seen by the caller, most recent appointment first."""
    return ApiResponse(data=provider_service.get_patients_for_provider(db, user))
