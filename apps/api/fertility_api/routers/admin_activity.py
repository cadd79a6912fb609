"""Admin activity log and analytics router."""

from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy import or_
from sqlalchemy.orm import Session

from fertility_api.core.deps import get_db, require_admin
from fertility_api.db.enums import ActivityActionType
from fertility_api.db.models import ActivityLog
from fertility_api.schemas.auth import Identity
from fertility_api.schemas.common import ApiResponse
from fertility_api.services import analytics_service

router = APIRouter(prefix="/admin", tags=["admin"])


# ============================================================================
# Schemas
# ============================================================================

class ActivityLogRead(BaseModel):
    """Activity log entry for API response."""
    id: UUID
    timestamp: datetime
    user_id: UUID | None
    user_email: str | None
    action_type: str
    target_entity_type: str | None
    target_entity_id: str | None
    status: str | None
    details: dict[str, Any] | None
    ip_address: str | None
    description: str | None

    model_config = {"from_attributes": True}


class ActivityLogListResponse(BaseModel):
    """Paginated activity log response."""
    items: list[ActivityLogRead]
    total: int
    page: int
    per_page: int


class AnalyticsSummary(BaseModel):
    total_users: int
    total_organizations: int
    total_packages: int
    users_by_role: dict[str, int]
    user_growth: list[dict[str, Any]]
    activity_by_status: dict[str, int]


# ============================================================================
# Endpoints
# ============================================================================

@router.get("/activity-logs", response_model=ApiResponse[ActivityLogListResponse])
def list_activity_logs(
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=100),
    action_type: str | None = Query(None, description="Filter by action type"),
    search: str | None = Query(None, description="Free text over email, description, action, target id"),
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    """List activity log entries, newest first."""
    query = db.query(ActivityLog)

    if action_type:
        query = query.filter(ActivityLog.action_type == action_type)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(
                ActivityLog.user_email.ilike(pattern),
                ActivityLog.description.ilike(pattern),
                ActivityLog.action_type.ilike(pattern),
                ActivityLog.target_entity_id.ilike(pattern),
            )
        )

    total = query.count()

    offset = (page - 1) * per_page
    logs = (
        query.order_by(ActivityLog.timestamp.desc())
        .offset(offset)
        .limit(per_page)
        .all()
    )

    return ApiResponse(
        data=ActivityLogListResponse(
            items=[ActivityLogRead.model_validate(log) for log in logs],
            total=total,
            page=page,
            per_page=per_page,
        )
    )


@router.get("/activity-logs/action-types", response_model=ApiResponse[list[str]])
def list_action_types(admin: Identity = Depends(require_admin)):
    """Known action types for the filter dropdown."""
    return ApiResponse(data=[a.value for a in ActivityActionType])


@router.get("/analytics", response_model=ApiResponse[AnalyticsSummary])
def get_analytics(
    months: int = Query(6, ge=1, le=24),
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    """User growth, users per role, directory totals and activity per status."""
    return ApiResponse(data=AnalyticsSummary(**analytics_service.get_summary(db, months)))
