"""Admin analytics - aggregate counts for the admin dashboard."""

from collections import Counter
from datetime import datetime, timezone

from sqlalchemy import func
from sqlalchemy.orm import Session

from fertility_api.db.enums import Role
from fertility_api.db.models import ActivityLog, Organization, Package, User


def _month_keys(months: int, now: datetime) -> list[str]:
    """The last `months` calendar months as YYYY-MM, oldest first."""
    keys = []
    year, month = now.year, now.month
    for _ in range(months):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(keys))


def get_user_growth(db: Session, months: int = 6, now: datetime | None = None) -> list[dict]:
    """New users per month over the window, zero-filled."""
    now = now or datetime.now(timezone.utc)
    keys = _month_keys(months, now)
    # Bucketed in Python so the query stays portable across dialects
    counts = Counter(
        created_at.strftime("%Y-%m")
        for (created_at,) in db.query(User.created_at).all()
        if created_at is not None
    )
    return [{"month": key, "count": counts.get(key, 0)} for key in keys]


def get_users_by_role(db: Session) -> dict[str, int]:
    rows = db.query(User.role, func.count(User.id)).group_by(User.role).all()
    by_role = {role.value: 0 for role in Role}
    by_role.update({role: count for role, count in rows})
    return by_role


def get_activity_by_status(db: Session) -> dict[str, int]:
    rows = (
        db.query(func.coalesce(ActivityLog.status, "UNKNOWN"), func.count(ActivityLog.id))
        .group_by(func.coalesce(ActivityLog.status, "UNKNOWN"))
        .all()
    )
    return {status: count for status, count in rows}


def get_summary(db: Session, months: int = 6) -> dict:
    return {
        "total_users": db.query(func.count(User.id)).scalar() or 0,
        "total_organizations": db.query(func.count(Organization.id)).scalar() or 0,
        "total_packages": db.query(func.count(Package.id)).scalar() or 0,
        "users_by_role": get_users_by_role(db),
        "user_growth": get_user_growth(db, months),
        "activity_by_status": get_activity_by_status(db),
    }
