import logging
import math
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from okr_tracker.core.database import aget_db
from okr_tracker.core.security import AuthUser, get_current_user
from okr_tracker.models.audit import AuditLog
from okr_tracker.models.profile import Profile
from okr_tracker.schemas.organizationSchema import AuditLogResponse
from okr_tracker.utils.check_role import MANAGER_ROLES, has_required_role

router = APIRouter(prefix="/audit", tags=["audit"])
logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100


@router.get("")
async def list_audit_logs(
    page: int = Query(1),
    limit: int = Query(DEFAULT_PAGE_SIZE),
    resource_type: Optional[str] = Query(None),
    action: Optional[str] = Query(None),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """
    Audit trail of the caller's organization, newest first.
    Manager roles see every entry; everyone else only their own.
    Out-of-range page and limit values are clamped.
    """
    page = max(1, page)
    limit = min(max(1, limit), MAX_PAGE_SIZE)

    profile = (await db.execute(
        select(Profile).where(Profile.id == current_user.id)
    )).scalar_one_or_none()
    if not profile or not profile.organization_id:
        raise HTTPException(status_code=404, detail="Profil nicht gefunden")

    filters = [AuditLog.organization_id == profile.organization_id]
    if not has_required_role(profile.role, MANAGER_ROLES):
        filters.append(AuditLog.user_id == current_user.id)
    if resource_type:
        filters.append(AuditLog.resource_type == resource_type)
    if action:
        filters.append(AuditLog.action == action)

    try:
        total = (await db.execute(select(func.count(AuditLog.id)).where(*filters))).scalar_one()
        logs = (await db.execute(
            select(AuditLog)
            .where(*filters)
            .order_by(AuditLog.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )).scalars().all()
    except SQLAlchemyError as e:
        logger.error("Audit logs query failed", extra={"user_id": current_user.id, "error": str(e)})
        raise HTTPException(status_code=500, detail="Fehler beim Laden der Audit-Logs")

    return {
        "logs": [AuditLogResponse.model_validate(log) for log in logs],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": math.ceil(total / limit),
        },
    }
