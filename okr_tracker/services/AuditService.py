"""Best-effort audit trail for OKR mutations."""

import logging
from typing import Any, Dict, Optional

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from okr_tracker.constants.constants import AuditAction
from okr_tracker.models.audit import AuditLog

logger = logging.getLogger(__name__)


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.headers.get("x-real-ip") or "unknown"


async def create_audit_log(
    db: AsyncSession,
    request: Request,
    user_id: str,
    organization_id: str,
    action: AuditAction,
    resource_type: str,
    resource_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Write one audit row in its own commit.

    Call after the audited change is committed: a failure here is logged
    and never fails the request.
    """
    db.add(AuditLog(
        organization_id=organization_id,
        user_id=user_id,
        action=AuditAction(action).value,
        resource_type=resource_type,
        resource_id=resource_id,
        details=details or {},
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent") or "unknown",
    ))
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(
            "Failed to create audit log",
            extra={"action": AuditAction(action).value, "resource_id": resource_id, "error": str(e)},
        )
