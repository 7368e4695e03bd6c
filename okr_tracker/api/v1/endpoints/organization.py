import logging

from botocore.exceptions import BotoCoreError, ClientError
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from okr_tracker.constants.constants import ASSIGNABLE_ROLES, UserRole
from okr_tracker.core.database import aget_db
from okr_tracker.core.logger import audit
from okr_tracker.core.security import AuthUser, get_current_user
from okr_tracker.models.organization import Organization
from okr_tracker.models.profile import Profile
from okr_tracker.schemas.organizationSchema import OrganizationResponse, OrganizationUpdateRequest
from okr_tracker.schemas.userSchema import ProfileResponse, RoleChangeRequest
from okr_tracker.services import S3Service
from okr_tracker.utils.check_role import ADMIN_ROLES, has_required_role
from okr_tracker.utils.profile_resolver import ProfileContext, require_profile_context

router = APIRouter(prefix="/organization", tags=["organization"])
logger = logging.getLogger(__name__)


async def load_organization(db: AsyncSession, context: ProfileContext) -> Organization:
    if not context.organization_id:
        raise HTTPException(status_code=400, detail="Keine Organisation zugewiesen")
    result = await db.execute(select(Organization).where(Organization.id == context.organization_id))
    organization = result.scalar_one_or_none()
    if not organization:
        raise HTTPException(status_code=404, detail="Organisation nicht gefunden")
    return organization


async def lookup_logo(organization_id: str):
    """Storage fallback for organizations without a stored logo URL; never fails the request."""
    try:
        return await run_in_threadpool(S3Service.find_latest_logo, organization_id)
    except (BotoCoreError, ClientError) as e:
        logger.warning("Logo lookup failed", extra={"organization_id": organization_id, "error": str(e)})
        return None


@router.get("")
async def get_organization(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """The caller's organization; created on first use."""
    context = await require_profile_context(db, current_user.id, current_user.email)
    organization = await load_organization(db, context)

    response = OrganizationResponse.model_validate(organization)
    if not response.logo_url:
        response.logo_url = await lookup_logo(organization.id)
    return {"organization": response}


@router.patch("")
async def update_organization(
    payload: OrganizationUpdateRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Admins may change name, domain and logo_url."""
    context = await require_profile_context(db, current_user.id, current_user.email)
    if not has_required_role(context.role, ADMIN_ROLES):
        raise HTTPException(status_code=403, detail="Keine Berechtigung")

    updates = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    if not updates:
        raise HTTPException(status_code=400, detail="Keine gültigen Felder")

    organization = await load_organization(db, context)
    try:
        for field, value in updates.items():
            setattr(organization, field, value)
        await db.commit()
        await db.refresh(organization)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Failed to update organization %s: %s", organization.id, e)
        raise HTTPException(status_code=500, detail="Fehler beim Aktualisieren")

    audit(
        logger, "organization_update",
        user_id=current_user.id, organization_id=organization.id, fields=sorted(updates),
    )
    return {"organization": OrganizationResponse.model_validate(organization)}


@router.get("/members")
async def list_members(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    context = await require_profile_context(db, current_user.id, current_user.email)
    result = await db.execute(
        select(Profile)
        .where(Profile.organization_id == context.organization_id)
        .order_by(Profile.name.asc())
    )
    return {"members": [ProfileResponse.model_validate(p) for p in result.scalars().all()]}


@router.patch("/members/{member_id}/role")
async def change_member_role(
    member_id: str,
    payload: RoleChangeRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """
    Change a member's role. Admin roles only; nobody changes their own role
    and a super_admin is never demoted through this route.
    """
    if member_id == current_user.id:
        raise HTTPException(status_code=400, detail="Eigene Rolle kann nicht geändert werden")

    context = await require_profile_context(db, current_user.id, current_user.email)
    if not has_required_role(context.role, ADMIN_ROLES):
        raise HTTPException(status_code=403, detail="Keine Berechtigung")

    if payload.role not in {role.value for role in ASSIGNABLE_ROLES}:
        raise HTTPException(status_code=400, detail="Ungültige Rolle")
    new_role = UserRole(payload.role)

    result = await db.execute(
        select(Profile).where(
            Profile.id == member_id,
            Profile.organization_id == context.organization_id,
        )
    )
    member = result.scalar_one_or_none()
    if not member:
        raise HTTPException(status_code=404, detail="Mitglied nicht gefunden")

    if member.role == UserRole.super_admin:
        raise HTTPException(status_code=403, detail="Super-Admin Rolle kann nicht geändert werden")

    old_role = member.role
    try:
        member.role = new_role
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Failed to change role of %s: %s", member_id, e)
        raise HTTPException(status_code=500, detail="Fehler beim Ändern der Rolle")

    audit(
        logger, "role_change",
        changed_by=current_user.id,
        member_id=member_id,
        old_role=UserRole(old_role).value,
        new_role=new_role.value,
        organization_id=context.organization_id,
    )
    return {"success": True}
