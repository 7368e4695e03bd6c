"""Get-or-create of a profile and its organization for an authenticated identity."""

import logging
from typing import NamedTuple, Optional

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from okr_tracker.constants.constants import UserRole, UserStatus
from okr_tracker.core.config import settings
from okr_tracker.models.organization import Organization
from okr_tracker.models.profile import Profile

logger = logging.getLogger(__name__)


class ProfileContext(NamedTuple):
    organization_id: str
    role: UserRole


def name_from_email(email: Optional[str]) -> str:
    if not email:
        return "Benutzer"
    return email.split("@")[0] or "Benutzer"


async def get_or_create_default_organization(db: AsyncSession) -> Organization:
    """
    Look up the default organization by its fixed slug and insert it if it
    is missing. Two first requests may race here; the unique slug makes the
    loser fail its insert, after which it reads the winner's row.
    """
    slug = settings.DEFAULT_ORGANIZATION_SLUG
    result = await db.execute(select(Organization).where(Organization.slug == slug))
    organization = result.scalar_one_or_none()
    if organization:
        return organization

    organization = Organization(name=settings.DEFAULT_ORGANIZATION_NAME, slug=slug)
    db.add(organization)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        result = await db.execute(select(Organization).where(Organization.slug == slug))
        return result.scalar_one()
    logger.info("Created default organization %s", organization.id)
    return organization


async def ensure_profile_with_org(
    db: AsyncSession, user_id: str, email: Optional[str]
) -> Optional[ProfileContext]:
    """
    Return (organization_id, role) for the identity, creating the default
    organization and/or the profile on first use.

    Returns None when the database fails; callers answer with a 500.
    """
    try:
        result = await db.execute(select(Profile).where(Profile.id == user_id))
        profile = result.scalar_one_or_none()

        if profile and profile.organization_id:
            return ProfileContext(profile.organization_id, profile.role)

        # a rollback inside the org lookup expires loaded rows
        role = profile.role if profile else UserRole.employee
        organization = await get_or_create_default_organization(db)

        if profile:
            profile.organization_id = organization.id
            logger.info("Attached profile %s to organization %s", user_id, organization.id)
        else:
            profile = Profile(
                id=user_id,
                email=email or "",
                name=name_from_email(email),
                role=UserRole.employee,
                status=UserStatus.active,
                organization_id=organization.id,
            )
            db.add(profile)
            logger.info("Created profile %s", user_id)
        await db.commit()
        return ProfileContext(organization.id, role)

    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Profile resolution failed for %s: %s", user_id, e)
        return None


async def require_profile_context(db: AsyncSession, user_id: str, email: Optional[str]) -> ProfileContext:
    """ensure_profile_with_org for route handlers: a failure becomes a 500."""
    context = await ensure_profile_with_org(db, user_id, email)
    if context is None:
        raise HTTPException(status_code=500, detail="Profil konnte nicht geladen werden")
    return context
