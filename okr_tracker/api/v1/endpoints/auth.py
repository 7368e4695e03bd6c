import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from okr_tracker.core.database import aget_db
from okr_tracker.core.security import AuthUser, get_current_user
from okr_tracker.models.profile import Profile
from okr_tracker.schemas.userSchema import ProfileResponse, ProfileUpdateRequest

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)


async def load_own_profile(db: AsyncSession, user_id: str) -> Profile:
    result = await db.execute(select(Profile).where(Profile.id == user_id))
    profile = result.scalar_one_or_none()
    if not profile:
        raise HTTPException(status_code=404, detail="Profil nicht gefunden")
    return profile


@router.get("/me")
async def get_me(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Return the caller's profile."""
    profile = await load_own_profile(db, current_user.id)
    return {"user": ProfileResponse.model_validate(profile)}


@router.patch("/me")
async def update_me(
    payload: ProfileUpdateRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Update name and department of the caller's profile."""
    updates = {
        field: value.strip()
        for field, value in payload.model_dump(exclude_unset=True).items()
        if value is not None
    }
    if not updates:
        raise HTTPException(status_code=400, detail="Keine gültigen Felder zum Aktualisieren")
    if "name" in updates and len(updates["name"]) < 2:
        raise HTTPException(status_code=400, detail="Name muss mindestens 2 Zeichen lang sein")

    profile = await load_own_profile(db, current_user.id)
    try:
        for field, value in updates.items():
            setattr(profile, field, value)
        await db.commit()
        await db.refresh(profile)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Failed to update profile %s: %s", current_user.id, e)
        raise HTTPException(status_code=500, detail="Fehler beim Aktualisieren")

    return {"user": ProfileResponse.model_validate(profile)}
