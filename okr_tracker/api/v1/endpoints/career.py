import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from okr_tracker.core.database import aget_db
from okr_tracker.core.security import AuthUser, get_current_user
from okr_tracker.models.career import UserCareerProgress
from okr_tracker.models.profile import Profile
from okr_tracker.schemas.userSchema import CareerProgressResponse
from okr_tracker.utils.okr_logic import qualifies_for_level_up

router = APIRouter(prefix="/career", tags=["career"])
logger = logging.getLogger(__name__)


@router.get("")
async def get_career_progress(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Career progress in the caller's organization; no record yet is progress: null."""
    try:
        organization_id = (await db.execute(
            select(Profile.organization_id).where(Profile.id == current_user.id)
        )).scalar_one_or_none()
        if not organization_id:
            return {"progress": None, "qualifies_for_level_up": False}

        progress = (await db.execute(
            select(UserCareerProgress).where(
                UserCareerProgress.user_id == current_user.id,
                UserCareerProgress.organization_id == organization_id,
            )
        )).scalar_one_or_none()
    except SQLAlchemyError as e:
        logger.error("Failed to load career progress for %s: %s", current_user.id, e)
        raise HTTPException(status_code=500, detail="Fehler beim Laden des Karriere-Fortschritts")

    if not progress:
        return {"progress": None, "qualifies_for_level_up": False}
    return {
        "progress": CareerProgressResponse.model_validate(progress),
        "qualifies_for_level_up": qualifies_for_level_up(progress.qualifying_okr_count),
    }
