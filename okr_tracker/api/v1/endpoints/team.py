import logging
from collections import defaultdict

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from okr_tracker.constants.constants import EnrollmentStatus, OKRStatus, UserStatus
from okr_tracker.core.database import aget_db
from okr_tracker.core.security import AuthUser, get_current_user
from okr_tracker.models.course import CourseModule
from okr_tracker.models.enrollment import Enrollment, ModuleCompletion
from okr_tracker.models.okr import OKR
from okr_tracker.models.profile import Profile
from okr_tracker.schemas.userSchema import ProfileResponse
from okr_tracker.utils.check_role import MANAGER_ROLES, has_required_role
from okr_tracker.utils.okr_logic import round_half_up
from okr_tracker.utils.profile_resolver import require_profile_context

router = APIRouter(prefix="/team", tags=["team"])
logger = logging.getLogger(__name__)


async def active_members(db: AsyncSession, organization_id: str):
    result = await db.execute(
        select(Profile)
        .where(Profile.organization_id == organization_id, Profile.status == UserStatus.active)
        .order_by(Profile.name.asc())
    )
    return result.scalars().all()


@router.get("")
async def get_team(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Active members of the organization and stats over their active OKRs."""
    context = await require_profile_context(db, current_user.id, current_user.email)

    try:
        members = await active_members(db, context.organization_id)
        member_ids = [m.id for m in members]

        okrs = []
        if member_ids:
            okrs = (await db.execute(
                select(OKR.progress, OKR.status)
                .where(OKR.user_id.in_(member_ids), OKR.is_active.is_(True))
            )).all()
    except SQLAlchemyError as e:
        logger.error("Failed to load team for %s: %s", context.organization_id, e)
        raise HTTPException(status_code=500, detail="Fehler beim Laden")

    total_okrs = len(okrs)
    avg_progress = round_half_up(sum(o.progress for o in okrs) / total_okrs) if total_okrs else 0
    at_risk = sum(1 for o in okrs if o.status in (OKRStatus.at_risk, OKRStatus.off_track))

    return {
        "members": [ProfileResponse.model_validate(m) for m in members],
        "stats": {
            "totalMembers": len(members),
            "totalOKRs": total_okrs,
            "avgProgress": avg_progress,
            "atRiskCount": at_risk,
        },
    }


@router.get("/learnings")
async def get_team_learnings(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Per-member enrollment and module counts. Manager roles only."""
    context = await require_profile_context(db, current_user.id, current_user.email)
    if not has_required_role(context.role, MANAGER_ROLES):
        raise HTTPException(status_code=403, detail="Keine Berechtigung für diese Ansicht")

    try:
        members = await active_members(db, context.organization_id)
        if not members:
            return {"members": []}
        member_ids = [m.id for m in members]

        enrollments = (await db.execute(
            select(Enrollment).where(Enrollment.user_id.in_(member_ids))
        )).scalars().all()

        module_counts = {}
        completion_counts = {}
        if enrollments:
            course_ids = {e.course_id for e in enrollments}
            module_counts = dict((await db.execute(
                select(CourseModule.course_id, func.count(CourseModule.id))
                .where(CourseModule.course_id.in_(course_ids))
                .group_by(CourseModule.course_id)
            )).all())
            completion_counts = dict((await db.execute(
                select(ModuleCompletion.enrollment_id, func.count(ModuleCompletion.id))
                .where(ModuleCompletion.enrollment_id.in_([e.id for e in enrollments]))
                .group_by(ModuleCompletion.enrollment_id)
            )).all())
    except SQLAlchemyError as e:
        logger.error("Failed to load team learnings for %s: %s", context.organization_id, e)
        raise HTTPException(status_code=500, detail="Fehler beim Laden der Teammitglieder")

    by_member = defaultdict(list)
    for enrollment in enrollments:
        by_member[enrollment.user_id].append(enrollment)

    member_stats = []
    for member in members:
        own = by_member[member.id]
        data = ProfileResponse.model_validate(member).model_dump()
        data.update({
            "total_enrollments": len(own),
            "completed_enrollments": sum(1 for e in own if e.status == EnrollmentStatus.completed),
            "in_progress_enrollments": sum(1 for e in own if e.status == EnrollmentStatus.in_progress),
            "total_modules": sum(module_counts.get(e.course_id, 0) for e in own),
            "completed_modules": sum(completion_counts.get(e.id, 0) for e in own),
        })
        member_stats.append(data)

    return {"members": member_stats}
