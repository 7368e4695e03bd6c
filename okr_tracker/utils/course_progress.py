"""Enrollment progress derived from module completions."""

from datetime import datetime, timezone
from typing import NamedTuple, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from okr_tracker.constants.constants import EnrollmentStatus
from okr_tracker.models.course import CourseModule
from okr_tracker.models.enrollment import Enrollment, ModuleCompletion
from okr_tracker.utils.okr_logic import round_half_up


class EnrollmentProgress(NamedTuple):
    progress: int
    status: EnrollmentStatus
    completed_at: Optional[datetime]


class ToggleResult(NamedTuple):
    completed: bool
    progress: int
    enrollment_status: EnrollmentStatus


def completion_percentage(completions: int, total_modules: int) -> int:
    total = max(total_modules, 1)
    return round_half_up(completions / total * 100)


def derive_enrollment_progress(
    completions: int,
    total_modules: int,
    current_status: EnrollmentStatus,
    current_completed_at: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> EnrollmentProgress:
    """
    Apply the completion rule to one enrollment.

    All modules done -> completed (stamped now). Dropping below the total
    from completed -> in_progress with completed_at cleared. Otherwise the
    status and timestamp are left alone.
    """
    total = max(total_modules, 1)
    progress = completion_percentage(completions, total)

    if completions >= total:
        return EnrollmentProgress(
            progress, EnrollmentStatus.completed, now or datetime.now(timezone.utc)
        )
    if current_status == EnrollmentStatus.completed:
        return EnrollmentProgress(progress, EnrollmentStatus.in_progress, None)
    return EnrollmentProgress(progress, EnrollmentStatus(current_status), current_completed_at)


async def count_course_modules(db: AsyncSession, course_id: str) -> int:
    result = await db.execute(
        select(func.count(CourseModule.id)).where(CourseModule.course_id == course_id)
    )
    return result.scalar_one()


async def count_completions(db: AsyncSession, enrollment_id: str) -> int:
    result = await db.execute(
        select(func.count(ModuleCompletion.id)).where(ModuleCompletion.enrollment_id == enrollment_id)
    )
    return result.scalar_one()


async def toggle_module_completion(
    db: AsyncSession, enrollment: Enrollment, module_id: str
) -> ToggleResult:
    """
    Flip the completion row for (enrollment, module) and recompute the
    enrollment. Both writes share the caller's transaction; the caller commits.
    """
    existing = await db.execute(
        select(ModuleCompletion).where(
            ModuleCompletion.enrollment_id == enrollment.id,
            ModuleCompletion.module_id == module_id,
        )
    )
    completion = existing.scalar_one_or_none()

    if completion:
        await db.execute(delete(ModuleCompletion).where(ModuleCompletion.id == completion.id))
        completed = False
    else:
        db.add(ModuleCompletion(enrollment_id=enrollment.id, module_id=module_id))
        completed = True
    await db.flush()

    total_modules = await count_course_modules(db, enrollment.course_id)
    completions = await count_completions(db, enrollment.id)

    derived = derive_enrollment_progress(
        completions, total_modules, enrollment.status, enrollment.completed_at
    )
    enrollment.status = derived.status
    enrollment.completed_at = derived.completed_at
    await db.flush()

    return ToggleResult(completed, derived.progress, derived.status)
