import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from okr_tracker.constants.constants import CourseCategory, CourseDifficulty, EnrollmentStatus
from okr_tracker.core.database import aget_db
from okr_tracker.core.security import AuthUser, get_current_user
from okr_tracker.models.course import Course, CourseModule
from okr_tracker.models.enrollment import Enrollment
from okr_tracker.schemas.courseSchema import (
    CourseCreateRequest,
    CourseModuleResponse,
    CourseResponse,
    CourseUpdateRequest,
    EnrollmentResponse,
    EnrollRequest,
)
from okr_tracker.utils.check_role import ADMIN_ROLES, has_required_role
from okr_tracker.utils.course_progress import (
    completion_percentage,
    count_completions,
    toggle_module_completion,
)
from okr_tracker.utils.profile_resolver import require_profile_context
from okr_tracker.utils.validation import require_uuid

router = APIRouter(prefix="/courses", tags=["courses"])
logger = logging.getLogger(__name__)


async def get_org_course(db: AsyncSession, course_id: str, organization_id: str) -> Course:
    require_uuid(course_id, "Ungültige Kurs-ID")
    result = await db.execute(
        select(Course).where(Course.id == course_id, Course.organization_id == organization_id)
    )
    course = result.scalar_one_or_none()
    if not course:
        raise HTTPException(status_code=404, detail="Kurs nicht gefunden")
    return course


def can_manage_course(course: Course, user_id: str, role) -> bool:
    return course.created_by == user_id or has_required_role(role, ADMIN_ROLES)


@router.get("")
async def list_courses(
    category: Optional[CourseCategory] = Query(None),
    provider: Optional[str] = Query(None),
    difficulty: Optional[CourseDifficulty] = Query(None),
    search: Optional[str] = Query(None, max_length=200),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Published courses of the caller's organization with their module count."""
    context = await require_profile_context(db, current_user.id, current_user.email)

    try:
        module_counts = (
            select(CourseModule.course_id, func.count(CourseModule.id).label("module_count"))
            .group_by(CourseModule.course_id)
            .subquery()
        )
        query = (
            select(Course, func.coalesce(module_counts.c.module_count, 0))
            .outerjoin(module_counts, module_counts.c.course_id == Course.id)
            .where(Course.organization_id == context.organization_id, Course.is_published.is_(True))
        )
        if category:
            query = query.where(Course.category == category)
        if provider:
            query = query.where(Course.provider == provider)
        if difficulty:
            query = query.where(Course.difficulty == difficulty)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.where(or_(Course.title.ilike(pattern), Course.description.ilike(pattern)))

        rows = (await db.execute(query.order_by(Course.created_at.desc()))).all()
    except SQLAlchemyError as e:
        logger.error("Failed to list courses: %s", e)
        raise HTTPException(status_code=500, detail="Fehler beim Laden der Kurse")

    courses = []
    for course, module_count in rows:
        data = CourseResponse.model_validate(course).model_dump()
        data["module_count"] = module_count
        courses.append(data)
    return {"courses": courses}


@router.post("", status_code=201)
async def create_course(
    payload: CourseCreateRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Create a course and its modules in one transaction."""
    context = await require_profile_context(db, current_user.id, current_user.email)

    try:
        course = Course(
            organization_id=context.organization_id,
            created_by=current_user.id,
            title=payload.title,
            description=payload.description,
            provider=payload.provider,
            category=payload.category,
            estimated_duration_minutes=payload.estimated_duration_minutes,
            difficulty=payload.difficulty,
            external_url=str(payload.external_url) if payload.external_url else None,
            tags=payload.tags,
            is_published=True,
        )
        db.add(course)
        await db.flush()

        modules = [
            CourseModule(
                course_id=course.id,
                title=module.title,
                description=module.description,
                estimated_minutes=module.estimated_minutes,
                sort_order=index,
            )
            for index, module in enumerate(payload.modules)
        ]
        db.add_all(modules)
        await db.commit()
        await db.refresh(course)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Failed to create course: %s", e)
        raise HTTPException(status_code=500, detail="Fehler beim Erstellen des Kurses")

    logger.info("Course %s created by %s with %d modules", course.id, current_user.id, len(modules))
    return {
        "course": CourseResponse.model_validate(course),
        "modules": [CourseModuleResponse.model_validate(m) for m in modules],
    }


@router.get("/{course_id}")
async def get_course(
    course_id: str,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Course with ordered modules, plus the caller's enrollment and its progress."""
    context = await require_profile_context(db, current_user.id, current_user.email)
    course = await get_org_course(db, course_id, context.organization_id)

    modules = (await db.execute(
        select(CourseModule)
        .where(CourseModule.course_id == course.id)
        .order_by(CourseModule.sort_order.asc())
    )).scalars().all()

    enrollment = (await db.execute(
        select(Enrollment).where(Enrollment.course_id == course.id, Enrollment.user_id == current_user.id)
    )).scalar_one_or_none()

    enrollment_data = None
    if enrollment:
        enrollment_data = EnrollmentResponse.model_validate(enrollment).model_dump()
        enrollment_data["progress"] = completion_percentage(
            await count_completions(db, enrollment.id), len(modules)
        ) if modules else 0

    return {
        "course": CourseResponse.model_validate(course),
        "modules": [CourseModuleResponse.model_validate(m) for m in modules],
        "enrollment": enrollment_data,
    }


@router.patch("/{course_id}")
async def update_course(
    course_id: str,
    payload: CourseUpdateRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    context = await require_profile_context(db, current_user.id, current_user.email)
    course = await get_org_course(db, course_id, context.organization_id)
    if not can_manage_course(course, current_user.id, context.role):
        raise HTTPException(status_code=403, detail="Keine Berechtigung zum Bearbeiten dieses Kurses")

    updates = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    if not updates:
        raise HTTPException(status_code=400, detail="Keine gültigen Felder")
    if "external_url" in updates:
        updates["external_url"] = str(updates["external_url"])

    try:
        for field, value in updates.items():
            setattr(course, field, value)
        await db.commit()
        await db.refresh(course)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Failed to update course %s: %s", course_id, e)
        raise HTTPException(status_code=500, detail="Fehler beim Aktualisieren")

    return {"course": CourseResponse.model_validate(course)}


@router.delete("/{course_id}")
async def delete_course(
    course_id: str,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Hard delete; refused while anyone is enrolled."""
    context = await require_profile_context(db, current_user.id, current_user.email)
    course = await get_org_course(db, course_id, context.organization_id)
    if not can_manage_course(course, current_user.id, context.role):
        raise HTTPException(status_code=403, detail="Keine Berechtigung zum Löschen dieses Kurses")

    try:
        enrolled = (await db.execute(
            select(func.count(Enrollment.id)).where(
                Enrollment.course_id == course.id,
                Enrollment.status.in_([EnrollmentStatus.in_progress, EnrollmentStatus.completed]),
            )
        )).scalar_one()
        if enrolled:
            raise HTTPException(
                status_code=409,
                detail="Kurs kann nicht gelöscht werden, da aktive Einschreibungen existieren"
            )

        modules = (await db.execute(
            select(CourseModule).where(CourseModule.course_id == course.id)
        )).scalars().all()
        for module in modules:
            await db.delete(module)
        await db.delete(course)
        await db.commit()
    except HTTPException:
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Failed to delete course %s: %s", course_id, e)
        raise HTTPException(status_code=500, detail="Fehler beim Löschen")

    return {"success": True}


@router.post("/{course_id}/enroll", status_code=201)
async def enroll(
    course_id: str,
    payload: Optional[EnrollRequest] = None,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """
    Enroll the caller. The (user, course) unique constraint turns a second
    enrollment, including a concurrent one, into a 409.
    """
    context = await require_profile_context(db, current_user.id, current_user.email)
    course = await get_org_course(db, course_id, context.organization_id)

    enrollment = Enrollment(
        user_id=current_user.id,
        course_id=course.id,
        organization_id=context.organization_id,
        status=EnrollmentStatus.in_progress,
        notes=payload.notes if payload else None,
    )
    db.add(enrollment)
    try:
        await db.commit()
        await db.refresh(enrollment)
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=409, detail="Sie sind bereits in diesen Kurs eingeschrieben")
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Failed to enroll %s in %s: %s", current_user.id, course_id, e)
        raise HTTPException(status_code=500, detail="Fehler bei der Einschreibung")

    return {"enrollment": EnrollmentResponse.model_validate(enrollment)}


@router.post("/{course_id}/modules/{module_id}/complete")
async def toggle_module(
    course_id: str,
    module_id: str,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """
    Toggle a module's completion for the caller's enrollment and return the
    recomputed progress. Completion row and enrollment status commit together.
    """
    require_uuid(course_id, "Ungültige Kurs-ID")
    require_uuid(module_id)

    enrollment = (await db.execute(
        select(Enrollment).where(Enrollment.course_id == course_id, Enrollment.user_id == current_user.id)
    )).scalar_one_or_none()
    if not enrollment:
        raise HTTPException(status_code=404, detail="Einschreibung nicht gefunden")

    module = (await db.execute(
        select(CourseModule).where(CourseModule.id == module_id, CourseModule.course_id == course_id)
    )).scalar_one_or_none()
    if not module:
        raise HTTPException(status_code=404, detail="Modul nicht gefunden")

    try:
        result = await toggle_module_completion(db, enrollment, module.id)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Failed to toggle module %s for enrollment %s: %s", module_id, enrollment.id, e)
        raise HTTPException(status_code=500, detail="Fehler beim Aktualisieren des Fortschritts")

    return {
        "completed": result.completed,
        "progress": result.progress,
        "enrollment_status": result.enrollment_status,
    }
