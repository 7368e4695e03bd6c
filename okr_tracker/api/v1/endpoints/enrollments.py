import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from okr_tracker.constants.constants import EnrollmentStatus
from okr_tracker.core.database import aget_db
from okr_tracker.core.security import AuthUser, get_current_user
from okr_tracker.models.course import Course, CourseModule
from okr_tracker.models.enrollment import Certificate, Enrollment, ModuleCompletion
from okr_tracker.schemas.courseSchema import (
    CertificateResponse,
    CourseResponse,
    EnrollmentResponse,
    EnrollmentUpdateRequest,
)
from okr_tracker.utils.course_progress import completion_percentage
from okr_tracker.utils.uploads.val_upload_certificate import validate_and_upload_certificate
from okr_tracker.utils.validation import require_uuid

router = APIRouter(prefix="/enrollments", tags=["enrollments"])
logger = logging.getLogger(__name__)


async def get_own_enrollment(
    db: AsyncSession, enrollment_id: str, user_id: str, invalid_detail: str = "Ungültige ID"
) -> Enrollment:
    require_uuid(enrollment_id, invalid_detail)
    result = await db.execute(
        select(Enrollment).where(Enrollment.id == enrollment_id, Enrollment.user_id == user_id)
    )
    enrollment = result.scalar_one_or_none()
    if not enrollment:
        raise HTTPException(status_code=404, detail="Einschreibung nicht gefunden")
    return enrollment


@router.get("")
async def list_enrollments(
    status: Optional[EnrollmentStatus] = Query(None),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """
    The caller's enrollments with course info and computed progress:
    round(completions / modules * 100), 0 for a course without modules.
    """
    try:
        query = (
            select(Enrollment, Course)
            .join(Course, Course.id == Enrollment.course_id)
            .where(Enrollment.user_id == current_user.id)
        )
        if status:
            query = query.where(Enrollment.status == status)
        rows = (await db.execute(query.order_by(Enrollment.started_at.desc()))).all()

        course_ids = [course.id for _, course in rows]
        enrollment_ids = [enrollment.id for enrollment, _ in rows]

        module_counts = {}
        completion_counts = {}
        if rows:
            module_counts = dict((await db.execute(
                select(CourseModule.course_id, func.count(CourseModule.id))
                .where(CourseModule.course_id.in_(course_ids))
                .group_by(CourseModule.course_id)
            )).all())
            completion_counts = dict((await db.execute(
                select(ModuleCompletion.enrollment_id, func.count(ModuleCompletion.id))
                .where(ModuleCompletion.enrollment_id.in_(enrollment_ids))
                .group_by(ModuleCompletion.enrollment_id)
            )).all())
    except SQLAlchemyError as e:
        logger.error("Failed to list enrollments for %s: %s", current_user.id, e)
        raise HTTPException(status_code=500, detail="Fehler beim Laden der Einschreibungen")

    enrollments = []
    for enrollment, course in rows:
        total_modules = module_counts.get(course.id, 0)
        data = EnrollmentResponse.model_validate(enrollment).model_dump()
        data["course"] = CourseResponse.model_validate(course).model_dump()
        data["module_count"] = total_modules
        data["completed_modules"] = completion_counts.get(enrollment.id, 0)
        data["progress"] = (
            completion_percentage(data["completed_modules"], total_modules) if total_modules else 0
        )
        enrollments.append(data)

    return {"enrollments": enrollments}


@router.patch("/{enrollment_id}")
async def update_enrollment(
    enrollment_id: str,
    payload: EnrollmentUpdateRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Only notes can change; the status follows the module completions."""
    if "notes" not in payload.model_fields_set:
        raise HTTPException(status_code=400, detail="Keine gültigen Felder")

    enrollment = await get_own_enrollment(db, enrollment_id, current_user.id)
    try:
        enrollment.notes = payload.notes
        await db.commit()
        await db.refresh(enrollment)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Failed to update enrollment %s: %s", enrollment_id, e)
        raise HTTPException(status_code=500, detail="Fehler beim Aktualisieren")

    return {"enrollment": EnrollmentResponse.model_validate(enrollment)}


@router.delete("/{enrollment_id}")
async def delete_enrollment(
    enrollment_id: str,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Unenroll: completions and certificate rows go with the enrollment."""
    enrollment = await get_own_enrollment(db, enrollment_id, current_user.id)
    try:
        await db.execute(delete(ModuleCompletion).where(ModuleCompletion.enrollment_id == enrollment.id))
        await db.execute(delete(Certificate).where(Certificate.enrollment_id == enrollment.id))
        await db.delete(enrollment)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Failed to delete enrollment %s: %s", enrollment_id, e)
        raise HTTPException(status_code=500, detail="Fehler beim Löschen")

    return {"success": True}


@router.post("/{enrollment_id}/certificate", status_code=201)
async def upload_certificate(
    enrollment_id: str,
    file: Optional[UploadFile] = File(None),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Store a certificate file for one of the caller's enrollments."""
    enrollment = await get_own_enrollment(
        db, enrollment_id, current_user.id, "Ungültige Einschreibungs-ID"
    )

    uploaded = await validate_and_upload_certificate(file, current_user.id, enrollment.id)

    certificate = Certificate(
        enrollment_id=enrollment.id,
        user_id=current_user.id,
        file_name=uploaded.file_name,
        file_url=uploaded.file_url,
        file_size=uploaded.file_size,
        mime_type=uploaded.mime_type,
    )
    db.add(certificate)
    try:
        await db.commit()
        await db.refresh(certificate)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Failed to save certificate for enrollment %s: %s", enrollment_id, e)
        raise HTTPException(status_code=500, detail="Fehler beim Speichern des Zertifikats")

    logger.info("Certificate %s uploaded for enrollment %s", certificate.id, enrollment.id)
    return {"certificate": CertificateResponse.model_validate(certificate)}
