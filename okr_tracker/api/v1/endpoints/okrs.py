import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.encoders import jsonable_encoder
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from okr_tracker.constants.constants import AuditAction, CheckInChangeType, OKRStatus
from okr_tracker.core.database import aget_db
from okr_tracker.core.security import AuthUser, get_current_user
from okr_tracker.models.base import utcnow
from okr_tracker.models.okr import OKR, CheckIn, KeyResult
from okr_tracker.schemas.okrSchema import (
    ArchiveRequest,
    CheckInRequest,
    CheckInResponse,
    DuplicateRequest,
    OKRCreateRequest,
    OKRUpdateRequest,
    serialize_okr,
)
from okr_tracker.services.AuditService import create_audit_log
from okr_tracker.utils import okr_logic
from okr_tracker.utils.profile_resolver import require_profile_context
from okr_tracker.utils.validation import require_uuid

router = APIRouter(prefix="/okrs", tags=["okrs"])
logger = logging.getLogger(__name__)

OKR_LIMIT_MESSAGE = f"Maximal {okr_logic.MAX_OKRS_PER_QUARTER} OKRs pro Quartal erlaubt"
FOCUS_LIMIT_MESSAGE = f"Maximal {okr_logic.MAX_FOCUS} Fokus-OKRs erlaubt"
ARCHIVED_FOCUS_MESSAGE = "Archivierte OKRs können nicht als Fokus markiert werden"

# PATCH may clear these; every other field ignores an explicit null
NULLABLE_UPDATE_FIELDS = {"why_it_matters", "due_date"}


async def get_own_okr(db: AsyncSession, okr_id: str, user_id: str) -> OKR:
    require_uuid(okr_id)
    result = await db.execute(
        select(OKR).where(OKR.id == okr_id, OKR.user_id == user_id)
    )
    okr = result.scalar_one_or_none()
    if not okr:
        raise HTTPException(status_code=404, detail="OKR nicht gefunden")
    return okr


async def load_key_results(db: AsyncSession, okr_ids: List[str]) -> Dict[str, List[KeyResult]]:
    grouped: Dict[str, List[KeyResult]] = {okr_id: [] for okr_id in okr_ids}
    if not okr_ids:
        return grouped
    result = await db.execute(
        select(KeyResult)
        .where(KeyResult.okr_id.in_(okr_ids))
        .order_by(KeyResult.sort_order.asc())
    )
    for kr in result.scalars().all():
        grouped[kr.okr_id].append(kr)
    return grouped


async def okr_payload(db: AsyncSession, okr: OKR) -> dict:
    key_results = await load_key_results(db, [okr.id])
    return serialize_okr(okr, key_results[okr.id])


async def count_active_okrs(db: AsyncSession, user_id: str, quarter: str) -> int:
    result = await db.execute(
        select(func.count(OKR.id)).where(
            OKR.user_id == user_id,
            OKR.quarter == quarter,
            OKR.is_active.is_(True),
        )
    )
    return result.scalar_one()


async def count_focus_okrs(db: AsyncSession, user_id: str, quarter: str) -> int:
    result = await db.execute(
        select(func.count(OKR.id)).where(
            OKR.user_id == user_id,
            OKR.quarter == quarter,
            OKR.is_active.is_(True),
            OKR.is_focus.is_(True),
        )
    )
    return result.scalar_one()


async def next_sort_order(db: AsyncSession, user_id: str, quarter: str) -> int:
    result = await db.execute(
        select(func.max(OKR.sort_order)).where(OKR.user_id == user_id, OKR.quarter == quarter)
    )
    last = result.scalar_one_or_none()
    return (last if last is not None else -1) + 1


def refresh_status(okr: OKR) -> None:
    if okr.due_date and okr.created_at:
        okr.status = okr_logic.calculate_status(okr.progress, okr.created_at, okr.due_date)


@router.get("/quarters")
async def list_quarters(current_user: AuthUser = Depends(get_current_user)):
    """Previous, current and next quarter for quarter pickers."""
    return {
        "quarters": okr_logic.get_available_quarters(),
        "current": okr_logic.get_current_quarter(),
        "limits": {
            "max_okrs_per_quarter": okr_logic.MAX_OKRS_PER_QUARTER,
            "recommended_okrs": okr_logic.RECOMMENDED_OKRS,
            "max_focus": okr_logic.MAX_FOCUS,
            "checkin_interval_days": okr_logic.CHECKIN_INTERVAL_DAYS,
            "target_score": okr_logic.TARGET_SCORE,
        },
    }


@router.get("")
async def list_okrs(
    quarter: Optional[str] = Query(None),
    archived: Optional[bool] = Query(None),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """
    The caller's OKRs with key results.
    archived=true lists the trash, archived=false only active OKRs.
    """
    try:
        query = select(OKR).where(OKR.user_id == current_user.id)
        if quarter:
            query = query.where(OKR.quarter == quarter)
        if archived is not None:
            query = query.where(OKR.is_active.is_(not archived))
        query = query.order_by(OKR.sort_order.asc(), OKR.created_at.desc())

        okrs = (await db.execute(query)).scalars().all()
        key_results = await load_key_results(db, [okr.id for okr in okrs])
    except SQLAlchemyError as e:
        logger.error("Failed to load OKRs for %s: %s", current_user.id, e)
        raise HTTPException(status_code=500, detail="Fehler beim Laden der OKRs")

    return {"okrs": [serialize_okr(okr, key_results[okr.id]) for okr in okrs]}


@router.post("", status_code=201)
async def create_okr(
    payload: OKRCreateRequest,
    request: Request,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Create an OKR and its key results in one transaction."""
    context = await require_profile_context(db, current_user.id, current_user.email)

    try:
        active_count = await count_active_okrs(db, current_user.id, payload.quarter)
        if not okr_logic.can_create_okr(active_count):
            raise HTTPException(status_code=400, detail=OKR_LIMIT_MESSAGE)

        okr = OKR(
            user_id=current_user.id,
            organization_id=context.organization_id,
            title=payload.title,
            why_it_matters=payload.why_it_matters,
            quarter=payload.quarter,
            category=payload.category,
            scope=payload.scope,
            due_date=payload.due_date or okr_logic.get_quarter_end_date(payload.quarter),
            team_id=str(payload.team_id) if payload.team_id else None,
            sort_order=await next_sort_order(db, current_user.id, payload.quarter),
            status=OKRStatus.on_track,
            confidence=3,
            checkin_count=0,
        )
        db.add(okr)
        await db.flush()

        key_results = [
            KeyResult(
                okr_id=okr.id,
                title=kr.title,
                start_value=kr.start_value,
                target_value=kr.target_value,
                current_value=kr.start_value,
                unit=kr.unit,
                sort_order=index,
                progress=okr_logic.calculate_kr_progress(kr.start_value, kr.start_value, kr.target_value),
            )
            for index, kr in enumerate(payload.key_results)
        ]
        db.add_all(key_results)
        okr.progress = okr_logic.calculate_okr_progress(kr.progress for kr in key_results)
        await db.commit()
        await db.refresh(okr)
        response = await okr_payload(db, okr)

    except HTTPException:
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Failed to create OKR for %s: %s", current_user.id, e)
        raise HTTPException(status_code=500, detail="Fehler beim Erstellen des OKR")

    await create_audit_log(
        db, request, current_user.id, context.organization_id,
        AuditAction.okr_create, "okr", okr.id, {"title": okr.title},
    )
    return {"okr": response}


@router.get("/{okr_id}")
async def get_okr(
    okr_id: str,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    okr = await get_own_okr(db, okr_id, current_user.id)
    return {"okr": await okr_payload(db, okr)}


@router.patch("/{okr_id}")
async def update_okr(
    okr_id: str,
    payload: OKRUpdateRequest,
    request: Request,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """
    Apply the sent fields. Restoring from the trash and marking as focus
    respect the quarter limits; the status is recomputed from the due date.
    """
    updates = {
        field: value
        for field, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or field in NULLABLE_UPDATE_FIELDS
    }
    if not updates:
        raise HTTPException(status_code=400, detail="Keine gültigen Felder")

    okr = await get_own_okr(db, okr_id, current_user.id)

    changes = {}
    for field, value in updates.items():
        old = getattr(okr, field)
        if old != value:
            changes[field] = {"old": old, "new": value}

    try:
        if updates.get("is_active") is True and not okr.is_active:
            if not okr_logic.can_create_okr(await count_active_okrs(db, current_user.id, okr.quarter)):
                raise HTTPException(status_code=400, detail=OKR_LIMIT_MESSAGE)

        will_be_active = updates.get("is_active", okr.is_active)
        if updates.get("is_focus") is True and not okr.is_focus:
            if not will_be_active:
                raise HTTPException(status_code=400, detail=ARCHIVED_FOCUS_MESSAGE)
            if not okr_logic.can_add_focus(await count_focus_okrs(db, current_user.id, okr.quarter)):
                raise HTTPException(status_code=400, detail=FOCUS_LIMIT_MESSAGE)

        for field, value in updates.items():
            setattr(okr, field, value)
        if not okr.is_active:
            okr.is_focus = False
        refresh_status(okr)

        await db.commit()
        await db.refresh(okr)
        response = await okr_payload(db, okr)

    except HTTPException:
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Failed to update OKR %s: %s", okr_id, e)
        raise HTTPException(status_code=500, detail="Fehler beim Aktualisieren")

    if "is_active" in changes:
        action = AuditAction.okr_restore if okr.is_active else AuditAction.okr_archive
        await create_audit_log(
            db, request, current_user.id, okr.organization_id, action, "okr", okr.id, {"title": okr.title},
        )
    elif changes:
        await create_audit_log(
            db, request, current_user.id, okr.organization_id,
            AuditAction.okr_update, "okr", okr.id, {"changes": jsonable_encoder(changes)},
        )
    return {"okr": response}


@router.delete("/{okr_id}")
async def delete_okr(
    okr_id: str,
    request: Request,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Soft delete: the OKR moves to the trash."""
    okr = await get_own_okr(db, okr_id, current_user.id)
    try:
        okr.is_active = False
        okr.is_focus = False
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Failed to delete OKR %s: %s", okr_id, e)
        raise HTTPException(status_code=500, detail="Fehler beim Löschen")

    await create_audit_log(
        db, request, current_user.id, okr.organization_id,
        AuditAction.okr_delete, "okr", okr.id, {"title": okr.title},
    )
    return {"success": True}


@router.post("/{okr_id}/archive")
async def archive_okr(
    okr_id: str,
    payload: ArchiveRequest,
    request: Request,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    okr = await get_own_okr(db, okr_id, current_user.id)
    try:
        if not payload.archive and not okr.is_active:
            if not okr_logic.can_create_okr(await count_active_okrs(db, current_user.id, okr.quarter)):
                raise HTTPException(status_code=400, detail=OKR_LIMIT_MESSAGE)

        okr.is_active = not payload.archive
        okr.is_focus = False
        await db.commit()
        await db.refresh(okr)
        response = await okr_payload(db, okr)
    except HTTPException:
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Failed to archive OKR %s: %s", okr_id, e)
        raise HTTPException(status_code=500, detail="Fehler beim Archivieren")

    action = AuditAction.okr_archive if payload.archive else AuditAction.okr_restore
    await create_audit_log(
        db, request, current_user.id, okr.organization_id, action, "okr", okr.id, {"title": okr.title},
    )
    return {"okr": response}


@router.post("/{okr_id}/focus")
async def toggle_focus(
    okr_id: str,
    request: Request,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Toggle the focus flag; at most MAX_FOCUS active focus OKRs per quarter."""
    okr = await get_own_okr(db, okr_id, current_user.id)
    if not okr.is_active:
        raise HTTPException(status_code=400, detail=ARCHIVED_FOCUS_MESSAGE)

    try:
        if not okr.is_focus:
            if not okr_logic.can_add_focus(await count_focus_okrs(db, current_user.id, okr.quarter)):
                raise HTTPException(status_code=400, detail=FOCUS_LIMIT_MESSAGE)

        okr.is_focus = not okr.is_focus
        await db.commit()
        await db.refresh(okr)
        response = await okr_payload(db, okr)
    except HTTPException:
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Failed to toggle focus on OKR %s: %s", okr_id, e)
        raise HTTPException(status_code=500, detail="Fehler beim Aktualisieren")

    await create_audit_log(
        db, request, current_user.id, okr.organization_id,
        AuditAction.focus_toggle, "okr", okr.id, {"is_focus": okr.is_focus},
    )
    return {"okr": response}


@router.post("/{okr_id}/duplicate", status_code=201)
async def duplicate_okr(
    okr_id: str,
    payload: DuplicateRequest,
    request: Request,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Copy an OKR into another quarter, optionally with its key results."""
    source = await get_own_okr(db, okr_id, current_user.id)

    try:
        active_count = await count_active_okrs(db, current_user.id, payload.target_quarter)
        if not okr_logic.can_create_okr(active_count):
            raise HTTPException(status_code=400, detail=OKR_LIMIT_MESSAGE)

        source_krs = (await load_key_results(db, [source.id]))[source.id]

        okr = OKR(
            user_id=current_user.id,
            organization_id=source.organization_id,
            title=source.title,
            why_it_matters=source.why_it_matters,
            quarter=payload.target_quarter,
            category=source.category,
            scope=source.scope,
            team_id=source.team_id,
            due_date=okr_logic.get_quarter_end_date(payload.target_quarter),
            sort_order=await next_sort_order(db, current_user.id, payload.target_quarter),
            confidence=3 if payload.reset_progress else source.confidence,
            status=OKRStatus.on_track,
            checkin_count=0,
        )
        db.add(okr)
        await db.flush()

        copies = []
        if payload.copy_key_results:
            for kr in source_krs:
                current = kr.start_value if payload.reset_progress else kr.current_value
                copies.append(KeyResult(
                    okr_id=okr.id,
                    title=kr.title,
                    start_value=kr.start_value,
                    target_value=kr.target_value,
                    current_value=current,
                    unit=kr.unit,
                    sort_order=kr.sort_order,
                    source_url=kr.source_url,
                    source_label=kr.source_label,
                    progress=okr_logic.calculate_kr_progress(current, kr.start_value, kr.target_value),
                ))
            db.add_all(copies)
        okr.progress = okr_logic.calculate_okr_progress(kr.progress for kr in copies)

        await db.commit()
        await db.refresh(okr)
        response = await okr_payload(db, okr)
    except HTTPException:
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Failed to duplicate OKR %s: %s", okr_id, e)
        raise HTTPException(status_code=500, detail="Fehler beim Duplizieren")

    await create_audit_log(
        db, request, current_user.id, source.organization_id,
        AuditAction.okr_duplicate, "okr", source.id,
        {"new_okr_id": okr.id, "target_quarter": payload.target_quarter},
    )
    return {"okr": response}


@router.get("/{okr_id}/checkin")
async def list_checkins(
    okr_id: str,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    okr = await get_own_okr(db, okr_id, current_user.id)
    result = await db.execute(
        select(CheckIn).where(CheckIn.okr_id == okr.id).order_by(CheckIn.checked_at.desc())
    )
    return {"checkins": [CheckInResponse.model_validate(c) for c in result.scalars().all()]}


@router.post("/{okr_id}/checkin", status_code=201)
async def create_checkin(
    okr_id: str,
    payload: CheckInRequest,
    request: Request,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """
    Record a check-in: update key result values, derive KR and OKR progress,
    move the check-in schedule forward and recompute the status.
    """
    okr = await get_own_okr(db, okr_id, current_user.id)
    if not okr.is_active:
        raise HTTPException(status_code=400, detail="Check-in für archivierte OKRs nicht möglich")

    try:
        key_results = (await load_key_results(db, [okr.id]))[okr.id]
        by_id = {kr.id: kr for kr in key_results}
        applied = []
        for update in payload.key_result_updates:
            kr = by_id.get(str(update.id))
            if kr is None:
                continue
            kr.current_value = update.current_value
            kr.progress = okr_logic.calculate_kr_progress(kr.current_value, kr.start_value, kr.target_value)
            applied.append({"id": kr.id, "current_value": update.current_value})

        previous_progress = okr.progress
        if key_results:
            okr.progress = okr_logic.calculate_okr_progress(kr.progress for kr in key_results)

        now = utcnow()
        okr.confidence = payload.confidence
        okr.last_checkin_at = now
        okr.next_checkin_at = okr_logic.next_checkin_at(now)
        okr.checkin_count = (okr.checkin_count or 0) + 1
        refresh_status(okr)

        checkin = CheckIn(
            okr_id=okr.id,
            user_id=current_user.id,
            progress_update=okr.progress,
            confidence=payload.confidence,
            what_helped=payload.what_helped,
            what_blocked=payload.what_blocked,
            next_steps=payload.next_steps,
            change_type=CheckInChangeType.progress,
            change_details={
                "key_result_updates": applied,
                "previous_progress": previous_progress,
                "new_progress": okr.progress,
            },
            checked_at=now,
        )
        db.add(checkin)
        await db.commit()
        await db.refresh(okr)
        await db.refresh(checkin)
        response = {
            "checkin": CheckInResponse.model_validate(checkin),
            "okr": await okr_payload(db, okr),
        }
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Failed to create check-in for OKR %s: %s", okr_id, e)
        raise HTTPException(status_code=500, detail="Fehler beim Erstellen des Check-ins")

    await create_audit_log(
        db, request, current_user.id, okr.organization_id,
        AuditAction.checkin_create, "checkin", checkin.id, {"okr_id": okr.id},
    )
    return response
