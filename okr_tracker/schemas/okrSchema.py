from datetime import date, datetime
from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel, Field

from okr_tracker.constants.constants import OKRCategory, OKRScope, OKRStatus, CheckInChangeType
from okr_tracker.utils import okr_logic

QUARTER_REGEX = r"^Q[1-4] \d{4}$"


class KeyResultCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    start_value: float = Field(0, allow_inf_nan=False)
    target_value: float = Field(..., allow_inf_nan=False)
    unit: Optional[str] = Field(None, max_length=50)


class OKRCreateRequest(BaseModel):
    """Request schema for creating an OKR with its key results."""
    title: str = Field(..., min_length=1, max_length=200)
    why_it_matters: Optional[str] = Field(None, max_length=1000)
    quarter: str = Field(..., pattern=QUARTER_REGEX)
    category: OKRCategory
    scope: OKRScope = OKRScope.personal
    due_date: Optional[date] = None
    team_id: Optional[UUID] = None
    key_results: List[KeyResultCreate] = Field(..., min_length=1, max_length=5)


class OKRUpdateRequest(BaseModel):
    """Only the fields sent are applied."""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    why_it_matters: Optional[str] = Field(None, max_length=1000)
    category: Optional[OKRCategory] = None
    scope: Optional[OKRScope] = None
    due_date: Optional[date] = None
    is_active: Optional[bool] = None
    is_focus: Optional[bool] = None
    sort_order: Optional[int] = Field(None, ge=0)


class ArchiveRequest(BaseModel):
    archive: bool


class DuplicateRequest(BaseModel):
    target_quarter: str = Field(..., pattern=QUARTER_REGEX)
    reset_progress: bool = True
    copy_key_results: bool = True


class KeyResultValueUpdate(BaseModel):
    id: UUID
    current_value: float = Field(..., allow_inf_nan=False)


class CheckInRequest(BaseModel):
    confidence: int = Field(..., ge=1, le=5)
    what_helped: Optional[str] = Field(None, max_length=2000)
    what_blocked: Optional[str] = Field(None, max_length=2000)
    next_steps: Optional[str] = Field(None, max_length=2000)
    key_result_updates: List[KeyResultValueUpdate] = Field(default_factory=list)


class KeyResultResponse(BaseModel):
    id: str
    okr_id: str
    title: str
    start_value: float
    target_value: float
    current_value: float
    unit: Optional[str]
    progress: int
    sort_order: int
    source_url: Optional[str] = None
    source_label: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class OKRResponse(BaseModel):
    id: str
    user_id: str
    organization_id: str
    title: str
    why_it_matters: Optional[str]
    quarter: str
    category: OKRCategory
    progress: int
    status: OKRStatus
    confidence: int
    scope: OKRScope
    due_date: Optional[date]
    is_active: bool
    is_focus: bool
    sort_order: int
    parent_okr_id: Optional[str] = None
    team_id: Optional[str] = None
    last_checkin_at: Optional[datetime] = None
    next_checkin_at: Optional[datetime] = None
    checkin_count: int
    key_results: List[KeyResultResponse] = []
    # derived for display
    score: float = 0.0
    score_label: Optional[str] = None
    status_label: Optional[str] = None
    confidence_label: Optional[str] = None
    category_label: Optional[str] = None
    checkin_overdue: bool = False
    checkin_days_remaining: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CheckInResponse(BaseModel):
    id: str
    okr_id: str
    user_id: str
    progress_update: Optional[int]
    confidence: Optional[int]
    what_helped: Optional[str]
    what_blocked: Optional[str]
    next_steps: Optional[str]
    change_type: CheckInChangeType
    change_details: dict
    checked_at: datetime

    class Config:
        from_attributes = True


def serialize_okr(okr, key_results) -> OKRResponse:
    """OKR plus its key results; key results are loaded by the caller."""
    score = okr_logic.progress_to_score(okr.progress)
    return OKRResponse.model_validate(okr).model_copy(
        update={
            "key_results": [KeyResultResponse.model_validate(kr) for kr in key_results],
            "score": score,
            "score_label": okr_logic.get_score_interpretation(score),
            "status_label": okr_logic.get_status_label(okr.status),
            "confidence_label": okr_logic.get_confidence_label(okr.confidence),
            "category_label": okr_logic.get_category_label(okr.category),
            "checkin_overdue": okr_logic.is_checkin_overdue(okr.next_checkin_at),
            "checkin_days_remaining": okr_logic.get_checkin_days_remaining(okr.next_checkin_at),
        }
    )
