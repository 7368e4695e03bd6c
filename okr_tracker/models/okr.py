"""OKR, key result and check-in models."""

from sqlalchemy import (
    Column, String, Text, Integer, Float, Boolean, Date, DateTime, JSON,
    Enum as SQLEnum, ForeignKey,
)
from okr_tracker.constants.constants import (
    OKRCategory, OKRStatus, OKRScope, CheckInChangeType,
)
from okr_tracker.models.base import Base, TimestampMixin, new_uuid, utcnow


class OKR(Base, TimestampMixin):
    """Quarterly objective owned by one profile. is_active=False means archived."""

    __tablename__ = "okrs"
    id = Column(String, primary_key=True, index=True, default=new_uuid)
    user_id = Column(String, ForeignKey("profiles.id"), nullable=False, index=True)
    organization_id = Column(String, ForeignKey("organizations.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    why_it_matters = Column(Text, nullable=True)
    quarter = Column(String, nullable=False, index=True)
    category = Column(SQLEnum(OKRCategory), nullable=False)
    progress = Column(Integer, nullable=False, default=0)
    status = Column(SQLEnum(OKRStatus), nullable=False, default=OKRStatus.on_track)
    confidence = Column(Integer, nullable=False, default=3)
    scope = Column(SQLEnum(OKRScope), nullable=False, default=OKRScope.personal)
    due_date = Column(Date, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    is_focus = Column(Boolean, nullable=False, default=False)
    sort_order = Column(Integer, nullable=False, default=0)
    parent_okr_id = Column(String, ForeignKey("okrs.id"), nullable=True)
    team_id = Column(String, ForeignKey("teams.id"), nullable=True)
    last_checkin_at = Column(DateTime(timezone=True), nullable=True)
    next_checkin_at = Column(DateTime(timezone=True), nullable=True)
    checkin_count = Column(Integer, nullable=False, default=0)


class KeyResult(Base, TimestampMixin):
    __tablename__ = "key_results"
    id = Column(String, primary_key=True, index=True, default=new_uuid)
    okr_id = Column(String, ForeignKey("okrs.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False)
    start_value = Column(Float, nullable=False, default=0)
    target_value = Column(Float, nullable=False)
    current_value = Column(Float, nullable=False, default=0)
    unit = Column(String, nullable=True)
    progress = Column(Integer, nullable=False, default=0)
    sort_order = Column(Integer, nullable=False, default=0)
    source_url = Column(String, nullable=True)
    source_label = Column(String, nullable=True)


class CheckIn(Base):
    __tablename__ = "check_ins"
    id = Column(String, primary_key=True, index=True, default=new_uuid)
    okr_id = Column(String, ForeignKey("okrs.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String, ForeignKey("profiles.id"), nullable=False)
    progress_update = Column(Integer, nullable=True)
    confidence = Column(Integer, nullable=True)
    what_helped = Column(Text, nullable=True)
    what_blocked = Column(Text, nullable=True)
    next_steps = Column(Text, nullable=True)
    change_type = Column(SQLEnum(CheckInChangeType), nullable=False, default=CheckInChangeType.progress)
    change_details = Column(JSON, nullable=False, default=dict)
    checked_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
