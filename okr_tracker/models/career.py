"""Career ladder levels and per-user progress."""

from sqlalchemy import Column, String, Text, Integer, Float, DateTime, ForeignKey, UniqueConstraint
from okr_tracker.models.base import Base, TimestampMixin, new_uuid


class CareerLevel(Base, TimestampMixin):
    __tablename__ = "career_levels"
    id = Column(String, primary_key=True, index=True, default=new_uuid)
    organization_id = Column(String, ForeignKey("organizations.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)
    min_okrs_with_target_score = Column(Integer, nullable=False, default=4)
    target_score_threshold = Column(Float, nullable=False, default=0.7)


class UserCareerProgress(Base, TimestampMixin):
    __tablename__ = "user_career_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "organization_id", name="uq_career_progress_user_org"),
    )
    id = Column(String, primary_key=True, index=True, default=new_uuid)
    user_id = Column(String, ForeignKey("profiles.id"), nullable=False, index=True)
    organization_id = Column(String, ForeignKey("organizations.id"), nullable=False)
    current_level_id = Column(String, ForeignKey("career_levels.id"), nullable=True)
    qualifying_okr_count = Column(Integer, nullable=False, default=0)
    total_okrs_attempted = Column(Integer, nullable=False, default=0)
    level_confirmed_at = Column(DateTime(timezone=True), nullable=True)
