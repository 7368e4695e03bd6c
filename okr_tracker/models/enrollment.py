"""Enrollment, module completion and certificate models."""

from sqlalchemy import (
    Column, String, Text, Integer, DateTime, Enum as SQLEnum, ForeignKey, UniqueConstraint,
)
from okr_tracker.constants.constants import EnrollmentStatus
from okr_tracker.models.base import Base, TimestampMixin, new_uuid, utcnow


class Enrollment(Base, TimestampMixin):
    __tablename__ = "enrollments"
    __table_args__ = (
        UniqueConstraint("user_id", "course_id", name="uq_enrollments_user_course"),
    )
    id = Column(String, primary_key=True, index=True, default=new_uuid)
    user_id = Column(String, ForeignKey("profiles.id"), nullable=False, index=True)
    course_id = Column(String, ForeignKey("courses.id"), nullable=False, index=True)
    organization_id = Column(String, ForeignKey("organizations.id"), nullable=False)
    status = Column(SQLEnum(EnrollmentStatus), nullable=False, default=EnrollmentStatus.in_progress)
    notes = Column(Text, nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)


class ModuleCompletion(Base):
    """Presence of a row means the module is completed."""

    __tablename__ = "module_completions"
    __table_args__ = (
        UniqueConstraint("enrollment_id", "module_id", name="uq_module_completions_enrollment_module"),
    )
    id = Column(String, primary_key=True, index=True, default=new_uuid)
    enrollment_id = Column(String, ForeignKey("enrollments.id", ondelete="CASCADE"), nullable=False, index=True)
    module_id = Column(String, ForeignKey("course_modules.id", ondelete="CASCADE"), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class Certificate(Base):
    __tablename__ = "certificates"
    id = Column(String, primary_key=True, index=True, default=new_uuid)
    enrollment_id = Column(String, ForeignKey("enrollments.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String, ForeignKey("profiles.id"), nullable=False)
    file_name = Column(String, nullable=False)
    file_url = Column(String, nullable=False)
    file_size = Column(Integer, nullable=False)
    mime_type = Column(String, nullable=False)
    uploaded_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
