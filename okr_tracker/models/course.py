"""Learning course and course module models."""

from sqlalchemy import Column, String, Text, Integer, Boolean, JSON, Enum as SQLEnum, ForeignKey
from okr_tracker.constants.constants import CourseCategory, CourseDifficulty
from okr_tracker.models.base import Base, TimestampMixin, new_uuid


class Course(Base, TimestampMixin):
    __tablename__ = "courses"
    id = Column(String, primary_key=True, index=True, default=new_uuid)
    organization_id = Column(String, ForeignKey("organizations.id"), nullable=False, index=True)
    created_by = Column(String, ForeignKey("profiles.id"), nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    provider = Column(String, nullable=False, default="Intern")
    category = Column(SQLEnum(CourseCategory), nullable=False)
    estimated_duration_minutes = Column(Integer, nullable=False)
    difficulty = Column(SQLEnum(CourseDifficulty), nullable=False, default=CourseDifficulty.beginner)
    external_url = Column(String, nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    is_published = Column(Boolean, nullable=False, default=True)


class CourseModule(Base, TimestampMixin):
    __tablename__ = "course_modules"
    id = Column(String, primary_key=True, index=True, default=new_uuid)
    course_id = Column(String, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    estimated_minutes = Column(Integer, nullable=False, default=15)
    sort_order = Column(Integer, nullable=False, default=0)
