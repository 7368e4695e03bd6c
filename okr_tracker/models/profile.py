"""Profile model: one row per authenticated identity."""

from sqlalchemy import Column, String, Enum, ForeignKey

from okr_tracker.constants.constants import UserRole, UserStatus
from okr_tracker.models.base import Base, TimestampMixin


class Profile(Base, TimestampMixin):
    __tablename__ = "profiles"
    # Same id as the identity provider's user
    id = Column(String, primary_key=True, index=True)
    email = Column(String, index=True, nullable=False)
    name = Column(String, nullable=False)
    avatar_url = Column(String, nullable=True)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.employee)
    status = Column(Enum(UserStatus), nullable=False, default=UserStatus.active)
    department = Column(String, nullable=True)
    manager_id = Column(String, ForeignKey("profiles.id"), nullable=True)
    career_level_id = Column(String, ForeignKey("career_levels.id"), nullable=True)
    organization_id = Column(String, ForeignKey("organizations.id"), nullable=True, index=True)
