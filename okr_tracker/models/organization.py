"""Organization (tenant) model."""

from sqlalchemy import Column, String
from okr_tracker.models.base import Base, TimestampMixin, new_uuid


class Organization(Base, TimestampMixin):
    __tablename__ = "organizations"
    id = Column(String, primary_key=True, index=True, default=new_uuid)
    name = Column(String, nullable=False)
    domain = Column(String, nullable=True)
    slug = Column(String, unique=True, index=True, nullable=False)
    logo_url = Column(String, nullable=True)
