from sqlalchemy import Column, String, ForeignKey
from okr_tracker.models.base import Base, TimestampMixin, new_uuid


class Team(Base, TimestampMixin):
    """Team inside an organization; team-scoped OKRs point here."""

    __tablename__ = "teams"
    id = Column(String, primary_key=True, index=True, default=new_uuid)
    organization_id = Column(String, ForeignKey("organizations.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
