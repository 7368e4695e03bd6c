from sqlalchemy import Column, String, DateTime, JSON, ForeignKey
from okr_tracker.models.base import Base, new_uuid, utcnow


class AuditLog(Base):
    """Append-only trail of OKR mutations."""

    __tablename__ = "okr_audit_logs"
    id = Column(String, primary_key=True, index=True, default=new_uuid)
    organization_id = Column(String, ForeignKey("organizations.id"), nullable=False, index=True)
    user_id = Column(String, ForeignKey("profiles.id"), nullable=False, index=True)
    action = Column(String, nullable=False)
    resource_type = Column(String, nullable=False)
    resource_id = Column(String, nullable=True)
    details = Column(JSON, nullable=False, default=dict)
    ip_address = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
