from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class OrganizationResponse(BaseModel):
    id: str
    name: str
    domain: Optional[str]
    slug: str
    logo_url: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class OrganizationUpdateRequest(BaseModel):
    """Only name, domain and logo_url can be changed; anything else is ignored."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    domain: Optional[str] = Field(None, max_length=200)
    logo_url: Optional[str] = Field(None, max_length=500)


class AuditLogResponse(BaseModel):
    id: str
    organization_id: str
    user_id: str
    action: str
    resource_type: str
    resource_id: Optional[str]
    details: dict
    ip_address: Optional[str]
    user_agent: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True
