from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from okr_tracker.constants.constants import UserRole, UserStatus


class ProfileResponse(BaseModel):
    id: str
    email: str
    name: str
    avatar_url: Optional[str]
    role: UserRole
    status: UserStatus
    department: Optional[str]
    manager_id: Optional[str]
    career_level_id: Optional[str]
    organization_id: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ProfileUpdateRequest(BaseModel):
    """Fields a user may change on their own profile."""
    name: Optional[str] = Field(None, max_length=100)
    department: Optional[str] = Field(None, max_length=100)


class RoleChangeRequest(BaseModel):
    role: str


class CareerProgressResponse(BaseModel):
    id: str
    user_id: str
    organization_id: str
    current_level_id: Optional[str]
    qualifying_okr_count: int
    total_okrs_attempted: int
    level_confirmed_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
