from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union
from pydantic import BaseModel, Field, HttpUrl

from okr_tracker.constants.constants import CourseCategory, CourseDifficulty, EnrollmentStatus

Tag = Annotated[str, Field(max_length=50)]


class CourseModuleCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    estimated_minutes: int = Field(15, ge=1, le=600)


class CourseCreateRequest(BaseModel):
    """Request schema for creating a course together with its modules."""
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    provider: str = Field("Intern", max_length=100)
    category: CourseCategory
    estimated_duration_minutes: int = Field(..., ge=5, le=10000)
    difficulty: CourseDifficulty = CourseDifficulty.beginner
    external_url: Optional[Union[HttpUrl, Literal[""]]] = None
    tags: List[Tag] = Field(default_factory=list, max_length=10)
    modules: List[CourseModuleCreate] = Field(..., min_length=1, max_length=50)


class CourseUpdateRequest(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    provider: Optional[str] = Field(None, max_length=100)
    category: Optional[CourseCategory] = None
    estimated_duration_minutes: Optional[int] = Field(None, ge=5, le=10000)
    difficulty: Optional[CourseDifficulty] = None
    external_url: Optional[HttpUrl] = None
    is_published: Optional[bool] = None
    tags: Optional[List[Tag]] = Field(None, max_length=10)


class EnrollRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=500)


class EnrollmentUpdateRequest(BaseModel):
    """Status is derived from module completions and cannot be sent."""
    notes: Optional[str] = Field(None, max_length=500)


class CourseModuleResponse(BaseModel):
    id: str
    course_id: str
    title: str
    description: Optional[str]
    estimated_minutes: int
    sort_order: int

    class Config:
        from_attributes = True


class CourseResponse(BaseModel):
    id: str
    organization_id: str
    created_by: str
    title: str
    description: Optional[str]
    provider: str
    category: CourseCategory
    estimated_duration_minutes: int
    difficulty: CourseDifficulty
    external_url: Optional[str]
    tags: List[str]
    is_published: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class EnrollmentResponse(BaseModel):
    id: str
    user_id: str
    course_id: str
    organization_id: str
    status: EnrollmentStatus
    notes: Optional[str]
    started_at: datetime
    completed_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CertificateResponse(BaseModel):
    id: str
    enrollment_id: str
    user_id: str
    file_name: str
    file_url: str
    file_size: int
    mime_type: str
    uploaded_at: datetime

    class Config:
        from_attributes = True
