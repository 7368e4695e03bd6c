from typing import List, Optional
from pydantic import BaseModel, Field

from okr_tracker.constants.constants import OKRCategory


class SuggestKPIsRequest(BaseModel):
    okr_title: str = Field(..., min_length=3, max_length=500)
    category: OKRCategory
    existing_krs: Optional[List[str]] = None


class SuggestedKeyResult(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    start_value: float = Field(..., ge=0, allow_inf_nan=False)
    target_value: float = Field(..., ge=0, allow_inf_nan=False)
    unit: str = Field(..., min_length=1, max_length=50)


class SuggestKPIsResponse(BaseModel):
    suggestions: List[SuggestedKeyResult] = Field(..., min_length=1, max_length=5)


class SuggestCoursesRequest(BaseModel):
    craft_focus: Optional[str] = Field(None, max_length=200)
    department: Optional[str] = Field(None, max_length=100)
    okr_categories: Optional[List[str]] = Field(None, max_length=10)


class CourseRecommendation(BaseModel):
    title: str
    category: str
    reason: str


class SuggestCoursesResponse(BaseModel):
    recommendations: List[CourseRecommendation]
