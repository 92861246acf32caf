from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.config import MATCH_DEFAULT_TOP_K


class MatchRequest(BaseModel):
    top_k: int = Field(default=MATCH_DEFAULT_TOP_K, description="Maximum number of ranked jobs to return")
    min_similarity: float = Field(default=0.0, ge=0.0, le=1.0)
    include_explanations: bool = False


class MatchItemSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    job_id: str
    company_name: Optional[str] = None
    job_title: Optional[str] = None
    department: Optional[str] = None
    similarity_score: float
    match_reason: str
    ranking: int
    skill_match: List[str] = []
    location_match: Optional[bool] = None
    salary_match: Optional[bool] = None
    explanation: Optional[str] = None


class MatchResponseSchema(BaseModel):
    success: bool = True
    session_id: str
    candidate_id: str
    total_found: int
    matches: List[MatchItemSchema]


class StoredMatchSchema(BaseModel):
    job_id: str
    company_name: Optional[str] = None
    job_title: Optional[str] = None
    department: Optional[str] = None
    job_description: Optional[str] = None
    requirements: Optional[str] = None
    skills: List[str] = []
    employment_type: Optional[str] = None
    location: Optional[str] = None
    salary_range: Optional[Dict[str, Any]] = None
    similarity_score: float
    match_reason: str
    ranking: int
    created_at: Optional[datetime] = None


class StoredMatchesResponseSchema(BaseModel):
    success: bool = True
    session_id: str
    total_found: int
    matches: List[StoredMatchSchema]


class RequirementsInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    desired_role: Optional[str] = Field(default=None, alias="desiredRole")
    desired_industry: Optional[str] = Field(default=None, alias="desiredIndustry")
    skills: List[str] = []
    experience: Optional[str] = None
    location: Optional[str] = None
    salary_expectation: Optional[Union[int, str]] = Field(default=None, alias="salaryExpectation")
    work_style: Optional[str] = Field(default=None, alias="workStyle")
    career_goals: Optional[str] = Field(default=None, alias="careerGoals")
    concerns: List[str] = []


class ChatSummaryInput(BaseModel):
    summary: str
    requirements: RequirementsInput = Field(default_factory=RequirementsInput)
    cv_summary: Optional[str] = None

    @field_validator("summary")
    @classmethod
    def summary_not_empty(cls, value):
        if not value.strip():
            raise ValueError("Summary cannot be empty or contain only whitespace.")
        return value


class ProfileUpdateResponse(BaseModel):
    success: bool = True
    session_id: str
    candidate_id: str
    status: str
    skills: List[str]
