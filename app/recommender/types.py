# app/recommender/types.py
"""Typed read model for the matching engine.

The engine works on these records only; app/database/repositories.py maps
ORM rows to them.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, NamedTuple, Optional, Sequence, Union


def merge_skills(*skill_lists: Optional[Sequence[str]]) -> List[str]:
    """Union of skill lists, keeping the order of first appearance."""
    merged: List[str] = []
    seen = set()
    for skills in skill_lists:
        for skill in skills or []:
            if not isinstance(skill, str):
                continue
            skill = skill.strip()
            if skill and skill not in seen:
                seen.add(skill)
                merged.append(skill)
    return merged


@dataclass(frozen=True)
class SalaryRange:
    min: Optional[int] = None
    max: Optional[int] = None
    currency: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["SalaryRange"]:
        if not data:
            return None
        return cls(
            min=_as_int(data.get("min")),
            max=_as_int(data.get("max")),
            currency=data.get("currency"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"min": self.min, "max": self.max, "currency": self.currency}


def _as_int(value) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


# JSON produced by the chat summarizer uses camelCase keys; older rows use snake_case.
_REQUIREMENT_KEYS = {
    "desired_role": ("desiredRole", "desired_role"),
    "desired_industry": ("desiredIndustry", "desired_industry"),
    "experience": ("experience",),
    "location": ("location",),
    "salary_expectation": ("salaryExpectation", "salary_expectation"),
    "work_style": ("workStyle", "work_style"),
    "career_goals": ("careerGoals", "career_goals"),
}


@dataclass(frozen=True)
class Requirements:
    desired_role: Optional[str] = None
    desired_industry: Optional[str] = None
    skills: List[str] = field(default_factory=list)
    experience: Optional[str] = None
    location: Optional[str] = None
    salary_expectation: Optional[Union[str, int]] = None
    work_style: Optional[str] = None
    career_goals: Optional[str] = None
    concerns: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Requirements":
        if not data:
            return cls()
        values = {}
        for attr, keys in _REQUIREMENT_KEYS.items():
            for key in keys:
                if data.get(key) not in (None, ""):
                    values[attr] = data[key]
                    break
        return cls(
            skills=merge_skills(data.get("skills")),
            concerns=[c for c in (data.get("concerns") or []) if isinstance(c, str) and c.strip()],
            **values,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "desiredRole": self.desired_role,
            "desiredIndustry": self.desired_industry,
            "skills": list(self.skills),
            "experience": self.experience,
            "location": self.location,
            "salaryExpectation": self.salary_expectation,
            "workStyle": self.work_style,
            "careerGoals": self.career_goals,
            "concerns": list(self.concerns),
        }


@dataclass(frozen=True)
class JobPosting:
    id: str
    company_name: str
    job_title: str
    description: str
    department: Optional[str] = None
    requirements: Optional[str] = None
    skills: List[str] = field(default_factory=list)
    employment_type: Optional[str] = None
    location: Optional[str] = None
    salary_range: Optional[SalaryRange] = None
    is_active: bool = True
    embedding: Optional[List[float]] = None
    content_hash: Optional[str] = None
    external_job_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class CandidateProfile:
    id: str
    name: str
    email: str
    cv_summary: Optional[str] = None
    profile_summary: Optional[str] = None
    profile_embedding: Optional[List[float]] = None
    skills_extracted: List[str] = field(default_factory=list)
    preferences: Requirements = field(default_factory=Requirements)


@dataclass(frozen=True)
class ConsultationSession:
    id: str
    candidate_id: str
    status: str = "active"
    chat_summary: Optional[str] = None
    chat_embedding: Optional[List[float]] = None
    extracted_requirements: Optional[Requirements] = None
    created_at: Optional[datetime] = None


class SearchHit(NamedTuple):
    """One vector search result. A bare (job_id, similarity) tuple is accepted too."""

    job_id: str
    similarity: float
    profile_similarity: Optional[float] = None
    chat_similarity: Optional[float] = None


@dataclass(frozen=True)
class MatchSignals:
    skill_match: List[str] = field(default_factory=list)
    location_match: bool = True
    salary_match: bool = True
    location_stated: bool = False
    salary_stated: bool = False
    profile_similarity: Optional[float] = None
    chat_similarity: Optional[float] = None


@dataclass
class MatchResult:
    session_id: str
    job_id: str
    similarity_score: float
    match_reason: str
    ranking: int
    created_at: Optional[datetime] = None
    signals: MatchSignals = field(default_factory=MatchSignals)
    job: Optional[JobPosting] = None
    explanation: Optional[str] = None


@dataclass
class MatchingOutcome:
    session_id: str
    candidate_id: str
    matches: List[MatchResult]

    @property
    def total_found(self) -> int:
        return len(self.matches)
