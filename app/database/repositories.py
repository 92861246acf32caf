# app/database/repositories.py
"""Maps ORM rows to the matching engine's read model.

This is the only place that knows the table layout; the engine declares what it
needs through the dataclasses in app.recommender.types.
"""
import logging
from typing import Dict, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.database.models import Candidate, ConsultationSession as SessionRow, Job
from app.recommender.types import (
    CandidateProfile,
    ConsultationSession,
    JobPosting,
    Requirements,
    SalaryRange,
    merge_skills,
)

logger = logging.getLogger(__name__)


def _vector(value) -> Optional[List[float]]:
    # pgvector hands back numpy arrays; the engine works with plain lists.
    if value is None:
        return None
    return [float(x) for x in value]


def job_from_row(row: Job) -> JobPosting:
    return JobPosting(
        id=row.id,
        company_name=row.company_name,
        job_title=row.job_title,
        description=row.job_description,
        department=row.department,
        requirements=row.requirements,
        skills=merge_skills(row.skills),
        employment_type=row.employment_type,
        location=row.location,
        salary_range=SalaryRange.from_dict(row.salary_range),
        is_active=bool(row.is_active),
        embedding=_vector(row.embedding),
        content_hash=row.content_hash,
        external_job_id=row.external_job_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def candidate_from_row(row: Candidate) -> CandidateProfile:
    return CandidateProfile(
        id=row.id,
        name=row.name,
        email=row.email,
        cv_summary=row.cv_summary,
        profile_summary=row.profile_summary,
        profile_embedding=_vector(row.profile_embedding),
        skills_extracted=list(row.skills_extracted or []),
        preferences=Requirements.from_dict(row.preferences),
    )


def session_from_row(row: SessionRow) -> ConsultationSession:
    return ConsultationSession(
        id=row.id,
        candidate_id=row.candidate_id,
        status=row.status,
        chat_summary=row.chat_summary,
        chat_embedding=_vector(row.chat_embedding),
        extracted_requirements=Requirements.from_dict(row.extracted_requirements)
        if row.extracted_requirements
        else None,
        created_at=row.created_at,
    )


class JobRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_many(self, job_ids: Sequence[str]) -> Dict[str, JobPosting]:
        """Batch lookup by id. Unknown ids are simply absent from the result."""
        if not job_ids:
            return {}
        rows = self.db.execute(select(Job).where(Job.id.in_(list(job_ids)))).scalars().all()
        return {row.id: job_from_row(row) for row in rows}


class CandidateRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, candidate_id: str) -> Optional[CandidateProfile]:
        row = self.db.get(Candidate, candidate_id)
        return candidate_from_row(row) if row else None


class SessionRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, session_id: str) -> Optional[ConsultationSession]:
        row = self.db.get(SessionRow, session_id)
        return session_from_row(row) if row else None
