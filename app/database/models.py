# app/database/models.py
import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship
from pgvector.sqlalchemy import Vector

from .session import Base
from app.config import EMBEDDING_DIMENSION


def _new_id() -> str:
    return str(uuid.uuid4())


class Job(Base):
    __tablename__ = "jobs"

    id = Column(String(36), primary_key=True, default=_new_id)
    # Identifier from the import source, used to upsert re-imported postings.
    external_job_id = Column(String(255), unique=True, index=True, nullable=True)

    company_name = Column(String(255), nullable=False, index=True)
    job_title = Column(String(500), nullable=False, index=True)
    department = Column(String(255), nullable=True)
    job_description = Column(Text, nullable=False)
    requirements = Column(Text, nullable=True)
    skills = Column(JSON, nullable=False, default=list)
    employment_type = Column(String(100), nullable=True)
    location = Column(String(255), nullable=True, index=True)
    salary_range = Column(JSON, nullable=True)  # {"min": int, "max": int, "currency": str}
    is_active = Column(Boolean, nullable=False, default=True, index=True)

    # The dimension MUST match the output dimension of the embedding model.
    embedding = Column(Vector(EMBEDDING_DIMENSION), nullable=True)
    # SHA-256 of the encoded text the embedding was computed from.
    content_hash = Column(String(64), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class Candidate(Base):
    __tablename__ = "candidates"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    cv_summary = Column(Text, nullable=True)
    profile_summary = Column(Text, nullable=True)
    profile_embedding = Column(Vector(EMBEDDING_DIMENSION), nullable=True)
    skills_extracted = Column(JSON, nullable=False, default=list)
    preferences = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    sessions = relationship("ConsultationSession", back_populates="candidate", cascade="all, delete-orphan")


class ConsultationSession(Base):
    __tablename__ = "sessions"

    id = Column(String(36), primary_key=True, default=_new_id)
    candidate_id = Column(String(36), ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="active")
    chat_summary = Column(Text, nullable=True)
    chat_embedding = Column(Vector(EMBEDDING_DIMENSION), nullable=True)
    extracted_requirements = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    candidate = relationship("Candidate", back_populates="sessions")
    matches = relationship("JobMatch", back_populates="session", cascade="all, delete-orphan", passive_deletes=True)


class JobMatch(Base):
    __tablename__ = "job_matches"
    __table_args__ = (
        UniqueConstraint("session_id", "job_id", name="uq_job_matches_session_job"),
        UniqueConstraint("session_id", "ranking", name="uq_job_matches_session_ranking"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String(36), ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    candidate_id = Column(String(36), ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False, index=True)
    job_id = Column(String(36), ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True)
    similarity_score = Column(Float, nullable=False)
    match_reason = Column(Text, nullable=False, default="")
    ranking = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    session = relationship("ConsultationSession", back_populates="matches")
    job = relationship("Job")
