"""
Pytest configuration: an in-memory SQLite database and fake capabilities.
"""
import hashlib
import os

# Must be set before any app module reads app.config.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["EMBEDDING_DIMENSION"] = "4"
os.environ.pop("LLM_MODEL_PATH", None)

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import models
from app.database.session import Base
from app.recommender.types import SearchHit


class FakeEmbedder:
    """Deterministic 4-dimensional embeddings derived from the text hash."""

    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def embed(self, text):
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        return [round(b / 255.0, 4) for b in digest[:4]]


class FakeVectorSearch:
    def __init__(self, hits=None, error=None):
        self.hits = list(hits or [])
        self.error = error
        self.calls = []

    def search(self, profile_vector, chat_vector, active_only=True, k=20, min_similarity=0.0):
        self.calls.append(
            {
                "profile_vector": profile_vector,
                "chat_vector": chat_vector,
                "active_only": active_only,
                "k": k,
                "min_similarity": min_similarity,
            }
        )
        if self.error is not None:
            raise self.error
        return [SearchHit(*hit) for hit in self.hits]


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # SQLite ignores foreign keys, and with them ON DELETE CASCADE, unless asked.
    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()


@pytest.fixture
def make_job(db):
    def _make_job(job_id, **overrides):
        values = {
            "id": job_id,
            "company_name": f"Company {job_id}",
            "job_title": f"Engineer {job_id}",
            "job_description": f"Build things at {job_id}",
            "skills": [],
            "is_active": True,
        }
        values.update(overrides)
        job = models.Job(**values)
        db.add(job)
        db.commit()
        return job

    return _make_job


@pytest.fixture
def make_candidate(db):
    def _make_candidate(candidate_id="cand-1", **overrides):
        values = {
            "id": candidate_id,
            "name": "Test Candidate",
            "email": f"{candidate_id}@example.com",
            "skills_extracted": [],
        }
        values.update(overrides)
        candidate = models.Candidate(**values)
        db.add(candidate)
        db.commit()
        return candidate

    return _make_candidate


@pytest.fixture
def make_session(db):
    def _make_session(session_id="sess-1", candidate_id="cand-1", **overrides):
        values = {"id": session_id, "candidate_id": candidate_id, "status": "active"}
        values.update(overrides)
        row = models.ConsultationSession(**values)
        db.add(row)
        db.commit()
        return row

    return _make_session
