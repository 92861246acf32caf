# app/services/profile_service.py
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from app.database.models import Candidate, ConsultationSession
from app.recommender.errors import BackendUnavailable, MatchingError, NotFound, PersistenceFailure
from app.recommender.feature_encoder import encode_profile
from app.recommender.types import Requirements, merge_skills
from app.services.embedding_service import Embedder

logger = logging.getLogger(__name__)

LATEST_CONSULTATION_HEADER = "最新の相談内容:"


@dataclass
class ProfileUpdate:
    session_id: str
    candidate_id: str
    status: str
    skills: list


def combine_profile_summary(cv_summary: Optional[str], chat_summary: str) -> str:
    parts = []
    if cv_summary and cv_summary.strip():
        parts.append(cv_summary.strip())
    parts.append(f"{LATEST_CONSULTATION_HEADER}\n{chat_summary.strip()}")
    return "\n\n".join(parts)


class ProfileService:
    """Stores a summarised consultation on the session and folds it into the candidate profile.

    Both embeddings are computed before anything is written; a failed
    embedding leaves the stored profile unchanged.
    """

    def __init__(self, db: Session, embedder: Embedder):
        self.db = db
        self.embedder = embedder

    def apply_chat_summary(
        self,
        session_id: str,
        summary: str,
        requirements: Requirements,
        cv_summary: Optional[str] = None,
    ) -> ProfileUpdate:
        session_row = self.db.get(ConsultationSession, session_id)
        if session_row is None:
            raise NotFound(f"Session {session_id} not found")
        candidate_row = self.db.get(Candidate, session_row.candidate_id)
        if candidate_row is None:
            raise NotFound(f"Candidate {session_row.candidate_id} not found")

        cv_summary = cv_summary if cv_summary is not None else candidate_row.cv_summary
        chat_text = encode_profile(summary, requirements, cv_summary=cv_summary)
        profile_summary = combine_profile_summary(cv_summary, summary)

        try:
            chat_embedding = self.embedder.embed(chat_text)
            profile_embedding = self.embedder.embed(profile_summary)
        except MatchingError:
            raise
        except Exception as e:
            logger.error(f"Embedding the consultation of session {session_id} failed: {e}", exc_info=True)
            raise BackendUnavailable("Embedding service is temporarily unavailable.") from e

        skills = merge_skills(candidate_row.skills_extracted, requirements.skills)
        try:
            session_row.chat_summary = summary
            session_row.extracted_requirements = requirements.to_dict()
            session_row.chat_embedding = chat_embedding
            session_row.status = "summarized"

            if cv_summary is not None:
                candidate_row.cv_summary = cv_summary
            candidate_row.profile_summary = profile_summary
            candidate_row.profile_embedding = profile_embedding
            candidate_row.skills_extracted = skills
            candidate_row.preferences = requirements.to_dict()
            self.db.commit()
        except Exception as e:
            logger.error(f"Failed to store chat summary for session {session_id}: {e}", exc_info=True)
            self.db.rollback()
            raise PersistenceFailure(f"Failed to store chat summary for session {session_id}") from e

        logger.info(
            f"Stored chat summary for session {session_id}; candidate {candidate_row.id} now has {len(skills)} skills."
        )
        return ProfileUpdate(
            session_id=session_row.id,
            candidate_id=candidate_row.id,
            status=session_row.status,
            skills=skills,
        )
