# app/recommender/job_recommender.py

import logging
from typing import List, Optional, Protocol, Sequence

from app.config import EXPLANATION_TOP_N, MATCH_RETRIEVAL_K
from app.explanations.services import FALLBACK_EXPLANATION
from app.recommender.errors import (
    BackendUnavailable,
    InsufficientData,
    InvalidArgument,
    MatchingError,
    NotFound,
)
from app.recommender.match_enhancer import MatchEnhancer
from app.recommender.types import (
    CandidateProfile,
    ConsultationSession,
    JobPosting,
    MatchingOutcome,
    MatchResult,
)
from app.recommender.vector_search import VectorSearch

logger = logging.getLogger(__name__)


class SessionReader(Protocol):
    def get(self, session_id: str) -> Optional[ConsultationSession]:
        ...


class CandidateReader(Protocol):
    def get(self, candidate_id: str) -> Optional[CandidateProfile]:
        ...


class MatchWriter(Protocol):
    def persist(self, session_id: str, candidate_id: str, matches: Sequence[MatchResult]) -> None:
        ...


class Explainer(Protocol):
    def explain(self, job: JobPosting, candidate: CandidateProfile, session: ConsultationSession) -> str:
        ...


class JobRecommender:
    """Matching use case for one consultation session.

    FETCH_SESSION -> FETCH_CANDIDATE -> VECTOR_SEARCH -> ENHANCE -> PERSIST -> (EXPLAIN).
    Nothing is written before PERSIST, so an aborted run leaves the previous
    ranking untouched. Failed runs are not retried here.
    """

    def __init__(
        self,
        sessions: SessionReader,
        candidates: CandidateReader,
        searcher: VectorSearch,
        enhancer: MatchEnhancer,
        store: MatchWriter,
        explainer: Optional[Explainer] = None,
        top_k_retrieval: int = MATCH_RETRIEVAL_K,
        explanation_top_n: int = EXPLANATION_TOP_N,
    ):
        self.sessions = sessions
        self.candidates = candidates
        self.searcher = searcher
        self.enhancer = enhancer
        self.store = store
        self.explainer = explainer
        self.top_k_retrieval = top_k_retrieval
        self.explanation_top_n = explanation_top_n

    def _fetch_session(self, session_id: str) -> ConsultationSession:
        session = self.sessions.get(session_id)
        if session is None:
            logger.warning(f"Matching requested for unknown session {session_id}.")
            raise NotFound(f"Session {session_id} not found")
        return session

    def _fetch_candidate(self, session: ConsultationSession) -> CandidateProfile:
        candidate = self.candidates.get(session.candidate_id)
        if candidate is None:
            logger.warning(f"Candidate {session.candidate_id} of session {session.id} not found.")
            raise NotFound(f"Candidate {session.candidate_id} not found")
        return candidate

    def _search(self, session: ConsultationSession, candidate: CandidateProfile, top_k: int, min_similarity: float):
        try:
            return self.searcher.search(
                profile_vector=candidate.profile_embedding,
                chat_vector=session.chat_embedding,
                active_only=True,
                k=max(top_k, self.top_k_retrieval),
                min_similarity=min_similarity,
            )
        except MatchingError:
            raise
        except Exception as e:
            logger.error(f"Vector search failed for session {session.id}: {e}", exc_info=True)
            raise BackendUnavailable("Job search functionality is temporarily unavailable.") from e

    def _enhance(self, raw_hits, session: ConsultationSession, candidate: CandidateProfile, top_k: int):
        try:
            return self.enhancer.enhance(raw_hits, session, candidate, top_k)
        except MatchingError:
            raise
        except Exception as e:
            logger.error(f"Fetching job records failed for session {session.id}: {e}", exc_info=True)
            raise BackendUnavailable("Job records are temporarily unavailable.") from e

    def _explain(self, matches: List[MatchResult], candidate: CandidateProfile, session: ConsultationSession):
        for match in matches[: self.explanation_top_n]:
            if match.job is None:
                continue
            try:
                match.explanation = self.explainer.explain(match.job, candidate, session)
            except Exception as e:
                logger.warning(f"Explanation for job {match.job_id} failed: {e}")
                match.explanation = FALLBACK_EXPLANATION

    def match_jobs_for_session(
        self,
        session_id: str,
        top_k: int,
        min_similarity: float = 0.0,
        include_explanations: bool = False,
    ) -> MatchingOutcome:
        if not isinstance(top_k, int) or isinstance(top_k, bool) or top_k <= 0:
            raise InvalidArgument(f"top_k must be a positive integer, got {top_k!r}")
        if not 0.0 <= min_similarity <= 1.0:
            raise InvalidArgument(f"min_similarity must be between 0 and 1, got {min_similarity!r}")

        logger.info(f"Starting job matching for session {session_id} (top_k={top_k}, min_similarity={min_similarity}).")
        session = self._fetch_session(session_id)
        candidate = self._fetch_candidate(session)

        if candidate.profile_embedding is None and session.chat_embedding is None:
            logger.warning(f"Session {session_id} has neither a profile nor a chat embedding.")
            raise InsufficientData("insufficient data for matching")

        raw_hits = self._search(session, candidate, top_k, min_similarity)
        if not raw_hits:
            logger.info(f"No candidate jobs found for session {session_id}.")

        matches = self._enhance(raw_hits, session, candidate, top_k)
        self.store.persist(session.id, candidate.id, matches)

        if include_explanations and self.explainer is not None and matches:
            self._explain(matches, candidate, session)

        logger.info(f"Job matching completed for session {session_id}. Returning {len(matches)} matches.")
        return MatchingOutcome(session_id=session.id, candidate_id=candidate.id, matches=matches)
