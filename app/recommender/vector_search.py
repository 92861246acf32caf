# app/recommender/vector_search.py

import logging
from typing import List, Optional, Protocol, Sequence

from sqlalchemy import literal, select
from tenacity import Retrying, before_sleep_log, stop_after_attempt, wait_exponential

from app.config import BACKEND_RETRY_ATTEMPTS, EMBEDDING_DIMENSION, MATCH_PROFILE_WEIGHT
from app.database.models import Job
from app.recommender.errors import BackendUnavailable, InvalidArgument
from app.recommender.types import SearchHit

logger = logging.getLogger(__name__)


class VectorSearch(Protocol):
    def search(
        self,
        profile_vector: Optional[Sequence[float]],
        chat_vector: Optional[Sequence[float]],
        active_only: bool = True,
        k: int = 20,
        min_similarity: float = 0.0,
    ) -> List[SearchHit]:
        ...


def clip_similarity(value: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    return max(0.0, min(1.0, float(value)))


def combine_similarities(
    profile_similarity: Optional[float],
    chat_similarity: Optional[float],
    profile_weight: float = MATCH_PROFILE_WEIGHT,
) -> float:
    """Weighted average of the per-signal similarities; a single signal is used as is."""
    profile_similarity = clip_similarity(profile_similarity)
    chat_similarity = clip_similarity(chat_similarity)
    if profile_similarity is None and chat_similarity is None:
        raise InvalidArgument("At least one similarity signal is required.")
    if chat_similarity is None:
        return profile_similarity
    if profile_similarity is None:
        return chat_similarity
    return profile_weight * profile_similarity + (1.0 - profile_weight) * chat_similarity


class PgVectorJobSearch:
    """Nearest-neighbour job search on the pgvector column jobs.embedding.

    Similarity is 1 - cosine distance, clipped to [0, 1]. When both query vectors
    are given they are combined with combine_similarities().
    """

    def __init__(self, session_factory, profile_weight: float = MATCH_PROFILE_WEIGHT,
                 retry_attempts: int = BACKEND_RETRY_ATTEMPTS):
        self.session_factory = session_factory
        self.profile_weight = profile_weight
        self.retry_attempts = retry_attempts

    def _check_vector(self, vector, name: str) -> Optional[List[float]]:
        if vector is None:
            return None
        vector = [float(x) for x in vector]
        if len(vector) != EMBEDDING_DIMENSION:
            raise InvalidArgument(
                f"{name} has dimension {len(vector)}, expected {EMBEDDING_DIMENSION}."
            )
        return vector

    def _build_query(self, profile_vector, chat_vector, active_only: bool, k: int, min_similarity: float):
        profile_sim = (1 - Job.embedding.cosine_distance(profile_vector)) if profile_vector is not None else None
        chat_sim = (1 - Job.embedding.cosine_distance(chat_vector)) if chat_vector is not None else None

        if profile_sim is not None and chat_sim is not None:
            combined = self.profile_weight * profile_sim + (1.0 - self.profile_weight) * chat_sim
        else:
            combined = profile_sim if profile_sim is not None else chat_sim

        stmt = select(
            Job.id,
            (profile_sim if profile_sim is not None else literal(None)).label("profile_similarity"),
            (chat_sim if chat_sim is not None else literal(None)).label("chat_similarity"),
        ).where(Job.embedding.isnot(None))
        if active_only:
            stmt = stmt.where(Job.is_active.is_(True))
        if min_similarity > 0:
            stmt = stmt.where(combined >= min_similarity)
        return stmt.order_by(combined.desc(), Job.id.asc()).limit(k)

    def _run_query(self, stmt):
        db = None
        try:
            db = self.session_factory()
            return db.execute(stmt).all()
        finally:
            if db:
                db.close()
                logger.debug("Database session closed after vector search.")

    def search(
        self,
        profile_vector: Optional[Sequence[float]],
        chat_vector: Optional[Sequence[float]],
        active_only: bool = True,
        k: int = 20,
        min_similarity: float = 0.0,
    ) -> List[SearchHit]:
        if k <= 0:
            raise InvalidArgument(f"k must be a positive integer, got {k!r}")
        profile_vector = self._check_vector(profile_vector, "profile_vector")
        chat_vector = self._check_vector(chat_vector, "chat_vector")
        if profile_vector is None and chat_vector is None:
            raise InvalidArgument("Vector search needs a profile vector, a chat vector, or both.")

        stmt = self._build_query(profile_vector, chat_vector, active_only, k, min_similarity)
        logger.info(
            f"Running pgvector job search (k={k}, active_only={active_only}, "
            f"profile={'yes' if profile_vector else 'no'}, chat={'yes' if chat_vector else 'no'})."
        )
        try:
            for attempt in Retrying(
                wait=wait_exponential(multiplier=1, min=1, max=10),
                stop=stop_after_attempt(self.retry_attempts),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    rows = self._run_query(stmt)
        except Exception as e:
            logger.error(f"Vector search failed after {self.retry_attempts} attempts: {e}", exc_info=True)
            raise BackendUnavailable("Job vector search is temporarily unavailable.") from e

        hits = []
        for job_id, profile_similarity, chat_similarity in rows:
            profile_similarity = clip_similarity(profile_similarity)
            chat_similarity = clip_similarity(chat_similarity)
            hits.append(
                SearchHit(
                    job_id=job_id,
                    similarity=combine_similarities(profile_similarity, chat_similarity, self.profile_weight),
                    profile_similarity=profile_similarity,
                    chat_similarity=chat_similarity,
                )
            )
        logger.info(f"Vector search returned {len(hits)} candidate jobs.")
        return hits
