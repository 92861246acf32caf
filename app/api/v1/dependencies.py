import logging
from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from app.database.match_store import MatchStore
from app.database.repositories import CandidateRepository, JobRepository, SessionRepository
from app.database.session import SessionLocal, get_db_session
from app.explanations.services import ExplanationService, load_default_llm
from app.recommender.job_recommender import JobRecommender
from app.recommender.match_enhancer import MatchEnhancer
from app.recommender.vector_search import PgVectorJobSearch, VectorSearch
from app.services.embedding_service import Embedder, SentenceTransformerEmbedder

logger = logging.getLogger(__name__)


@lru_cache
def get_embedder() -> Embedder:
    return SentenceTransformerEmbedder()


@lru_cache
def get_vector_search() -> VectorSearch:
    return PgVectorJobSearch(session_factory=SessionLocal)


@lru_cache
def get_explanation_service() -> ExplanationService:
    try:
        llm = load_default_llm()
    except Exception as e:
        # Explanations are optional; matching keeps working with the fallback text.
        logger.error(f"Failed to load the explanation LLM: {e}", exc_info=True)
        llm = None
    return ExplanationService(llm=llm)


def get_job_recommender(
    db: Session = Depends(get_db_session),
    searcher: VectorSearch = Depends(get_vector_search),
    explainer: ExplanationService = Depends(get_explanation_service),
) -> JobRecommender:
    return JobRecommender(
        sessions=SessionRepository(db),
        candidates=CandidateRepository(db),
        searcher=searcher,
        enhancer=MatchEnhancer(JobRepository(db)),
        store=MatchStore(db),
        explainer=explainer,
    )
