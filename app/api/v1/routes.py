import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api.v1.dependencies import get_embedder, get_job_recommender
from app.database.match_store import MatchStore
from app.database.session import get_db_session
from app.models.matching import (
    ChatSummaryInput,
    MatchItemSchema,
    MatchRequest,
    MatchResponseSchema,
    ProfileUpdateResponse,
    StoredMatchSchema,
    StoredMatchesResponseSchema,
)
from app.recommender.errors import (
    BackendUnavailable,
    EncodingError,
    InsufficientData,
    InvalidArgument,
    MatchingError,
    NotFound,
    PersistenceFailure,
)
from app.recommender.job_recommender import JobRecommender
from app.recommender.types import MatchResult, Requirements
from app.services.embedding_service import Embedder
from app.services.profile_service import ProfileService

logger = logging.getLogger(__name__)

router = APIRouter()

_STATUS_BY_ERROR = (
    (InvalidArgument, status.HTTP_400_BAD_REQUEST),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (InsufficientData, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (EncodingError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (BackendUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
    (PersistenceFailure, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def _http_error(error: MatchingError) -> HTTPException:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=str(error))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error))


def _match_item(match: MatchResult) -> MatchItemSchema:
    job = match.job
    return MatchItemSchema(
        job_id=match.job_id,
        company_name=job.company_name if job else None,
        job_title=job.job_title if job else None,
        department=job.department if job else None,
        similarity_score=match.similarity_score,
        match_reason=match.match_reason,
        ranking=match.ranking,
        skill_match=list(match.signals.skill_match),
        location_match=match.signals.location_match,
        salary_match=match.signals.salary_match,
        explanation=match.explanation,
    )


def _stored_match(match: MatchResult) -> StoredMatchSchema:
    job = match.job
    return StoredMatchSchema(
        job_id=match.job_id,
        company_name=job.company_name if job else None,
        job_title=job.job_title if job else None,
        department=job.department if job else None,
        job_description=job.description if job else None,
        requirements=job.requirements if job else None,
        skills=list(job.skills) if job else [],
        employment_type=job.employment_type if job else None,
        location=job.location if job else None,
        salary_range=job.salary_range.to_dict() if job and job.salary_range else None,
        similarity_score=match.similarity_score,
        match_reason=match.match_reason,
        ranking=match.ranking,
        created_at=match.created_at,
    )


@router.post("/job-matching/{session_id}", response_model=MatchResponseSchema)
def run_job_matching(
    session_id: str,
    request: Optional[MatchRequest] = None,
    recommender: JobRecommender = Depends(get_job_recommender),
):
    """Runs matching for a session and replaces its stored ranking."""
    request = request or MatchRequest()
    logger.info(f"Received job matching request for session {session_id}.")
    try:
        outcome = recommender.match_jobs_for_session(
            session_id,
            top_k=request.top_k,
            min_similarity=request.min_similarity,
            include_explanations=request.include_explanations,
        )
    except MatchingError as e:
        logger.warning(f"Job matching for session {session_id} failed: {e}")
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Unexpected error during job matching for session {session_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to run job matching.",
        )

    return MatchResponseSchema(
        session_id=outcome.session_id,
        candidate_id=outcome.candidate_id,
        total_found=outcome.total_found,
        matches=[_match_item(m) for m in outcome.matches],
    )


@router.get("/job-matching/{session_id}", response_model=StoredMatchesResponseSchema)
def get_job_matches(session_id: str, db: Session = Depends(get_db_session)):
    """Returns the stored ranking of a session, best match first."""
    try:
        matches = MatchStore(db).list_for_session(session_id)
    except Exception as e:
        logger.error(f"Error loading stored matches for session {session_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load match results.",
        )
    return StoredMatchesResponseSchema(
        session_id=session_id,
        total_found=len(matches),
        matches=[_stored_match(m) for m in matches],
    )


@router.post("/sessions/{session_id}/summary", response_model=ProfileUpdateResponse)
def store_chat_summary(
    session_id: str,
    payload: ChatSummaryInput,
    db: Session = Depends(get_db_session),
    embedder: Embedder = Depends(get_embedder),
):
    """Stores a consultation summary and refreshes the candidate's profile embedding."""
    requirements = Requirements.from_dict(payload.requirements.model_dump())
    try:
        update = ProfileService(db, embedder).apply_chat_summary(
            session_id, payload.summary, requirements, cv_summary=payload.cv_summary
        )
    except MatchingError as e:
        logger.warning(f"Storing chat summary for session {session_id} failed: {e}")
        raise _http_error(e)
    return ProfileUpdateResponse(
        session_id=update.session_id,
        candidate_id=update.candidate_id,
        status=update.status,
        skills=update.skills,
    )
