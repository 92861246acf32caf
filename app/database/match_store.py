# app/database/match_store.py
import logging
from typing import List, Sequence

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, joinedload

from app.database.models import JobMatch
from app.database.repositories import job_from_row
from app.recommender.errors import PersistenceFailure
from app.recommender.types import MatchResult

logger = logging.getLogger(__name__)


class MatchStore:
    """Stores the ranking of a consultation session.

    persist() replaces the whole ranking inside one transaction. Two concurrent
    runs for the same session are not ordered here: the last commit wins.
    Callers that need serialised re-runs must hold a lock keyed by session_id.
    """

    def __init__(self, db: Session):
        self.db = db

    def persist(self, session_id: str, candidate_id: str, matches: Sequence[MatchResult]) -> None:
        rows = [
            JobMatch(
                session_id=session_id,
                candidate_id=candidate_id,
                job_id=match.job_id,
                similarity_score=float(match.similarity_score),
                match_reason=match.match_reason,
                ranking=match.ranking,
            )
            for match in matches
        ]
        try:
            deleted = self.db.execute(delete(JobMatch).where(JobMatch.session_id == session_id)).rowcount
            # Flush the delete before the inserts so the (session_id, ranking) constraint sees no old rows.
            self.db.flush()
            if rows:
                self.db.add_all(rows)
                self.db.flush()
            self.db.commit()
        except Exception as e:
            logger.error(f"Failed to store {len(rows)} matches for session {session_id}: {e}", exc_info=True)
            self.db.rollback()
            raise PersistenceFailure(f"Failed to store match results for session {session_id}") from e

        logger.info(f"Replaced matches for session {session_id}: removed {deleted}, stored {len(rows)}.")

    def list_for_session(self, session_id: str) -> List[MatchResult]:
        rows = (
            self.db.execute(
                select(JobMatch)
                .options(joinedload(JobMatch.job))
                .where(JobMatch.session_id == session_id)
                .order_by(JobMatch.ranking.asc())
            )
            .scalars()
            .all()
        )
        return [
            MatchResult(
                session_id=row.session_id,
                job_id=row.job_id,
                similarity_score=row.similarity_score,
                match_reason=row.match_reason,
                ranking=row.ranking,
                created_at=row.created_at,
                job=job_from_row(row.job) if row.job is not None else None,
            )
            for row in rows
        ]
