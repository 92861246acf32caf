from unittest.mock import MagicMock

import pytest
from sqlalchemy import func, select

from conftest import FakeVectorSearch
from app.database.match_store import MatchStore
from app.database.models import JobMatch
from app.database.repositories import CandidateRepository, JobRepository, SessionRepository
from app.explanations.services import FALLBACK_EXPLANATION
from app.recommender.errors import (
    BackendUnavailable,
    InsufficientData,
    InvalidArgument,
    NotFound,
    PersistenceFailure,
)
from app.recommender.job_recommender import JobRecommender
from app.recommender.match_enhancer import MatchEnhancer

PROFILE_VECTOR = [0.1, 0.2, 0.3, 0.4]
CHAT_VECTOR = [0.4, 0.3, 0.2, 0.1]


def _build(db, searcher, explainer=None, store=None, explanation_top_n=5):
    return JobRecommender(
        sessions=SessionRepository(db),
        candidates=CandidateRepository(db),
        searcher=searcher,
        enhancer=MatchEnhancer(JobRepository(db)),
        store=store or MatchStore(db),
        explainer=explainer,
        top_k_retrieval=20,
        explanation_top_n=explanation_top_n,
    )


def _stored(db, session_id="sess-1"):
    return db.execute(
        select(JobMatch.job_id, JobMatch.ranking).where(JobMatch.session_id == session_id).order_by(JobMatch.ranking)
    ).all()


@pytest.fixture
def seeded(make_job, make_candidate, make_session):
    make_candidate(profile_embedding=PROFILE_VECTOR, skills_extracted=["python"])
    make_session(chat_embedding=CHAT_VECTOR, extracted_requirements={"location": "東京"})
    make_job("job-a", skills=["Python", "AWS"], location="東京")
    make_job("job-b", skills=["Go"], location="大阪")
    make_job("job-c", skills=["Python"])


class TestMatchJobsForSession:
    def test_happy_path_ranks_and_persists(self, db, seeded):
        searcher = FakeVectorSearch([("job-a", 0.92), ("job-b", 0.91), ("job-c", 0.60)])

        outcome = _build(db, searcher).match_jobs_for_session("sess-1", top_k=2)

        assert outcome.session_id == "sess-1"
        assert outcome.candidate_id == "cand-1"
        assert outcome.total_found == 2
        assert [(m.job_id, m.ranking) for m in outcome.matches] == [("job-a", 1), ("job-b", 2)]
        assert outcome.matches[0].match_reason == "非常に高い適合度 / スキルマッチ: Python / 勤務地が希望に合致"
        assert _stored(db) == [("job-a", 1), ("job-b", 2)]

    def test_search_receives_both_vectors_and_retrieval_k(self, db, seeded):
        searcher = FakeVectorSearch([("job-a", 0.5)])

        _build(db, searcher).match_jobs_for_session("sess-1", top_k=3, min_similarity=0.3)

        call = searcher.calls[0]
        assert call["profile_vector"] == pytest.approx(PROFILE_VECTOR)
        assert call["chat_vector"] == pytest.approx(CHAT_VECTOR)
        assert call["active_only"] is True
        assert call["k"] == 20
        assert call["min_similarity"] == 0.3

    def test_rerun_replaces_previous_results(self, db, seeded):
        recommender = _build(db, FakeVectorSearch([("job-a", 0.9), ("job-b", 0.8)]))
        recommender.match_jobs_for_session("sess-1", top_k=5)

        recommender.searcher = FakeVectorSearch([("job-c", 0.7)])
        recommender.match_jobs_for_session("sess-1", top_k=5)

        assert _stored(db) == [("job-c", 1)]

    def test_no_hits_clears_previous_ranking(self, db, seeded):
        recommender = _build(db, FakeVectorSearch([("job-a", 0.9)]))
        recommender.match_jobs_for_session("sess-1", top_k=5)

        recommender.searcher = FakeVectorSearch([])
        outcome = recommender.match_jobs_for_session("sess-1", top_k=5)

        assert outcome.matches == []
        assert _stored(db) == []

    def test_deleted_job_is_dropped(self, db, seeded):
        outcome = _build(db, FakeVectorSearch([("job-a", 0.9), ("gone", 0.85), ("job-c", 0.6)])).match_jobs_for_session(
            "sess-1", top_k=5
        )

        assert [(m.job_id, m.ranking) for m in outcome.matches] == [("job-a", 1), ("job-c", 2)]

    def test_chat_only_session_is_matched(self, db, make_candidate, make_session, make_job):
        make_candidate()
        make_session(chat_embedding=CHAT_VECTOR)
        make_job("job-a")
        searcher = FakeVectorSearch([("job-a", 0.75)])

        outcome = _build(db, searcher).match_jobs_for_session("sess-1", top_k=1)

        assert searcher.calls[0]["profile_vector"] is None
        assert [m.job_id for m in outcome.matches] == ["job-a"]

    def test_unknown_session_raises_not_found(self, db, seeded):
        searcher = FakeVectorSearch([("job-a", 0.9)])

        with pytest.raises(NotFound):
            _build(db, searcher).match_jobs_for_session("missing", top_k=5)
        assert searcher.calls == []

    def test_missing_candidate_raises_not_found(self, db, seeded):
        searcher = FakeVectorSearch([("job-a", 0.9)])
        recommender = _build(db, searcher)
        recommender.candidates = MagicMock(get=MagicMock(return_value=None))

        with pytest.raises(NotFound):
            recommender.match_jobs_for_session("sess-1", top_k=5)
        assert searcher.calls == []

    def test_duplicate_hits_are_ranked_once_and_persisted(self, db, seeded):
        searcher = FakeVectorSearch([("job-a", 0.9), ("job-a", 0.85), ("job-b", 0.8)])

        outcome = _build(db, searcher).match_jobs_for_session("sess-1", top_k=5)

        assert [(m.job_id, m.ranking) for m in outcome.matches] == [("job-a", 1), ("job-b", 2)]
        assert _stored(db) == [("job-a", 1), ("job-b", 2)]

    def test_no_embeddings_raises_insufficient_data_and_keeps_old_rows(self, db, make_candidate, make_session, make_job):
        make_candidate()
        make_session()
        make_job("job-a")
        db.add(JobMatch(session_id="sess-1", candidate_id="cand-1", job_id="job-a", similarity_score=0.9, match_reason="", ranking=1))
        db.commit()
        searcher = FakeVectorSearch([("job-a", 0.9)])

        with pytest.raises(InsufficientData) as exc_info:
            _build(db, searcher).match_jobs_for_session("sess-1", top_k=5)

        assert str(exc_info.value) == "insufficient data for matching"
        assert searcher.calls == []
        assert _stored(db) == [("job-a", 1)]

    def test_search_failure_raises_backend_unavailable_without_writing(self, db, seeded):
        store = MagicMock()

        with pytest.raises(BackendUnavailable):
            _build(db, FakeVectorSearch(error=ConnectionError("db down")), store=store).match_jobs_for_session(
                "sess-1", top_k=5
            )
        store.persist.assert_not_called()

    def test_job_lookup_failure_raises_backend_unavailable(self, db, seeded):
        recommender = _build(db, FakeVectorSearch([("job-a", 0.9)]))
        recommender.enhancer = MatchEnhancer(MagicMock(get_many=MagicMock(side_effect=RuntimeError("timeout"))))

        with pytest.raises(BackendUnavailable):
            recommender.match_jobs_for_session("sess-1", top_k=5)

    def test_persist_failure_propagates(self, db, seeded):
        store = MagicMock()
        store.persist.side_effect = PersistenceFailure("write failed")

        with pytest.raises(PersistenceFailure):
            _build(db, FakeVectorSearch([("job-a", 0.9)]), store=store).match_jobs_for_session("sess-1", top_k=5)

    @pytest.mark.parametrize("top_k, min_similarity", [(0, 0.0), (-3, 0.0), (5, -0.1), (5, 1.5)])
    def test_invalid_arguments(self, db, seeded, top_k, min_similarity):
        with pytest.raises(InvalidArgument):
            _build(db, FakeVectorSearch([])).match_jobs_for_session("sess-1", top_k=top_k, min_similarity=min_similarity)


class TestExplanations:
    def test_only_top_n_are_explained(self, db, seeded):
        explainer = MagicMock()
        explainer.explain.return_value = "Python経験が活かせます。"
        searcher = FakeVectorSearch([("job-a", 0.9), ("job-b", 0.8), ("job-c", 0.7)])

        outcome = _build(db, searcher, explainer=explainer, explanation_top_n=2).match_jobs_for_session(
            "sess-1", top_k=3, include_explanations=True
        )

        assert [m.explanation for m in outcome.matches] == ["Python経験が活かせます。", "Python経験が活かせます。", None]
        assert explainer.explain.call_count == 2

    def test_explainer_error_falls_back_and_does_not_abort(self, db, seeded):
        explainer = MagicMock()
        explainer.explain.side_effect = RuntimeError("model crashed")

        outcome = _build(db, FakeVectorSearch([("job-a", 0.9)]), explainer=explainer).match_jobs_for_session(
            "sess-1", top_k=1, include_explanations=True
        )

        assert outcome.matches[0].explanation == FALLBACK_EXPLANATION
        assert _stored(db) == [("job-a", 1)]

    def test_explanations_not_requested(self, db, seeded):
        explainer = MagicMock()

        outcome = _build(db, FakeVectorSearch([("job-a", 0.9)]), explainer=explainer).match_jobs_for_session(
            "sess-1", top_k=1
        )

        explainer.explain.assert_not_called()
        assert outcome.matches[0].explanation is None


def test_persisted_row_count_matches_result(db, seeded):
    outcome = _build(db, FakeVectorSearch([("job-a", 0.9), ("job-b", 0.8), ("job-c", 0.7)])).match_jobs_for_session(
        "sess-1", top_k=2
    )

    count = db.execute(select(func.count()).select_from(JobMatch)).scalar_one()
    assert count == len(outcome.matches) == 2
