from unittest.mock import MagicMock

import pytest
from sqlalchemy.dialects import postgresql

from app.recommender.errors import BackendUnavailable, InvalidArgument
from app.recommender.vector_search import PgVectorJobSearch, clip_similarity, combine_similarities

PROFILE = [0.1, 0.2, 0.3, 0.4]
CHAT = [0.4, 0.3, 0.2, 0.1]


def _factory(rows=None, error=None):
    db = MagicMock()
    if error is not None:
        db.execute.side_effect = error
    else:
        db.execute.return_value.all.return_value = rows or []
    return MagicMock(return_value=db), db


class TestCombineSimilarities:
    def test_single_signal_used_as_is(self):
        assert combine_similarities(0.8, None) == 0.8
        assert combine_similarities(None, 0.6) == 0.6

    def test_weighted_average(self):
        assert combine_similarities(0.8, 0.4, profile_weight=0.5) == pytest.approx(0.6)
        assert combine_similarities(0.8, 0.4, profile_weight=0.75) == pytest.approx(0.7)

    def test_values_are_clipped(self):
        assert clip_similarity(1.2) == 1.0
        assert clip_similarity(-0.3) == 0.0
        assert combine_similarities(1.5, None) == 1.0

    def test_requires_a_signal(self):
        with pytest.raises(InvalidArgument):
            combine_similarities(None, None)


class TestPgVectorJobSearch:
    def test_builds_hits_from_rows(self):
        factory, db = _factory([("job-1", 0.9, 0.7), ("job-2", 1.0000001, -0.01)])
        search = PgVectorJobSearch(factory, profile_weight=0.5, retry_attempts=1)

        hits = search.search(PROFILE, CHAT, k=5)

        assert [h.job_id for h in hits] == ["job-1", "job-2"]
        assert hits[0].similarity == pytest.approx(0.8)
        assert hits[0].profile_similarity == 0.9
        assert hits[1].profile_similarity == 1.0
        assert hits[1].chat_similarity == 0.0
        db.close.assert_called_once()

    def test_profile_only(self):
        factory, _ = _factory([("job-1", 0.65, None)])

        hits = PgVectorJobSearch(factory, retry_attempts=1).search(PROFILE, None)

        assert hits[0].similarity == 0.65
        assert hits[0].chat_similarity is None

    def test_query_uses_cosine_distance_and_filters(self):
        search = PgVectorJobSearch(MagicMock(), profile_weight=0.5)

        stmt = search._build_query(PROFILE, CHAT, active_only=True, k=7, min_similarity=0.4)
        sql = str(stmt.compile(dialect=postgresql.dialect()))

        assert sql.count("<=>") >= 2
        assert "jobs.embedding IS NOT NULL" in sql
        assert "jobs.is_active IS true" in sql
        assert "ORDER BY" in sql
        assert "LIMIT" in sql

    def test_inactive_jobs_included_when_requested(self):
        stmt = PgVectorJobSearch(MagicMock())._build_query(PROFILE, None, active_only=False, k=3, min_similarity=0.0)

        assert "is_active" not in str(stmt.compile(dialect=postgresql.dialect()))

    def test_backend_error_raises_backend_unavailable(self):
        factory, db = _factory(error=ConnectionError("connection refused"))

        with pytest.raises(BackendUnavailable):
            PgVectorJobSearch(factory, retry_attempts=1).search(PROFILE, CHAT)
        db.close.assert_called_once()

    def test_empty_result(self):
        factory, _ = _factory([])

        assert PgVectorJobSearch(factory, retry_attempts=1).search(None, CHAT) == []

    @pytest.mark.parametrize(
        "profile, chat, k",
        [
            (None, None, 5),
            ([0.1, 0.2], None, 5),
            (PROFILE, [0.1] * 5, 5),
            (PROFILE, CHAT, 0),
        ],
    )
    def test_invalid_arguments(self, profile, chat, k):
        factory, db = _factory([])

        with pytest.raises(InvalidArgument):
            PgVectorJobSearch(factory, retry_attempts=1).search(profile, chat, k=k)
        db.execute.assert_not_called()
