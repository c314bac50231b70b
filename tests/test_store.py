"""
Tests for store.py - cached score rows and ranking queries.
"""

import pytest

from matchengine.database import MatchScore, session_scope
from matchengine.errors import ValidationError
from matchengine.store import get_cached, row_to_result, validate_query


class TestPersistence:
    """Test that cached rows round-trip exactly."""

    def test_persist_then_read_is_identical(self, engine, db_path):
        computed = engine.compute_match("s-alice", "l-data")

        with session_scope(db_path) as session:
            stored = row_to_result(get_cached(session, "s-alice", "l-data"))

        assert stored.score == computed.score
        assert stored.signals == computed.signals
        assert stored.breakdown() == computed.breakdown()
        assert stored.config_version == computed.config_version

    def test_breakdown_carries_tagged_evidence(self, engine, db_path):
        engine.compute_match("s-bob", "l-data")

        with session_scope(db_path) as session:
            row = get_cached(session, "s-bob", "l-data")
            breakdown = row.signal_breakdown

        assert breakdown["skills"]["evidence"]["signal"] == "skills"
        assert breakdown["trust"]["evidence"]["signal"] == "trust"
        assert "value" in breakdown["temporal"]

    def test_one_row_per_pair(self, engine, db_path):
        engine.compute_match("s-alice", "l-data")
        engine.compute_match("s-alice", "l-data", force_recompute=True)

        with session_scope(db_path) as session:
            assert session.query(MatchScore).count() == 1


class TestRankingQueries:
    """Test get_student_matches / get_listing_matches."""

    @pytest.fixture
    def scored(self, engine):
        """Compute a handful of pairs so the cache has rows to rank."""
        for student_id, listing_id in [
            ("s-alice", "l-data"),
            ("s-bob", "l-data"),
            ("s-cara", "l-data"),
            ("s-alice", "l-open"),
            ("s-dan", "l-open"),
        ]:
            engine.compute_match(student_id, listing_id)
        return engine

    def test_listing_matches_sorted_descending(self, scored):
        results = scored.get_listing_matches("l-data")

        assert [r.student_id for r in results] == ["s-alice", "s-bob"]
        assert results[0].score >= results[1].score

    def test_hidden_pairs_are_excluded(self, scored):
        """s-cara cannot see l-data, so she never ranks for it."""
        results = scored.get_listing_matches("l-data")

        assert "s-cara" not in [r.student_id for r in results]

    def test_student_matches(self, scored):
        results = scored.get_student_matches("s-alice")

        assert {r.listing_id for r in results} == {"l-data", "l-open"}

    def test_limit_caps_results(self, scored):
        assert len(scored.get_listing_matches("l-data", limit=1)) == 1

    def test_config_max_results_caps_limit(self, scored):
        scored.update_config("ucla", max_results=1)

        assert len(scored.get_listing_matches("l-data", limit=50)) == 1

    def test_never_returns_rows_below_floor(self, scored):
        """A min_score below the floor cannot lower the floor."""
        scored.update_config("ucla", score_floor=80)
        results = scored.get_listing_matches("l-data", min_score=0)

        assert results
        assert all(r.score >= 80 for r in results)

    def test_min_score_above_floor(self, scored):
        top = scored.get_listing_matches("l-data")[0].score
        results = scored.get_listing_matches("l-data", min_score=top)

        assert [r.student_id for r in results] == ["s-alice"]

    def test_tenant_filter(self, scored):
        results = scored.get_listing_matches("l-open", tenant_id="stanford")

        assert [r.student_id for r in results] == ["s-dan"]

    def test_stale_rows_are_still_served(self, scored):
        scored.invalidate_student_scores("s-alice", "profile_update")
        results = scored.get_student_matches("s-alice")

        assert results
        assert all(r.is_stale for r in results)

    def test_ranking_never_computes(self, engine):
        """No cached rows means no results, not a live computation."""
        assert engine.get_student_matches("s-alice") == []

    @pytest.mark.parametrize("limit,min_score", [(0, None), (1001, None), (None, -1), (None, 101)])
    def test_out_of_range_arguments(self, scored, limit, min_score):
        with pytest.raises(ValidationError):
            scored.get_student_matches("s-alice", limit=limit, min_score=min_score)

    def test_validate_query(self):
        assert validate_query(10, 50) == []
        assert len(validate_query(0, 200)) == 2
