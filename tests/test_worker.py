"""
Tests for worker.py - draining the queue and forced recomputation.
"""

import pytest

from matchengine import worker
from matchengine.database import MatchScore, RecomputationQueueItem, session_scope
from matchengine.errors import NotFoundError
from matchengine.retry import RetryError
from matchengine.recompute_queue import pending_items


@pytest.fixture
def invalidated(engine):
    """Three cached pairs, all stale and queued."""
    for student_id, listing_id in [("s-alice", "l-data"), ("s-bob", "l-data"), ("s-dan", "l-open")]:
        engine.compute_match(student_id, listing_id)
    engine.recompute_all()
    return engine


def _item(db_path, student_id, listing_id):
    with session_scope(db_path) as session:
        return (
            session.query(RecomputationQueueItem)
            .filter_by(student_id=student_id, listing_id=listing_id)
            .order_by(RecomputationQueueItem.id.desc())
            .first()
        )


class TestDrainQueue:
    """Test synchronous queue draining."""

    def test_drain_processes_everything(self, invalidated, db_path):
        report = invalidated.drain_queue(batch_size=2)

        assert report.processed == 3
        assert report.failed == 0
        assert report.batches == 2
        assert report.remaining == 0
        with session_scope(db_path) as session:
            assert not any(r.is_stale for r in session.query(MatchScore).all())
            assert pending_items(session) == []

    def test_processed_items_are_kept_as_history(self, invalidated, db_path):
        invalidated.drain_queue()

        item = _item(db_path, "s-alice", "l-data")
        assert item.processed_at is not None
        assert item.attempts == 1
        assert item.last_error is None

    def test_max_batches_leaves_rest_queued(self, invalidated, db_path):
        report = invalidated.drain_queue(batch_size=1, max_batches=1)

        assert report.processed == 1
        assert report.remaining == 2

    def test_failure_keeps_item_queued(self, invalidated, source, db_path, monkeypatch):
        """A pair whose student vanished fails, the others still complete."""
        original = source.get_student
        monkeypatch.setattr(source, "get_student", lambda sid: None if sid == "s-bob" else original(sid))

        report = invalidated.drain_queue()

        assert report.processed == 2
        assert report.failed == 1
        assert report.errors[0]["student_id"] == "s-bob"
        assert "NotFoundError" in report.errors[0]["error"]

        item = _item(db_path, "s-bob", "l-data")
        assert item.processed_at is None
        assert item.attempts == 1
        assert "s-bob" in item.last_error

        with session_scope(db_path) as session:
            row = session.query(MatchScore).filter_by(student_id="s-bob").one()
            assert row.is_stale is True

    def test_failed_item_retried_on_next_drain(self, invalidated, source, db_path, monkeypatch):
        original = source.get_student
        monkeypatch.setattr(source, "get_student", lambda sid: None if sid == "s-bob" else original(sid))
        invalidated.drain_queue()

        monkeypatch.setattr(source, "get_student", original)
        report = invalidated.drain_queue()

        assert report.processed == 1
        item = _item(db_path, "s-bob", "l-data")
        assert item.processed_at is not None

    def test_unrecordable_failure_does_not_abort_drain(self, invalidated, source, monkeypatch):
        """If the failed attempt cannot be written back, the drain still finishes and reports."""
        original = source.get_student
        monkeypatch.setattr(source, "get_student", lambda sid: None if sid == "s-bob" else original(sid))

        def locked(db_path, item_id, error):
            raise RetryError("Failed after 4 attempts: database is locked")

        monkeypatch.setattr(worker, "_record_failure", locked)

        report = invalidated.drain_queue(batch_size=1)

        assert report.processed == 2
        assert report.failed == 1
        assert report.unrecorded == 1
        assert report.to_dict()["unrecorded"] == 1
        assert report.remaining == 1

    def test_empty_queue(self, engine):
        report = engine.drain_queue()

        assert report.processed == 0
        assert report.batches == 0


class TestRecomputeNow:
    """Test forced per-pair recomputation."""

    def test_recompute_now_refreshes_and_retires_pending(self, invalidated, db_path):
        result = invalidated.recompute_now("s-alice", "l-data")

        assert result.from_cache is False
        assert result.is_stale is False
        with session_scope(db_path) as session:
            assert pending_items(session, student_id="s-alice", listing_id="l-data") == []
            assert len(pending_items(session)) == 2
            row = session.query(MatchScore).filter_by(student_id="s-alice", listing_id="l-data").one()
            assert row.is_stale is False

    def test_recompute_now_unknown_pair(self, engine, db_path):
        with pytest.raises(NotFoundError):
            engine.recompute_now("s-alice", "l-missing")

        with session_scope(db_path) as session:
            assert session.query(MatchScore).count() == 0


class TestTenantQueueSettings:
    """Test that drains honor per-tenant batch_size and max_attempts."""

    def test_tenant_max_attempts_stops_retries(self, invalidated, source, db_path, monkeypatch):
        invalidated.update_config("ucla", max_attempts=1)
        original = source.get_student
        monkeypatch.setattr(source, "get_student", lambda sid: None if sid == "s-bob" else original(sid))

        invalidated.drain_queue()
        second = invalidated.drain_queue()

        assert second.failed == 0
        item = _item(db_path, "s-bob", "l-data")
        assert item.attempts == 1
        assert item.processed_at is None
        assert second.remaining == 0

    def test_other_tenants_keep_default_limit(self, invalidated, source, db_path, monkeypatch):
        invalidated.update_config("ucla", max_attempts=1)
        original = source.get_student
        monkeypatch.setattr(source, "get_student", lambda sid: None if sid == "s-dan" else original(sid))

        invalidated.drain_queue()
        second = invalidated.drain_queue()

        assert second.failed == 1
        assert _item(db_path, "s-dan", "l-open").attempts == 2

    def test_tenant_drain_uses_tenant_batch_size(self, invalidated, db_path):
        invalidated.update_config("ucla", batch_size=1)

        report = invalidated.drain_queue(tenant_id="ucla")

        assert report.processed == 2
        assert report.batches == 2
        assert report.remaining == 0
        with session_scope(db_path) as session:
            assert [(i.student_id, i.listing_id) for i in pending_items(session)] == [("s-dan", "l-open")]

    def test_override_is_kept_on_recompute(self, engine, db_path):
        engine.update_config("usc", weights={"temporal": 0.35, "skills": 0.20})
        first = engine.compute_match("s-alice", "l-data", tenant_id="usc")
        engine.invalidate_student_scores("s-alice", "profile_update")

        engine.drain_queue()

        with session_scope(db_path) as session:
            row = session.query(MatchScore).filter_by(student_id="s-alice", listing_id="l-data").one()
            assert row.config_tenant_id == "usc"
            assert row.composite_score == first.score
