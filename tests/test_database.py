"""
Tests for database.py - SQLite database operations.
"""

import pytest
from datetime import datetime, timedelta
from sqlalchemy.exc import IntegrityError

from matchengine.database import (
    DEFAULT_MAX_ATTEMPTS,
    MatchEngineConfigRow,
    MatchScore,
    MatchScoreHistory,
    RecomputationQueueItem,
    get_session,
    init_database,
    session_scope,
)


def make_score(student_id="s-1", listing_id="l-1", **kwargs) -> MatchScore:
    defaults = dict(
        tenant_id="ucla",
        composite_score=72.5,
        signal_breakdown={"skills": {"score": 80.0, "weight": 0.3}},
        engine_version=1,
        config_version=0,
    )
    defaults.update(kwargs)
    return MatchScore(student_id=student_id, listing_id=listing_id, **defaults)


class TestDatabaseInit:
    """Test database initialization."""

    def test_init_creates_database_file(self, tmp_path):
        """Test that init_database creates the database file."""
        db_path = tmp_path / "test.db"
        assert not db_path.exists()

        init_database(db_path)

        assert db_path.exists()

    def test_init_creates_tables(self, tmp_path):
        """Test that init_database creates every table."""
        db_path = tmp_path / "test.db"
        init_database(db_path)

        session = get_session(db_path)
        # Should not raise error if tables exist
        assert session.query(MatchScore).count() == 0
        assert session.query(MatchScoreHistory).count() == 0
        assert session.query(RecomputationQueueItem).count() == 0
        assert session.query(MatchEngineConfigRow).count() == 0
        session.close()

    def test_init_creates_parent_directories(self, tmp_path):
        """Test that init_database creates parent directories if missing."""
        db_path = tmp_path / "nested" / "dir" / "test.db"
        assert not db_path.parent.exists()

        init_database(db_path)

        assert db_path.exists()
        assert db_path.parent.exists()

    def test_init_is_idempotent(self, tmp_path):
        db_path = tmp_path / "test.db"
        init_database(db_path)
        with session_scope(db_path) as session:
            session.add(make_score())

        init_database(db_path)

        with session_scope(db_path) as session:
            assert session.query(MatchScore).count() == 1


class TestMatchScoreRows:
    """Test the score cache table."""

    @pytest.fixture
    def db_session(self, tmp_path):
        """Create a temporary database and return a session."""
        db_path = tmp_path / "test.db"
        init_database(db_path)
        session = get_session(db_path)
        yield session
        session.close()

    def test_create_score(self, db_session):
        """Defaults are filled in on insert."""
        db_session.add(make_score())
        db_session.commit()

        row = db_session.query(MatchScore).filter_by(student_id="s-1", listing_id="l-1").one()
        assert row.composite_score == 72.5
        assert row.is_stale is False
        assert row.visible is True
        assert row.below_floor is False
        assert row.computed_at is not None

    def test_breakdown_round_trips_as_json(self, db_session):
        breakdown = {
            "skills": {"score": 80.0, "weight": 0.3, "details": {"matched": ["python"]}},
            "trust": {"score": 50.0, "weight": 0.15, "defaulted": True},
        }
        db_session.add(make_score(signal_breakdown=breakdown))
        db_session.commit()
        db_session.expire_all()

        row = db_session.query(MatchScore).one()
        assert row.signal_breakdown == breakdown

    def test_duplicate_pair_fails(self, db_session):
        """At most one cached row per (student, listing)."""
        db_session.add(make_score())
        db_session.commit()

        db_session.add(make_score(composite_score=10.0))

        with pytest.raises(IntegrityError):
            db_session.commit()

    def test_same_student_different_listing(self, db_session):
        db_session.add(make_score(listing_id="l-1"))
        db_session.add(make_score(listing_id="l-2"))
        db_session.commit()

        assert db_session.query(MatchScore).filter_by(student_id="s-1").count() == 2

    def test_missing_required_fields_fails(self, db_session):
        db_session.add(MatchScore(student_id="s-1", listing_id="l-1"))

        with pytest.raises(IntegrityError):
            db_session.commit()

    def test_query_by_computed_at(self, db_session):
        now = datetime.now()
        db_session.add(make_score(listing_id="old", computed_at=now - timedelta(days=10)))
        db_session.add(make_score(listing_id="new", computed_at=now))
        db_session.commit()

        cutoff = now - timedelta(days=5)
        recent = db_session.query(MatchScore).filter(MatchScore.computed_at >= cutoff).all()

        assert [r.listing_id for r in recent] == ["new"]


class TestQueueRows:
    """Test the recomputation queue table."""

    def test_queue_defaults(self, tmp_path):
        db_path = tmp_path / "test.db"
        init_database(db_path)

        with session_scope(db_path) as session:
            session.add(RecomputationQueueItem(
                student_id="s-1", listing_id="l-1", reason="profile_update", priority=5,
            ))

        with session_scope(db_path) as session:
            item = session.query(RecomputationQueueItem).one()
            assert item.attempts == 0
            assert item.processed_at is None
            assert item.last_error is None
            assert item.queued_at is not None
            assert item.max_attempts == DEFAULT_MAX_ATTEMPTS
            assert item.config_tenant_id is None

    def test_processed_items_do_not_block_new_pending_item(self, tmp_path):
        """Only pending items are unique per pair; processed history can repeat."""
        db_path = tmp_path / "test.db"
        init_database(db_path)

        with session_scope(db_path) as session:
            for _ in range(2):
                session.add(RecomputationQueueItem(
                    student_id="s-1", listing_id="l-1", reason="profile_update", priority=5,
                    processed_at=datetime.now(),
                ))
            session.add(RecomputationQueueItem(
                student_id="s-1", listing_id="l-1", reason="profile_update", priority=5,
            ))

        with session_scope(db_path) as session:
            assert session.query(RecomputationQueueItem).count() == 3

    def test_second_pending_item_for_pair_fails(self, tmp_path):
        db_path = tmp_path / "test.db"
        init_database(db_path)

        with pytest.raises(IntegrityError):
            with session_scope(db_path) as session:
                for _ in range(2):
                    session.add(RecomputationQueueItem(
                        student_id="s-1", listing_id="l-1", reason="profile_update", priority=5,
                    ))


class TestSessionScope:
    """Test the transactional session helper."""

    def test_commits_on_success(self, tmp_path):
        db_path = tmp_path / "test.db"
        init_database(db_path)

        with session_scope(db_path) as session:
            session.add(make_score())

        with session_scope(db_path) as session:
            assert session.query(MatchScore).count() == 1

    def test_rolls_back_on_error(self, tmp_path):
        db_path = tmp_path / "test.db"
        init_database(db_path)

        with pytest.raises(RuntimeError):
            with session_scope(db_path) as session:
                session.add(make_score())
                session.flush()
                raise RuntimeError("boom")

        with session_scope(db_path) as session:
            assert session.query(MatchScore).count() == 0

    def test_objects_usable_after_commit(self, tmp_path):
        """Sessions do not expire attributes on commit."""
        db_path = tmp_path / "test.db"
        init_database(db_path)

        with session_scope(db_path) as session:
            row = make_score()
            session.add(row)

        assert row.composite_score == 72.5
        assert row.id is not None

