"""
Database schema and connection management.

Uses SQLite with SQLAlchemy for the score cache, its history, the
recomputation queue and per-tenant engine configuration.
"""

from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterator

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    event,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

Base = declarative_base()

DEFAULT_MAX_ATTEMPTS = 5


class MatchScore(Base):
    """Cached composite score for one (student, listing) pair."""

    __tablename__ = "match_scores"
    __table_args__ = (
        UniqueConstraint("student_id", "listing_id", name="uq_match_scores_pair"),
        Index("ix_match_scores_listing", "listing_id"),
        Index("ix_match_scores_tenant", "tenant_id"),
        Index("ix_match_scores_config_tenant", "config_tenant_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    student_id = Column(String, nullable=False, index=True)
    listing_id = Column(String, nullable=False)
    tenant_id = Column(String, nullable=True)  # student's tenant at computation time
    config_tenant_id = Column(String, nullable=True)  # tenant whose config produced the score
    composite_score = Column(Float, nullable=False)
    signal_breakdown = Column(JSON, nullable=False)
    engine_version = Column(Integer, nullable=False)
    config_version = Column(Integer, nullable=False)
    visible = Column(Boolean, nullable=False, default=True)
    below_floor = Column(Boolean, nullable=False, default=False)
    is_stale = Column(Boolean, nullable=False, default=False)
    computation_time_ms = Column(Integer, nullable=True)
    computed_at = Column(DateTime, nullable=False, default=datetime.now)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)


class MatchScoreHistory(Base):
    """Audit trail of composite score changes."""

    __tablename__ = "match_score_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    student_id = Column(String, nullable=False, index=True)
    listing_id = Column(String, nullable=False)
    old_score = Column(Float, nullable=True)
    new_score = Column(Float, nullable=False)
    change_reason = Column(String, nullable=False)  # initial, recomputation
    changed_at = Column(DateTime, nullable=False, default=datetime.now)


class RecomputationQueueItem(Base):
    """Pending or processed score refresh work."""

    __tablename__ = "recomputation_queue"
    __table_args__ = (
        Index("ix_recompute_pending", "processed_at", "priority", "queued_at"),
        Index("ix_recompute_pair", "student_id", "listing_id"),
        # At most one pending item per pair
        Index(
            "ux_recompute_pending_pair",
            "student_id",
            "listing_id",
            unique=True,
            sqlite_where=text("processed_at IS NULL"),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    student_id = Column(String, nullable=False)
    listing_id = Column(String, nullable=False)
    tenant_id = Column(String, nullable=True)
    config_tenant_id = Column(String, nullable=True)  # explicit config override, if any
    reason = Column(String, nullable=False)
    priority = Column(Integer, nullable=False)  # 1 (cron) - 10 (admin)
    queued_at = Column(DateTime, nullable=False, default=datetime.now)
    processed_at = Column(DateTime, nullable=True)
    attempts = Column(Integer, nullable=False, default=0)
    max_attempts = Column(Integer, nullable=False, default=DEFAULT_MAX_ATTEMPTS)
    last_error = Column(Text, nullable=True)


class MatchEngineConfigRow(Base):
    """Per-tenant override of the engine defaults."""

    __tablename__ = "match_engine_config"

    tenant_id = Column(String, primary_key=True)
    signal_weights = Column(JSON, nullable=False)
    score_floor = Column(Float, nullable=False)
    max_results = Column(Integer, nullable=False)
    precision = Column(Integer, nullable=False)
    batch_size = Column(Integer, nullable=False)
    max_attempts = Column(Integer, nullable=False)
    features = Column(JSON, nullable=False)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)


_engines: Dict[str, Engine] = {}


def _install_begin_hooks(engine: Engine) -> None:
    """
    Emit BEGIN ourselves instead of leaving it to pysqlite.

    pysqlite defers BEGIN until the first write, so a read-then-write
    transaction does not hold the write lock while it reads. Connections
    opened with the ``sqlite_begin="IMMEDIATE"`` execution option take the
    lock up front.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin(conn):
        mode = conn.get_execution_options().get("sqlite_begin", "DEFERRED")
        conn.exec_driver_sql(f"BEGIN {mode}")


def get_engine(db_path: Path) -> Engine:
    """
    Get (and cache) the SQLAlchemy engine for a database file.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLAlchemy engine
    """
    key = str(Path(db_path).resolve())
    engine = _engines.get(key)
    if engine is None:
        engine = create_engine(f"sqlite:///{key}", connect_args={"timeout": 30})
        _install_begin_hooks(engine)
        _engines[key] = engine
    return engine


def init_database(db_path: Path) -> None:
    """
    Initialize database and create tables.

    Args:
        db_path: Path to SQLite database file
    """
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    Base.metadata.create_all(get_engine(db_path))


def get_session(db_path: Path) -> Session:
    """
    Get database session.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLAlchemy session
    """
    factory = sessionmaker(bind=get_engine(db_path), expire_on_commit=False)
    return factory()


@contextmanager
def session_scope(db_path: Path, immediate: bool = False) -> Iterator[Session]:
    """
    Transactional scope: commit on success, roll back on any error.

    Args:
        db_path: Path to SQLite database file
        immediate: Take the database write lock before the first read
            (read-then-write units of work such as dedup and cache upserts)
    """
    session = get_session(db_path)
    try:
        if immediate:
            session.connection(execution_options={"sqlite_begin": "IMMEDIATE"})
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
