"""
Score Store: the persistent cache of composite scores and the ranking
queries served from it.

Ranking reads never compute. A pair with no cached row is simply absent
until a recomputation (explicit or queued) writes one; stale rows are still
served with is_stale set so callers can tell.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from .config import MatchEngineConfig
from .database import MatchScore, MatchScoreHistory
from .errors import ValidationError
from .signals import SignalResult

HISTORY_THRESHOLD = 0.5
MAX_QUERY_LIMIT = 1000


@dataclass
class MatchResult:
    student_id: str
    listing_id: str
    tenant_id: Optional[str]
    score: float
    signals: Dict[str, SignalResult]
    computed_at: datetime
    version: int
    config_version: int
    below_floor: bool = False
    visible: bool = True
    is_stale: bool = False
    from_cache: bool = False
    computation_time_ms: Optional[int] = None
    defaulted_signals: List[str] = field(default_factory=list)
    config_tenant_id: Optional[str] = None

    def breakdown(self) -> Dict[str, Any]:
        return {name: result.to_dict() for name, result in self.signals.items()}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "student_id": self.student_id,
            "listing_id": self.listing_id,
            "tenant_id": self.tenant_id,
            "score": self.score,
            "signals": self.breakdown(),
            "computed_at": self.computed_at.isoformat(),
            "version": self.version,
            "config_version": self.config_version,
            "config_tenant_id": self.config_tenant_id,
            "below_floor": self.below_floor,
            "visible": self.visible,
            "is_stale": self.is_stale,
            "from_cache": self.from_cache,
            "computation_time_ms": self.computation_time_ms,
            "defaulted_signals": list(self.defaulted_signals),
        }


def get_cached(session: Session, student_id: str, listing_id: str) -> Optional[MatchScore]:
    return session.query(MatchScore).filter_by(student_id=student_id, listing_id=listing_id).first()


def row_to_result(row: MatchScore, from_cache: bool = True) -> MatchResult:
    signals = {
        name: SignalResult.from_dict(name, data)
        for name, data in (row.signal_breakdown or {}).items()
    }
    return MatchResult(
        student_id=row.student_id,
        listing_id=row.listing_id,
        tenant_id=row.tenant_id,
        score=row.composite_score,
        signals=signals,
        computed_at=row.computed_at,
        version=row.engine_version,
        config_version=row.config_version,
        below_floor=row.below_floor,
        visible=row.visible,
        is_stale=row.is_stale,
        from_cache=from_cache,
        computation_time_ms=row.computation_time_ms,
        defaulted_signals=[name for name, s in signals.items() if s.defaulted],
        config_tenant_id=row.config_tenant_id,
    )


def upsert_score(session: Session, result: MatchResult, reason: str = "recomputation") -> str:
    """
    Write a freshly computed result, clearing staleness.

    A history row is added for new pairs and for changes larger than
    HISTORY_THRESHOLD points.

    Returns:
        "new", "updated" or "no-change" (composite unchanged)
    """
    row = get_cached(session, result.student_id, result.listing_id)
    old_score = None

    if row is None:
        row = MatchScore(student_id=result.student_id, listing_id=result.listing_id)
        session.add(row)
        status = "new"
    else:
        old_score = row.composite_score
        status = "updated" if old_score != result.score else "no-change"

    row.tenant_id = result.tenant_id
    row.config_tenant_id = result.config_tenant_id
    row.composite_score = result.score
    row.signal_breakdown = result.breakdown()
    row.engine_version = result.version
    row.config_version = result.config_version
    row.visible = result.visible
    row.below_floor = result.below_floor
    row.is_stale = False
    row.computation_time_ms = result.computation_time_ms
    row.computed_at = result.computed_at

    if old_score is None:
        session.add(MatchScoreHistory(
            student_id=result.student_id,
            listing_id=result.listing_id,
            old_score=None,
            new_score=result.score,
            change_reason="initial",
        ))
    elif abs(result.score - old_score) > HISTORY_THRESHOLD:
        session.add(MatchScoreHistory(
            student_id=result.student_id,
            listing_id=result.listing_id,
            old_score=old_score,
            new_score=result.score,
            change_reason=reason,
        ))

    session.flush()
    return status


def score_history(session: Session, student_id: str, listing_id: str) -> List[MatchScoreHistory]:
    return (
        session.query(MatchScoreHistory)
        .filter_by(student_id=student_id, listing_id=listing_id)
        .order_by(MatchScoreHistory.changed_at, MatchScoreHistory.id)
        .all()
    )


def validate_query(limit: Optional[int], min_score: Optional[float]) -> List[str]:
    """
    Returns a list of validation error messages. Empty list means valid.
    """
    errors = []
    if limit is not None:
        if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= MAX_QUERY_LIMIT:
            errors.append(f"limit must be an integer between 1 and {MAX_QUERY_LIMIT}")
    if min_score is not None:
        if isinstance(min_score, bool) or not isinstance(min_score, (int, float)) or not 0 <= min_score <= 100:
            errors.append("min_score must be a number between 0 and 100")
    return errors


def _ranked(query, config: MatchEngineConfig, limit: Optional[int], min_score: Optional[float],
            tenant_id: Optional[str]) -> List[MatchResult]:
    errors = validate_query(limit, min_score)
    if errors:
        raise ValidationError(errors)

    floor = max(min_score if min_score is not None else 0.0, config.score_floor)
    cap = min(limit, config.max_results) if limit is not None else config.max_results

    query = query.filter(MatchScore.visible.is_(True), MatchScore.composite_score >= floor)
    if tenant_id is not None:
        query = query.filter(MatchScore.tenant_id == tenant_id)

    rows = (
        query.order_by(MatchScore.composite_score.desc(), MatchScore.computed_at.desc(), MatchScore.id)
        .limit(cap)
        .all()
    )
    return [row_to_result(row) for row in rows]


def get_student_matches(
    session: Session,
    config: MatchEngineConfig,
    student_id: str,
    limit: Optional[int] = None,
    min_score: Optional[float] = None,
    tenant_id: Optional[str] = None,
) -> List[MatchResult]:
    """
    Cached listings for a student, best first.

    Args:
        session: Open SQLAlchemy session
        config: Resolved config supplying the floor and result cap
        student_id: Student to rank listings for
        limit: Requested cap, further bounded by config.max_results
        min_score: Requested floor, never below config.score_floor
        tenant_id: Only rows computed under this tenant

    Raises:
        ValidationError: limit or min_score out of range
    """
    query = session.query(MatchScore).filter(MatchScore.student_id == student_id)
    return _ranked(query, config, limit, min_score, tenant_id)


def get_listing_matches(
    session: Session,
    config: MatchEngineConfig,
    listing_id: str,
    limit: Optional[int] = None,
    min_score: Optional[float] = None,
    tenant_id: Optional[str] = None,
) -> List[MatchResult]:
    """Cached students for a listing, best first. Same rules as get_student_matches."""
    query = session.query(MatchScore).filter(MatchScore.listing_id == listing_id)
    return _ranked(query, config, limit, min_score, tenant_id)
