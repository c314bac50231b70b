"""
Invalidation Tracker: turns change events from the profile, listing,
schedule, rating and config stores into stale cache rows plus queue items.

Each call stales and enqueues inside the caller's session, so the two land in
the same transaction. The reason is validated before anything is touched.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from .database import MatchScore
from .logger import get_logger
from .recompute_queue import AttemptLimits, QueueTarget, enqueue_pairs, pending_by_pair, priority_for

DEFAULT_CHUNK_SIZE = 500

logger = get_logger()


@dataclass
class InvalidationReport:
    reason: str
    rows_staled: int = 0
    items_enqueued: int = 0
    items_merged: int = 0

    def to_dict(self) -> Dict[str, object]:
        return {
            "reason": self.reason,
            "rows_staled": self.rows_staled,
            "items_enqueued": self.items_enqueued,
            "items_merged": self.items_merged,
        }


def _target(row: MatchScore) -> QueueTarget:
    # Rows scored under another tenant's config keep that override when recomputed.
    override = row.config_tenant_id if row.config_tenant_id != row.tenant_id else None
    return QueueTarget(row.student_id, row.listing_id, row.tenant_id, override)


def _invalidate_rows(session: Session, rows: List[MatchScore], reason: str,
                     pending: Optional[Dict] = None,
                     limits: Optional[AttemptLimits] = None) -> InvalidationReport:
    for row in rows:
        row.is_stale = True
    created = enqueue_pairs(
        session,
        [_target(row) for row in rows],
        reason,
        pending=pending,
        limits=limits,
    )
    return InvalidationReport(
        reason=reason,
        rows_staled=len(rows),
        items_enqueued=created,
        items_merged=len(rows) - created,
    )


def invalidate_student_scores(session: Session, student_id: str, reason: str) -> InvalidationReport:
    """
    Stale every cached row for a student and queue each pair.

    Raises:
        ValidationError: Empty reason
    """
    priority_for(reason)
    rows = session.query(MatchScore).filter_by(student_id=student_id).all()
    report = _invalidate_rows(session, rows, reason)
    logger.record_invalidation(report.rows_staled)
    logger.info("Student scores invalidated", student_id=student_id, **report.to_dict())
    return report


def invalidate_listing_scores(session: Session, listing_id: str, reason: str) -> InvalidationReport:
    """Stale every cached row for a listing and queue each pair."""
    priority_for(reason)
    rows = session.query(MatchScore).filter_by(listing_id=listing_id).all()
    report = _invalidate_rows(session, rows, reason)
    logger.record_invalidation(report.rows_staled)
    logger.info("Listing scores invalidated", listing_id=listing_id, **report.to_dict())
    return report


def invalidate_tenant_scores(session: Session, tenant_id: str, reason: str = "config_change") -> InvalidationReport:
    """Stale every row scored with a tenant's config (used after a config update)."""
    priority_for(reason)
    rows = session.query(MatchScore).filter_by(config_tenant_id=tenant_id).all()
    report = _invalidate_rows(session, rows, reason)
    logger.record_invalidation(report.rows_staled)
    logger.info("Tenant scores invalidated", tenant_id=tenant_id, **report.to_dict())
    return report


def recompute_all(
    session: Session,
    reason: str = "admin_global_recompute",
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> InvalidationReport:
    """
    Stale every cached row and queue every pair, walking the table in
    id-ordered chunks. Pairs already pending are merged, not duplicated.
    """
    priority_for(reason)
    pending = pending_by_pair(session)
    limits = AttemptLimits(session)
    total = InvalidationReport(reason=reason)

    last_id = 0
    while True:
        rows = (
            session.query(MatchScore)
            .filter(MatchScore.id > last_id)
            .order_by(MatchScore.id)
            .limit(chunk_size)
            .all()
        )
        if not rows:
            break
        chunk = _invalidate_rows(session, rows, reason, pending=pending, limits=limits)
        total.rows_staled += chunk.rows_staled
        total.items_enqueued += chunk.items_enqueued
        total.items_merged += chunk.items_merged
        last_id = rows[-1].id
        logger.debug("Global recompute chunk queued", last_id=last_id, rows=len(rows))

    logger.record_invalidation(total.rows_staled)
    logger.info("Global recompute queued", **total.to_dict())
    return total
