"""
Durable, priority-ordered queue of (student, listing) pairs awaiting
recomputation.

Only pending items (processed_at IS NULL) are ever modified; processed items
are kept as history. At most one pending item exists per pair: enqueueing a
pair that is already pending raises its priority to the larger of the two
and leaves its position (queued_at) alone. A partial unique index backs this
up; callers that read before writing hold the write lock (see
session_scope(immediate=True)).

Each item carries the attempt limit of the tenant whose config scores it,
resolved when the item is queued or re-armed.
"""

from datetime import datetime
from typing import Dict, Iterable, List, NamedTuple, Optional, Set, Tuple

from sqlalchemy.orm import Session

from .config import resolve_config
from .database import RecomputationQueueItem
from .errors import ValidationError
from .logger import get_logger

REASON_PRIORITIES = {
    "admin_global_recompute": 10,
    "manual": 8,
    "config_change": 6,
    "profile_update": 5,
    "skill_change": 5,
    "listing_update": 4,
    "rating_change": 4,
    "schedule_change": 3,
    "cron": 1,
}

DEFAULT_PRIORITY = 5
MAX_ERROR_LENGTH = 2000

logger = get_logger()

Pair = Tuple[str, str]


class QueueTarget(NamedTuple):
    student_id: str
    listing_id: str
    tenant_id: Optional[str] = None
    config_tenant_id: Optional[str] = None  # explicit config override

    @property
    def scoring_tenant(self) -> Optional[str]:
        return self.config_tenant_id if self.config_tenant_id is not None else self.tenant_id


class AttemptLimits:
    """max_attempts per tenant, resolved once per unit of work."""

    def __init__(self, session: Session):
        self.session = session
        self._limits: Dict[Optional[str], int] = {}

    def for_tenant(self, tenant_id: Optional[str]) -> int:
        if tenant_id not in self._limits:
            self._limits[tenant_id] = resolve_config(self.session, tenant_id).max_attempts
        return self._limits[tenant_id]


def priority_for(reason: str) -> int:
    """Map a trigger reason to its queue priority (1-10)."""
    if not reason or not str(reason).strip():
        raise ValidationError(["reason must be a non-empty string"])
    priority = REASON_PRIORITIES.get(reason)
    if priority is None:
        logger.warning("Unknown recomputation reason, using default priority",
                       reason=reason, priority=DEFAULT_PRIORITY)
        return DEFAULT_PRIORITY
    return priority


def pending_by_pair(session: Session) -> Dict[Pair, RecomputationQueueItem]:
    items = session.query(RecomputationQueueItem).filter(RecomputationQueueItem.processed_at.is_(None)).all()
    return {(i.student_id, i.listing_id): i for i in items}




def _merge(item: RecomputationQueueItem, target: QueueTarget, priority: int, reason: str,
           limits: AttemptLimits) -> None:
    if priority > item.priority:
        item.priority = priority
        item.reason = reason
    if target.config_tenant_id is not None:
        item.config_tenant_id = target.config_tenant_id
    # A new trigger re-arms an item that exhausted its attempts.
    item.attempts = 0
    item.max_attempts = limits.for_tenant(
        item.config_tenant_id if item.config_tenant_id is not None else item.tenant_id
    )


def _new_item(target: QueueTarget, priority: int, reason: str, limits: AttemptLimits,
              queued_at: datetime) -> RecomputationQueueItem:
    return RecomputationQueueItem(
        student_id=target.student_id,
        listing_id=target.listing_id,
        tenant_id=target.tenant_id,
        config_tenant_id=target.config_tenant_id,
        reason=reason,
        priority=priority,
        queued_at=queued_at,
        attempts=0,
        max_attempts=limits.for_tenant(target.scoring_tenant),
    )


def enqueue(
    session: Session,
    student_id: str,
    listing_id: str,
    reason: str,
    tenant_id: Optional[str] = None,
    config_tenant_id: Optional[str] = None,
) -> RecomputationQueueItem:
    """
    Queue one pair, deduplicating against its pending item.

    Raises:
        ValidationError: Empty reason
    """
    priority = priority_for(reason)
    target = QueueTarget(student_id, listing_id, tenant_id, config_tenant_id)
    limits = AttemptLimits(session)
    item = (
        session.query(RecomputationQueueItem)
        .filter(
            RecomputationQueueItem.student_id == student_id,
            RecomputationQueueItem.listing_id == listing_id,
            RecomputationQueueItem.processed_at.is_(None),
        )
        .first()
    )
    if item is not None:
        _merge(item, target, priority, reason, limits)
    else:
        item = _new_item(target, priority, reason, limits, datetime.now())
        session.add(item)
    session.flush()
    return item


def enqueue_pairs(
    session: Session,
    targets: Iterable[QueueTarget],
    reason: str,
    pending: Optional[Dict[Pair, RecomputationQueueItem]] = None,
    limits: Optional[AttemptLimits] = None,
) -> int:
    """
    Queue many pairs under one reason.

    Args:
        pending: Pre-loaded pending items by pair; updated in place so the
            same map can be reused across chunks
        limits: Per-tenant attempt limits, shared across chunks the same way

    Returns:
        Number of newly created items (merged pairs are not counted)
    """
    priority = priority_for(reason)
    if pending is None:
        pending = pending_by_pair(session)
    if limits is None:
        limits = AttemptLimits(session)

    created = 0
    now = datetime.now()
    for target in targets:
        key = (target.student_id, target.listing_id)
        item = pending.get(key)
        if item is not None:
            _merge(item, target, priority, reason, limits)
            continue
        item = _new_item(target, priority, reason, limits, now)
        session.add(item)
        pending[key] = item
        created += 1
    session.flush()
    return created


def _live(query, tenant_id: Optional[str] = None):
    query = query.filter(
        RecomputationQueueItem.processed_at.is_(None),
        RecomputationQueueItem.attempts < RecomputationQueueItem.max_attempts,
    )
    if tenant_id is not None:
        query = query.filter(RecomputationQueueItem.tenant_id == tenant_id)
    return query


def dequeue_batch(
    session: Session,
    batch_size: int,
    tenant_id: Optional[str] = None,
    exclude_ids: Optional[Set[int]] = None,
) -> List[RecomputationQueueItem]:
    """
    Next pending items: priority desc, queued_at asc, id asc.

    Items that have used up their max_attempts stay pending but are never
    returned. tenant_id restricts the batch to that tenant's students.
    """
    query = _live(session.query(RecomputationQueueItem), tenant_id)
    if exclude_ids:
        query = query.filter(RecomputationQueueItem.id.notin_(exclude_ids))
    return (
        query.order_by(
            RecomputationQueueItem.priority.desc(),
            RecomputationQueueItem.queued_at.asc(),
            RecomputationQueueItem.id.asc(),
        )
        .limit(batch_size)
        .all()
    )


def mark_processed(session: Session, item: RecomputationQueueItem) -> None:
    item.processed_at = datetime.now()
    item.attempts = (item.attempts or 0) + 1
    item.last_error = None


def mark_failed(session: Session, item_id: int, error: str) -> Optional[RecomputationQueueItem]:
    """Record a failed attempt; the item stays pending."""
    item = session.get(RecomputationQueueItem, item_id)
    if item is None or item.processed_at is not None:
        return None
    item.attempts = (item.attempts or 0) + 1
    item.last_error = error[:MAX_ERROR_LENGTH]
    session.flush()
    return item


def retire_pending(session: Session, student_id: str, listing_id: str) -> int:
    """Mark every pending item for a pair processed. Returns the count."""
    items = (
        session.query(RecomputationQueueItem)
        .filter(
            RecomputationQueueItem.student_id == student_id,
            RecomputationQueueItem.listing_id == listing_id,
            RecomputationQueueItem.processed_at.is_(None),
        )
        .all()
    )
    now = datetime.now()
    for item in items:
        item.processed_at = now
    session.flush()
    return len(items)


def pending_count(session: Session, live_only: bool = False, tenant_id: Optional[str] = None) -> int:
    """Pending items; live_only drops those that exhausted their attempts."""
    query = session.query(RecomputationQueueItem)
    if live_only:
        return _live(query, tenant_id).count()
    query = query.filter(RecomputationQueueItem.processed_at.is_(None))
    if tenant_id is not None:
        query = query.filter(RecomputationQueueItem.tenant_id == tenant_id)
    return query.count()


def pending_items(session: Session, student_id: Optional[str] = None,
                  listing_id: Optional[str] = None) -> List[RecomputationQueueItem]:
    query = session.query(RecomputationQueueItem).filter(RecomputationQueueItem.processed_at.is_(None))
    if student_id is not None:
        query = query.filter(RecomputationQueueItem.student_id == student_id)
    if listing_id is not None:
        query = query.filter(RecomputationQueueItem.listing_id == listing_id)
    return query.order_by(RecomputationQueueItem.id).all()
