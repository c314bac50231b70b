"""
Queue worker and synchronous recomputation.

drain_queue runs in the caller's thread. Every item gets its own
transaction: the recomputed score and the processed mark commit together, and
a failure rolls back only that item, bumps its attempts, records the error
and moves on. Items already tried in the current drain are not picked up
again until the next one. Each item stops being retried once it has used up
the max_attempts of the tenant whose config scores it.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from .config import resolve_config
from .database import RecomputationQueueItem, session_scope
from .env import get_batch_size
from .logger import get_logger
from .recompute_queue import dequeue_batch, mark_failed, mark_processed, pending_count, retire_pending
from .retry import retry_transient
from .scorer import compute_match
from .sources import ProfileSource
from .store import MatchResult

logger = get_logger()


@dataclass
class DrainReport:
    processed: int = 0
    failed: int = 0
    batches: int = 0
    remaining: int = 0
    unrecorded: int = 0  # failures whose attempt could not be written back
    errors: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "failed": self.failed,
            "batches": self.batches,
            "remaining": self.remaining,
            "unrecorded": self.unrecorded,
            "errors": list(self.errors),
        }


@retry_transient
def _process_item(db_path: Path, source: ProfileSource, item_id: int) -> Optional[MatchResult]:
    with session_scope(db_path, immediate=True) as session:
        item = session.get(RecomputationQueueItem, item_id)
        if item is None or item.processed_at is not None:
            return None
        result = compute_match(
            session,
            source,
            item.student_id,
            item.listing_id,
            tenant_id=item.config_tenant_id,
            force_recompute=True,
            reason=item.reason,
        )
        mark_processed(session, item)
        return result


@retry_transient
def _record_failure(db_path: Path, item_id: int, error: str) -> None:
    with session_scope(db_path, immediate=True) as session:
        mark_failed(session, item_id, error)


def _batch_size(db_path: Path, tenant_id: Optional[str]) -> int:
    if tenant_id is None:
        return get_batch_size()
    with session_scope(db_path) as session:
        return resolve_config(session, tenant_id).batch_size


def drain_queue(
    db_path: Path,
    source: ProfileSource,
    batch_size: Optional[int] = None,
    max_batches: Optional[int] = None,
    tenant_id: Optional[str] = None,
) -> DrainReport:
    """
    Process pending queue items in priority order.

    Args:
        db_path: Path to SQLite database file
        source: Profile/listing reader used for recomputation
        batch_size: Items per batch (default: the tenant's batch_size when
            tenant_id is given, otherwise MATCHENGINE_BATCH_SIZE)
        max_batches: Stop after this many batches (default: until empty)
        tenant_id: Only drain items for this tenant's students

    Returns:
        DrainReport with processed/failed counts and per-item errors
    """
    batch_size = batch_size or _batch_size(db_path, tenant_id)
    report = DrainReport()
    attempted: Set[int] = set()

    while max_batches is None or report.batches < max_batches:
        with session_scope(db_path) as session:
            batch = [
                (item.id, item.student_id, item.listing_id, item.reason)
                for item in dequeue_batch(session, batch_size, tenant_id=tenant_id, exclude_ids=attempted)
            ]
        if not batch:
            break
        report.batches += 1

        for item_id, student_id, listing_id, reason in batch:
            attempted.add(item_id)
            try:
                _process_item(db_path, source, item_id)
            except Exception as e:
                error = f"{type(e).__name__}: {e}"
                report.failed += 1
                report.errors.append({
                    "item_id": item_id,
                    "student_id": student_id,
                    "listing_id": listing_id,
                    "error": error,
                })
                logger.record_queue_failure(type(e).__name__)
                logger.error(
                    "Recomputation failed, item stays queued",
                    item_id=item_id,
                    student_id=student_id,
                    listing_id=listing_id,
                    reason=reason,
                    error=error,
                )
                try:
                    _record_failure(db_path, item_id, error)
                except Exception as record_error:
                    report.unrecorded += 1
                    logger.record_queue_failure(type(record_error).__name__)
                    logger.error(
                        "Could not record failed attempt",
                        item_id=item_id,
                        error=f"{type(record_error).__name__}: {record_error}",
                    )
            else:
                report.processed += 1
                logger.record_queue_success()

    with session_scope(db_path) as session:
        report.remaining = pending_count(session, live_only=True, tenant_id=tenant_id)

    logger.info(
        "Queue drained",
        tenant_id=tenant_id,
        processed=report.processed,
        failed=report.failed,
        unrecorded=report.unrecorded,
        batches=report.batches,
        remaining=report.remaining,
    )
    return report


@retry_transient
def recompute_now(
    db_path: Path,
    source: ProfileSource,
    student_id: str,
    listing_id: str,
    tenant_id: Optional[str] = None,
) -> MatchResult:
    """
    Recompute one pair immediately, bypassing the cache, and retire any
    pending queue items for it in the same transaction.

    Raises:
        NotFoundError: Unknown student or listing
    """
    with session_scope(db_path, immediate=True) as session:
        result = compute_match(
            session,
            source,
            student_id,
            listing_id,
            tenant_id=tenant_id,
            force_recompute=True,
            reason="manual",
        )
        retired = retire_pending(session, student_id, listing_id)

    logger.info(
        "Pair recomputed",
        student_id=student_id,
        listing_id=listing_id,
        score=result.score,
        retired_queue_items=retired,
    )
    return result
