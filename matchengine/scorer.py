"""
Composite Scorer: runs the six signals and writes the weighted composite to
the Score Store.

composite = sum(weight_i * signal_i), rounded to the tenant's precision and
clamped to [0, 100]. Sub-floor results are stored with below_floor set so
they drop out of default ranking without being lost.
"""

import time
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy.orm import Session

from .config import MatchEngineConfig, resolve_config
from .errors import ComputationError, NotFoundError
from .logger import get_logger
from .models import SIGNAL_NAMES, Listing, MatchContext, StudentProfile
from .signals import CALCULATORS, SignalResult, neutral_result
from .signals.common import clamp_score
from .signals.network import network_tier
from .sources import ProfileSource
from .store import MatchResult, get_cached, row_to_result, upsert_score

ENGINE_VERSION = 1

logger = get_logger()


def build_context(
    source: ProfileSource,
    student: StudentProfile,
    listing: Listing,
    config: MatchEngineConfig,
) -> MatchContext:
    return MatchContext(
        calendar=source.calendar_for(student.tenant_id),
        seasons=source.seasons_for(student),
        transfers=source.transfers(),
        company=source.get_company(listing.company_id),
        partner_tenants=source.partner_tenants(student.tenant_id),
        features=dict(config.features),
    )


def score_signals(
    student: StudentProfile,
    listing: Listing,
    context: MatchContext,
    names=SIGNAL_NAMES,
) -> Dict[str, SignalResult]:
    """Run the named calculators; one that raises degrades to its neutral value."""
    results = {}
    for name in names:
        try:
            results[name] = CALCULATORS[name](student, listing, context)
        except Exception as e:
            error = ComputationError(name, str(e))
            logger.warning(
                "Signal computation failed, using neutral value",
                signal=name,
                student_id=student.id,
                listing_id=listing.id,
                error=str(error),
            )
            results[name] = neutral_result(name, str(error))
    return results


def composite_score(signals: Dict[str, SignalResult], weights: Dict[str, float], precision: int) -> float:
    total = sum(weights[name] * signals[name].value for name in SIGNAL_NAMES)
    return clamp_score(round(total, precision))


def evaluate(
    student: StudentProfile,
    listing: Listing,
    context: MatchContext,
    config: MatchEngineConfig,
) -> MatchResult:
    """Score one pair without touching the database."""
    started = time.perf_counter()
    signals = score_signals(student, listing, context)
    score = composite_score(signals, config.weights, config.precision)
    _, visible = network_tier(student.tenant_id, listing, context)
    elapsed_ms = int((time.perf_counter() - started) * 1000)

    return MatchResult(
        student_id=student.id,
        listing_id=listing.id,
        tenant_id=student.tenant_id,
        score=score,
        signals=signals,
        computed_at=datetime.now(),
        version=ENGINE_VERSION,
        config_version=config.version,
        below_floor=score < config.score_floor,
        visible=visible,
        computation_time_ms=elapsed_ms,
        defaulted_signals=[name for name, s in signals.items() if s.defaulted],
        config_tenant_id=config.tenant_id,
    )


def load_pair(source: ProfileSource, student_id: str, listing_id: str):
    student = source.get_student(student_id)
    if student is None:
        raise NotFoundError("student", student_id)
    listing = source.get_listing(listing_id)
    if listing is None:
        raise NotFoundError("listing", listing_id)
    return student, listing


def compute_match(
    session: Session,
    source: ProfileSource,
    student_id: str,
    listing_id: str,
    tenant_id: Optional[str] = None,
    force_recompute: bool = False,
    reason: str = "recomputation",
) -> MatchResult:
    """
    Return the score for a pair, from cache when it is still valid.

    A cached row is reused only if it is not stale and was computed by this
    engine version under the requested tenant's current config version.
    Anything else is recomputed and upserted in the caller's transaction.

    Args:
        session: Open SQLAlchemy session (caller commits)
        source: Profile/listing reader
        student_id: Student to score
        listing_id: Listing to score against
        tenant_id: Tenant whose config applies (default: the student's)
        force_recompute: Ignore any cached row
        reason: Recorded on the history row if the composite moves

    Raises:
        NotFoundError: Unknown student or listing; nothing is written
    """
    cached = get_cached(session, student_id, listing_id)

    if cached is not None and not force_recompute and not cached.is_stale:
        config_tenant = tenant_id if tenant_id is not None else cached.tenant_id
        config = resolve_config(session, config_tenant)
        if (
            cached.config_tenant_id == config_tenant
            and cached.config_version == config.version
            and cached.engine_version == ENGINE_VERSION
        ):
            logger.record_cache_hit()
            logger.debug("Cache hit", student_id=student_id, listing_id=listing_id)
            return row_to_result(cached)

    student, listing = load_pair(source, student_id, listing_id)
    config = resolve_config(session, tenant_id if tenant_id is not None else student.tenant_id)
    context = build_context(source, student, listing, config)

    result = evaluate(student, listing, context, config)
    status = upsert_score(session, result, reason=reason)

    logger.record_computation(result.defaulted_signals)
    logger.debug(
        "Match computed",
        student_id=student_id,
        listing_id=listing_id,
        score=result.score,
        status=status,
        config_version=config.version,
        ms=result.computation_time_ms,
    )
    return result
