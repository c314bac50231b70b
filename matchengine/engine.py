"""
MatchEngine: the synchronous public surface of the engine.

Every call takes its tenant and caller context as arguments, runs in its own
transaction against the score database, and returns a structured result or
raises a MatchEngineError subclass.
"""

from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import attractiveness, invalidation, store, worker
from .config import MatchEngineConfig, resolve_config
from .config import update_config as _update_config
from .database import init_database, session_scope
from .errors import NotFoundError
from .logger import get_logger
from .retry import retry_transient
from .scorer import compute_match as _compute_match
from .sources import ProfileSource

logger = get_logger()


class MatchEngine:
    def __init__(self, source: ProfileSource, db_path: Path, create_tables: bool = True):
        self.source = source
        self.db_path = Path(db_path)
        if create_tables:
            init_database(self.db_path)

    # Scoring

    @retry_transient
    def compute_match(
        self,
        student_id: str,
        listing_id: str,
        tenant_id: Optional[str] = None,
        force_recompute: bool = False,
    ) -> store.MatchResult:
        with session_scope(self.db_path, immediate=True) as session:
            return _compute_match(
                session,
                self.source,
                student_id,
                listing_id,
                tenant_id=tenant_id,
                force_recompute=force_recompute,
            )

    def recompute_now(self, student_id: str, listing_id: str,
                      tenant_id: Optional[str] = None) -> store.MatchResult:
        return worker.recompute_now(self.db_path, self.source, student_id, listing_id, tenant_id=tenant_id)

    # Ranking

    def _tenant_of_student(self, student_id: str) -> Optional[str]:
        student = self.source.get_student(student_id)
        return student.tenant_id if student else None

    def _tenant_of_listing(self, listing_id: str) -> Optional[str]:
        listing = self.source.get_listing(listing_id)
        return listing.tenant_id if listing else None

    def get_student_matches(
        self,
        student_id: str,
        limit: Optional[int] = None,
        min_score: Optional[float] = None,
        tenant_id: Optional[str] = None,
    ) -> List[store.MatchResult]:
        config_tenant = tenant_id if tenant_id is not None else self._tenant_of_student(student_id)
        with session_scope(self.db_path) as session:
            config = resolve_config(session, config_tenant)
            return store.get_student_matches(session, config, student_id, limit, min_score, tenant_id)

    def get_listing_matches(
        self,
        listing_id: str,
        limit: Optional[int] = None,
        min_score: Optional[float] = None,
        tenant_id: Optional[str] = None,
    ) -> List[store.MatchResult]:
        config_tenant = tenant_id if tenant_id is not None else self._tenant_of_listing(listing_id)
        with session_scope(self.db_path) as session:
            config = resolve_config(session, config_tenant)
            return store.get_listing_matches(session, config, listing_id, limit, min_score, tenant_id)

    # Invalidation and queue

    @retry_transient
    def invalidate_student_scores(self, student_id: str, reason: str) -> invalidation.InvalidationReport:
        with session_scope(self.db_path, immediate=True) as session:
            return invalidation.invalidate_student_scores(session, student_id, reason)

    @retry_transient
    def invalidate_listing_scores(self, listing_id: str, reason: str) -> invalidation.InvalidationReport:
        with session_scope(self.db_path, immediate=True) as session:
            return invalidation.invalidate_listing_scores(session, listing_id, reason)

    @retry_transient
    def recompute_all(self, reason: str = "admin_global_recompute") -> invalidation.InvalidationReport:
        with session_scope(self.db_path, immediate=True) as session:
            return invalidation.recompute_all(session, reason)

    def drain_queue(self, batch_size: Optional[int] = None, max_batches: Optional[int] = None,
                    tenant_id: Optional[str] = None) -> worker.DrainReport:
        return worker.drain_queue(self.db_path, self.source, batch_size=batch_size,
                                  max_batches=max_batches, tenant_id=tenant_id)

    # Attractiveness

    def _config_for(self, tenant_id: Optional[str]) -> MatchEngineConfig:
        with session_scope(self.db_path) as session:
            return resolve_config(session, tenant_id)

    def compute_attractiveness_score(self, listing_id: str,
                                     as_of: Optional[date] = None) -> attractiveness.ListingAttractiveness:
        listing = self.source.get_listing(listing_id)
        if listing is None:
            raise NotFoundError("listing", listing_id)
        config = self._config_for(listing.tenant_id)
        return attractiveness.compute_attractiveness_score(self.source, listing_id, config, as_of=as_of)

    def get_company_attractiveness(self, company_id: str,
                                   as_of: Optional[date] = None) -> attractiveness.CompanyAttractiveness:
        company = self.source.get_company(company_id)
        if company is None:
            raise NotFoundError("company", company_id)
        config = self._config_for(company.tenant_id)
        return attractiveness.get_company_attractiveness(self.source, company_id, config, as_of=as_of)

    # Configuration

    def get_config(self, tenant_id: Optional[str] = None) -> MatchEngineConfig:
        return self._config_for(tenant_id)

    @retry_transient
    def update_config(self, tenant_id: str, **changes: Any) -> MatchEngineConfig:
        """
        Validate and store a tenant override, then stale and queue every row
        computed under that tenant, all in one transaction.

        Raises:
            ValidationError: With every problem found; nothing is written
        """
        with session_scope(self.db_path, immediate=True) as session:
            config = _update_config(session, tenant_id, changes)
            report = invalidation.invalidate_tenant_scores(session, tenant_id, "config_change")
        logger.info(
            "Config updated",
            tenant_id=tenant_id,
            version=config.version,
            fields=sorted(changes),
            rows_staled=report.rows_staled,
        )
        return config

    def metrics(self) -> Dict[str, Any]:
        return logger.get_metrics()
