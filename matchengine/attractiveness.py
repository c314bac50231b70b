"""
Attractiveness Aggregator: how appealing a listing (or a company's listings)
is to the student population.

For each student the listing is visible to, the Skills and Network signals
are evaluated from the listing's side and blended by their configured
weights into an affinity score. Reach is the share of that population whose
affinity clears the score floor. Listing appeal (pay, flexibility, company
reputation, open seats) is mixed in at a smaller weight. Listings whose
application deadline has passed are reported but left out of company
aggregates.

Read-only: nothing here writes to the Score Store.
"""

import re
import statistics
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Set

from .config import MatchEngineConfig
from .errors import NotFoundError
from .logger import get_logger
from .models import CompanyProfile, Listing, MatchContext
from .scorer import score_signals
from .signals.network import network_tier
from .sources import ProfileSource

HIGH_AFFINITY = 75.0
REACH_WEIGHT = 0.7
APPEAL_WEIGHT = 0.3

APPEAL_WEIGHTS = {
    "compensation": 0.35,
    "flexibility": 0.25,
    "reputation": 0.25,
    "capacity": 0.15,
}

AFFINITY_SIGNALS = ("skills", "network")

logger = get_logger()


@dataclass
class ListingAttractiveness:
    listing_id: str
    company_id: str
    population: int
    above_floor: int
    high_affinity: int
    mean_affinity: float
    reach_pct: float
    appeal: float
    appeal_breakdown: Dict[str, float]
    attractiveness_score: float
    accepting_applications: bool = True
    high_affinity_students: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "listing_id": self.listing_id,
            "company_id": self.company_id,
            "population": self.population,
            "above_floor": self.above_floor,
            "high_affinity": self.high_affinity,
            "mean_affinity": self.mean_affinity,
            "reach_pct": self.reach_pct,
            "appeal": self.appeal,
            "appeal_breakdown": dict(self.appeal_breakdown),
            "attractiveness_score": self.attractiveness_score,
            "accepting_applications": self.accepting_applications,
        }


@dataclass
class CompanyAttractiveness:
    company_id: str
    listing_count: int
    open_listing_count: int
    mean_attractiveness: float
    median_attractiveness: float
    high_affinity_students: int
    listings: List[ListingAttractiveness] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "company_id": self.company_id,
            "listing_count": self.listing_count,
            "open_listing_count": self.open_listing_count,
            "mean_attractiveness": self.mean_attractiveness,
            "median_attractiveness": self.median_attractiveness,
            "high_affinity_students": self.high_affinity_students,
            "listings": [l.to_dict() for l in self.listings],
        }


def compensation_score(listing: Listing) -> float:
    if not listing.is_paid:
        return 20.0
    text = (listing.compensation or "").strip().lower()
    if not text:
        return 40.0
    if "negotiable" in text or "competitive" in text:
        return 70.0

    match = re.search(r"\$?(\d+)", text)
    if not match:
        return 55.0
    amount = int(match.group(1))
    hourly = any(marker in text for marker in ("/hr", "per hour", "hourly"))
    rate = amount if hourly else amount / 160.0  # monthly figure
    if rate >= 25:
        return 95.0
    if rate >= 18:
        return 80.0
    if rate >= 12:
        return 65.0
    return 45.0


def flexibility_score(listing: Listing) -> float:
    score = 50.0
    if listing.remote_allowed:
        score += 25.0
    hours = listing.hours_per_week or 20
    if hours <= 10:
        score += 20.0
    elif hours <= 20:
        score += 10.0
    else:
        score -= 5.0
    return min(100.0, max(0.0, score))


def reputation_score(company: Optional[CompanyProfile]) -> float:
    if company is None or company.rating_count <= 0 or company.rating_average is None:
        return 50.0
    rating = company.rating_average
    if rating >= 4.5:
        score = 100.0
    elif rating >= 4.0:
        score = 85.0
    elif rating >= 3.5:
        score = 70.0
    elif rating >= 3.0:
        score = 50.0
    else:
        score = 25.0
    # Few ratings: pull toward neutral
    if company.rating_count < 5:
        score = score * 0.8 + 50.0 * 0.2
    return score


def capacity_score(listing: Listing) -> float:
    if listing.max_students <= 0:
        return 0.0
    open_seats = max(0, listing.max_students - listing.students_accepted)
    return 100.0 * open_seats / listing.max_students


def listing_appeal(listing: Listing, company: Optional[CompanyProfile]) -> Dict[str, float]:
    """Appeal components plus their weighted total under "appeal"."""
    parts = {
        "compensation": compensation_score(listing),
        "flexibility": flexibility_score(listing),
        "reputation": reputation_score(company),
        "capacity": capacity_score(listing),
    }
    parts["appeal"] = round(sum(APPEAL_WEIGHTS[k] * parts[k] for k in APPEAL_WEIGHTS), 2)
    return parts


def accepting_applications(listing: Listing, as_of: date) -> bool:
    return listing.application_deadline is None or listing.application_deadline >= as_of


def affinity(values: Dict[str, float], weights: Dict[str, float]) -> float:
    """Weight-normalized blend of the affinity signals."""
    total_weight = sum(weights[name] for name in AFFINITY_SIGNALS)
    if total_weight <= 0:
        return sum(values[name] for name in AFFINITY_SIGNALS) / len(AFFINITY_SIGNALS)
    return sum(weights[name] * values[name] for name in AFFINITY_SIGNALS) / total_weight


def compute_attractiveness_score(
    source: ProfileSource,
    listing_id: str,
    config: MatchEngineConfig,
    as_of: Optional[date] = None,
) -> ListingAttractiveness:
    """
    Evaluate one listing against every student it is visible to.

    Args:
        source: Profile/listing reader
        listing_id: Listing to evaluate
        config: Resolved config of the listing's tenant (weights, floor,
            feature toggles)
        as_of: Day the application deadline is checked against (default: today)

    Raises:
        NotFoundError: Unknown listing
    """
    listing = source.get_listing(listing_id)
    if listing is None:
        raise NotFoundError("listing", listing_id)
    company = source.get_company(listing.company_id)

    partners_by_tenant: Dict[Optional[str], frozenset] = {}
    population = 0
    above_floor = 0
    affinities: List[float] = []
    high: List[str] = []

    for student in source.students():
        if student.tenant_id not in partners_by_tenant:
            partners_by_tenant[student.tenant_id] = source.partner_tenants(student.tenant_id)
        context = MatchContext(
            transfers=source.transfers(),
            company=company,
            partner_tenants=partners_by_tenant[student.tenant_id],
            features=dict(config.features),
        )
        _, visible = network_tier(student.tenant_id, listing, context)
        if not visible:
            continue

        population += 1
        signals = score_signals(student, listing, context, names=AFFINITY_SIGNALS)
        value = affinity({name: s.value for name, s in signals.items()}, config.weights)
        affinities.append(value)
        if value >= config.score_floor:
            above_floor += 1
        if value >= HIGH_AFFINITY:
            high.append(student.id)

    appeal = listing_appeal(listing, company)
    reach_pct = round(100.0 * above_floor / population, 2) if population else 0.0
    score = round(REACH_WEIGHT * reach_pct + APPEAL_WEIGHT * appeal["appeal"], 2)

    result = ListingAttractiveness(
        listing_id=listing.id,
        company_id=listing.company_id,
        population=population,
        above_floor=above_floor,
        high_affinity=len(high),
        mean_affinity=round(statistics.mean(affinities), 2) if affinities else 0.0,
        reach_pct=reach_pct,
        appeal=appeal["appeal"],
        appeal_breakdown={k: v for k, v in appeal.items() if k != "appeal"},
        attractiveness_score=min(100.0, max(0.0, score)),
        accepting_applications=accepting_applications(listing, as_of or date.today()),
        high_affinity_students=sorted(high),
    )
    logger.debug("Attractiveness computed", **result.to_dict())
    return result


def get_company_attractiveness(
    source: ProfileSource,
    company_id: str,
    config: MatchEngineConfig,
    as_of: Optional[date] = None,
) -> CompanyAttractiveness:
    """
    Aggregate attractiveness across a company's listings.

    Every listing is reported; mean, median and distinct high-affinity
    students only count listings still accepting applications on as_of.

    Raises:
        NotFoundError: Unknown company
    """
    company = source.get_company(company_id)
    if company is None:
        raise NotFoundError("company", company_id)
    as_of = as_of or date.today()

    listings = [
        compute_attractiveness_score(source, listing.id, config, as_of=as_of)
        for listing in source.company_listings(company_id)
    ]
    listings.sort(key=lambda l: l.attractiveness_score, reverse=True)
    open_listings = [l for l in listings if l.accepting_applications]
    scores = [l.attractiveness_score for l in open_listings]
    distinct: Set[str] = {sid for l in open_listings for sid in l.high_affinity_students}

    return CompanyAttractiveness(
        company_id=company_id,
        listing_count=len(listings),
        open_listing_count=len(open_listings),
        mean_attractiveness=round(statistics.mean(scores), 2) if scores else 0.0,
        median_attractiveness=round(statistics.median(scores), 2) if scores else 0.0,
        high_affinity_students=len(distinct),
        listings=listings,
    )
