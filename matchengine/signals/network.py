"""
Network affinity: institutional closeness between the student's tenant and
the listing's owning tenant. Also decides whether the pair is visible at all.
"""

from typing import Optional, Tuple

from ..models import Listing, MatchContext, StudentProfile
from .common import NetworkEvidence, SignalResult

TIER_SCORES = {
    "same_tenant": 100.0,
    "partner": 70.0,
    "open": 40.0,
    "hidden": 0.0,
}


def network_tier(student_tenant: Optional[str], listing: Listing, context: MatchContext) -> Tuple[str, bool]:
    """Classify the pair.

    Returns:
        Tuple of (tier, visible)
    """
    if student_tenant is not None and student_tenant == listing.tenant_id:
        return "same_tenant", True
    partnered = (
        student_tenant is not None
        and listing.tenant_id is not None
        and listing.tenant_id in context.partner_tenants
    )
    if partnered and listing.visibility in ("network", "open"):
        return "partner", True
    if listing.visibility == "open":
        return "open", True
    return "hidden", False


def score(student: StudentProfile, listing: Listing, context: MatchContext) -> SignalResult:
    tier, visible = network_tier(student.tenant_id, listing, context)
    evidence = NetworkEvidence(
        tier=tier,
        student_tenant=student.tenant_id,
        listing_tenant=listing.tenant_id,
        visibility=listing.visibility,
        visible=visible,
    )
    return SignalResult(name="network", value=TIER_SCORES[tier], evidence=evidence)
