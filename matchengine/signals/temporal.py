"""
Temporal fit: effective weekly availability overlapped with the listing window.

Each week of the listing window is scored as min(1, available / required),
where available hours already have academic-term load, in-season sport load
and manual blocks netted out. The signal is the mean over all weeks, so no
overlap scores 0 and full capacity across the whole window scores 100.
"""

from ..availability import availability_windows
from ..models import Listing, MatchContext, StudentProfile
from .common import SignalResult, TemporalEvidence, clamp_score, neutral_result

DEFAULT_REQUIRED_HOURS = 15.0


def score(student: StudentProfile, listing: Listing, context: MatchContext) -> SignalResult:
    if listing.start is None or listing.end is None:
        return neutral_result("temporal", "listing has no time window")

    weeks = availability_windows(student, listing.start, listing.end, context)
    if not weeks:
        return neutral_result("temporal", "listing window ends before it starts")

    required = listing.hours_per_week or DEFAULT_REQUIRED_HOURS
    fractions = [min(1.0, w.available_hours / required) for w in weeks]
    value = clamp_score(round(100.0 * sum(fractions) / len(fractions), 2))

    available = [w.available_hours for w in weeks]
    constraints = sorted({c for w in weeks for c in w.constraints})

    evidence = TemporalEvidence(
        weeks_evaluated=len(weeks),
        required_hours=float(required),
        mean_available_hours=round(sum(available) / len(available), 1),
        min_available_hours=min(available),
        in_season_weeks=sum(1 for w in weeks if w.in_season),
        constrained_weeks=sum(1 for w in weeks if w.constraints),
        constraints=constraints,
    )
    return SignalResult(name="temporal", value=value, evidence=evidence)
