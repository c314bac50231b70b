"""
Sustainability: likelihood the student follows through on the engagement.

Blends the smoothed completed/abandoned ratio of past engagements with a load
score from the current number of active engagements and the weekly hours the
new listing would add on top of them. While a sport season is active at the
listing start, the heaviest season's intensity makes up a fifth of the load
score.
"""

from ..availability import active_seasons, season_load_hours
from ..models import Listing, MatchContext, StudentProfile
from .common import SignalResult, SustainabilityEvidence, clamp_score

HOURS_PER_ACTIVE_ENGAGEMENT = 10.0
SUSTAINABLE_WEEKLY_HOURS = 40.0
DEFAULT_LISTING_HOURS = 15.0
INTENSITY_SHARE = 0.2


def concurrency_score(active: int) -> float:
    if active <= 0:
        return 100.0
    if active == 1:
        return 85.0
    if active == 2:
        return 60.0
    if active == 3:
        return 35.0
    return max(10.0, 35.0 - (active - 3) * 15.0)


def workload_score(weekly_hours: float) -> float:
    if weekly_hours <= SUSTAINABLE_WEEKLY_HOURS:
        return 100.0
    return max(10.0, 100.0 - (weekly_hours - SUSTAINABLE_WEEKLY_HOURS) * 3.0)


def intensity_score(level: int) -> float:
    """Season intensity 1-5 mapped to how much room it leaves for a project."""
    if level <= 2:
        return 90.0
    if level <= 3:
        return 70.0
    if level <= 4:
        return 45.0
    return 25.0


def score(student: StudentProfile, listing: Listing, context: MatchContext) -> SignalResult:
    completed = sum(1 for e in student.engagements if e.status == "completed")
    abandoned = sum(1 for e in student.engagements if e.status == "abandoned")
    active = sum(1 for e in student.engagements if e.status == "active")

    follow_through = 100.0 * (completed + 1) / (completed + abandoned + 2)

    in_season = []
    if listing.start is not None and context.feature("sport_seasons"):
        in_season = active_seasons(context.seasons, listing.start)
    sport_hours = sum(season_load_hours(s) for s in in_season)
    listing_hours = listing.hours_per_week or DEFAULT_LISTING_HOURS
    weekly_hours = active * HOURS_PER_ACTIVE_ENGAGEMENT + listing_hours + sport_hours

    load = min(concurrency_score(active), workload_score(weekly_hours))
    intensity = None
    if in_season:
        intensity = intensity_score(max(s.intensity_level for s in in_season))
        load = round((1 - INTENSITY_SHARE) * load + INTENSITY_SHARE * intensity, 2)
    value = clamp_score(round(0.6 * follow_through + 0.4 * load, 2))

    evidence = SustainabilityEvidence(
        completed=completed,
        abandoned=abandoned,
        active=active,
        follow_through=round(follow_through, 2),
        load_score=load,
        weekly_hours=round(weekly_hours, 1),
        intensity_score=intensity,
    )
    defaulted = completed + abandoned == 0
    if defaulted:
        evidence.reason = "no finished engagements; follow-through is neutral"
    return SignalResult(name="sustainability", value=value, evidence=evidence, defaulted=defaulted)
