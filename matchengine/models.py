"""
Domain records loaded from the profile, listing, schedule and rating stores.

These are plain read-only snapshots. The engine never mutates them; the
collaborator stores own the data and call the invalidation tracker when it
changes.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, FrozenSet, List, Optional


SIGNAL_NAMES = ("temporal", "skills", "sustainability", "growth", "trust", "network")

IMPORTANCE_WEIGHTS = {
    "required": 3.0,
    "preferred": 2.0,
    "nice_to_have": 1.0,
}

VISIBILITY_SCOPES = ("tenant", "network", "open")


@dataclass(frozen=True)
class StudentSkill:
    name: str
    category: str = "general"
    proficiency: int = 3  # 1-5


@dataclass(frozen=True)
class ScheduleEntry:
    """Manually entered availability.

    kind="available" declares hours the student can give during the span.
    kind="blocked" removes hours_per_week during the span (None = whole week).
    """
    kind: str
    start: date
    end: date
    hours_per_week: Optional[float] = None
    label: str = ""


@dataclass(frozen=True)
class Engagement:
    listing_id: str
    status: str  # completed, abandoned, active
    category: Optional[str] = None


@dataclass(frozen=True)
class StudentProfile:
    id: str
    tenant_id: Optional[str] = None
    skills: List[StudentSkill] = field(default_factory=list)
    schedule: List[ScheduleEntry] = field(default_factory=list)
    engagements: List[Engagement] = field(default_factory=list)
    rating_average: Optional[float] = None
    rating_count: int = 0
    weekly_capacity_hours: float = 40.0
    sport: Optional[str] = None

    def skill_map(self) -> Dict[str, StudentSkill]:
        return {s.name.strip().lower(): s for s in self.skills}


@dataclass(frozen=True)
class ListingSkill:
    name: str
    importance: str = "required"
    min_proficiency: int = 1


@dataclass(frozen=True)
class Listing:
    id: str
    company_id: str
    tenant_id: Optional[str] = None
    visibility: str = "tenant"
    title: str = ""
    category: Optional[str] = None
    required_skills: List[ListingSkill] = field(default_factory=list)
    start: Optional[date] = None
    end: Optional[date] = None
    hours_per_week: Optional[float] = None
    application_deadline: Optional[date] = None
    max_students: int = 1
    students_accepted: int = 0
    difficulty: Optional[float] = None  # 1-5
    is_paid: bool = False
    compensation: Optional[str] = None
    remote_allowed: bool = False


@dataclass(frozen=True)
class CompanyProfile:
    id: str
    tenant_id: Optional[str] = None
    name: str = ""
    rating_average: Optional[float] = None
    rating_count: int = 0


@dataclass(frozen=True)
class AcademicCalendarEntry:
    tenant_id: str
    term_name: str
    start: date
    end: date
    term_type: str = "semester"  # semester, quarter, break, summer
    priority_level: int = 3  # 1 (break) - 5 (finals)

    def covers(self, day: date) -> bool:
        return self.start <= day <= self.end


@dataclass(frozen=True)
class SportSeason:
    sport: str
    season_type: str
    start_month: int
    end_month: int
    practice_hours_per_week: float = 0.0
    competition_hours_per_week: float = 0.0
    travel_days_per_week: float = 0.0
    intensity_level: int = 3

    def covers(self, day: date) -> bool:
        return month_in_range(day.month, self.start_month, self.end_month)


@dataclass(frozen=True)
class AthleticTransfer:
    sport: str
    professional_skill: str
    transfer_strength: float = 0.5
    skill_category: str = "general"


@dataclass(frozen=True)
class MatchContext:
    """Everything a signal needs beyond the student and listing.

    Built once per computation by the engine, including the resolved tenant
    feature toggles, so signals stay pure.
    """
    calendar: List[AcademicCalendarEntry] = field(default_factory=list)
    seasons: List[SportSeason] = field(default_factory=list)
    transfers: List[AthleticTransfer] = field(default_factory=list)
    company: Optional[CompanyProfile] = None
    partner_tenants: FrozenSet[str] = frozenset()
    features: Dict[str, bool] = field(default_factory=dict)

    def feature(self, name: str) -> bool:
        return self.features.get(name, True)


def month_in_range(month: int, start: int, end: int) -> bool:
    """Check a 1-indexed month against a range that may wrap the year end."""
    if start <= end:
        return start <= month <= end
    return month >= start or month <= end
