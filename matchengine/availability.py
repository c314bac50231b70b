"""
Calendar and sport-season context providers.

Turns a student's capacity, the tenant academic calendar, the student's sport
seasons and manual schedule entries into effective available hours per week.
The temporal and sustainability signals are built on top of this.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import List, Optional, Tuple

from .models import (
    AcademicCalendarEntry,
    MatchContext,
    ScheduleEntry,
    SportSeason,
    StudentProfile,
)

# Hours per week consumed by coursework at each academic priority level
ACADEMIC_LOAD_HOURS = {1: 0.0, 2: 5.0, 3: 10.0, 4: 15.0, 5: 20.0}

# A travel day costs half a working day of availability
TRAVEL_DAY_HOURS = 4.0

MAX_WEEKS = 104


@dataclass
class WeeklyAvailability:
    week_start: date
    base_hours: float
    academic_hours: float = 0.0
    season_hours: float = 0.0
    blocked_hours: float = 0.0
    constraints: List[str] = field(default_factory=list)

    @property
    def available_hours(self) -> float:
        remaining = self.base_hours - self.academic_hours - self.season_hours - self.blocked_hours
        return round(max(0.0, remaining), 1)

    @property
    def in_season(self) -> bool:
        return self.season_hours > 0


def season_load_hours(season: SportSeason) -> float:
    """Weekly hours a season takes: practice, competition and travel."""
    return (
        (season.practice_hours_per_week or 0.0)
        + (season.competition_hours_per_week or 0.0)
        + (season.travel_days_per_week or 0.0) * TRAVEL_DAY_HOURS
    )


def academic_load(
    calendar: List[AcademicCalendarEntry],
    tenant_id: Optional[str],
    day: date,
) -> Tuple[float, Optional[AcademicCalendarEntry]]:
    """Return the heaviest academic load covering day for the tenant."""
    if tenant_id is None:
        return 0.0, None
    best: Optional[AcademicCalendarEntry] = None
    for entry in calendar:
        if entry.tenant_id != tenant_id or not entry.covers(day):
            continue
        if best is None or entry.priority_level > best.priority_level:
            best = entry
    if best is None:
        return 0.0, None
    level = min(5, max(1, int(best.priority_level)))
    return ACADEMIC_LOAD_HOURS[level], best


def active_seasons(seasons: List[SportSeason], day: date) -> List[SportSeason]:
    return [s for s in seasons if s.covers(day)]


def _overlaps(entry: ScheduleEntry, start: date, end: date) -> bool:
    return entry.start <= end and entry.end >= start


def manual_hours(
    schedule: List[ScheduleEntry],
    week_start: date,
    capacity: float,
) -> Tuple[float, float]:
    """Net a week against manual entries.

    Returns:
        Tuple of (base_hours, blocked_hours)
    """
    week_end = week_start + timedelta(days=6)
    declared = [e for e in schedule if e.kind == "available"]

    if declared:
        covering = [e for e in declared if _overlaps(e, week_start, week_end)]
        if covering:
            base = max(
                capacity if e.hours_per_week is None else e.hours_per_week
                for e in covering
            )
        else:
            base = 0.0
    else:
        base = capacity

    blocked = 0.0
    for entry in schedule:
        if entry.kind != "blocked" or not _overlaps(entry, week_start, week_end):
            continue
        blocked += base if entry.hours_per_week is None else entry.hours_per_week

    return base, blocked


def week_starts(start: date, end: date, max_weeks: int = MAX_WEEKS) -> List[date]:
    """Week start dates covering [start, end]; empty for an inverted window."""
    if end < start:
        return []
    weeks = []
    current = start
    while current <= end and len(weeks) < max_weeks:
        weeks.append(current)
        current += timedelta(days=7)
    return weeks


def week_availability(
    student: StudentProfile,
    week_start: date,
    context: MatchContext,
) -> WeeklyAvailability:
    capacity = student.weekly_capacity_hours or 0.0

    if context.feature("schedule_matching"):
        base, blocked = manual_hours(student.schedule, week_start, capacity)
    else:
        base, blocked = capacity, 0.0

    week = WeeklyAvailability(week_start=week_start, base_hours=base, blocked_hours=blocked)
    if blocked:
        week.constraints.append("manual block")

    if context.feature("academic_calendar"):
        hours, term = academic_load(context.calendar, student.tenant_id, week_start)
        week.academic_hours = hours
        if term is not None:
            week.constraints.append(f"{term.term_name} ({term.term_type})")

    if context.feature("sport_seasons"):
        for season in active_seasons(context.seasons, week_start):
            week.season_hours += season_load_hours(season)
            week.constraints.append(f"{season.sport} {season.season_type}")

    return week


def availability_windows(
    student: StudentProfile,
    start: date,
    end: date,
    context: MatchContext,
) -> List[WeeklyAvailability]:
    """Effective availability for every week of [start, end]."""
    return [week_availability(student, w, context) for w in week_starts(start, end)]


def calculate_available_hours(
    student: StudentProfile,
    day: date,
    context: MatchContext,
) -> float:
    """Effective available hours for the week starting on day."""
    return week_availability(student, day, context).available_hours
