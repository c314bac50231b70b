"""
Tests for availability.py - academic calendar and sport season context.
"""

from datetime import date

from matchengine.availability import (
    academic_load,
    active_seasons,
    calculate_available_hours,
    manual_hours,
    season_load_hours,
    week_starts,
)
from matchengine.models import (
    AcademicCalendarEntry,
    MatchContext,
    ScheduleEntry,
    SportSeason,
    StudentProfile,
    month_in_range,
)


BASKETBALL = SportSeason(
    sport="basketball",
    season_type="competition",
    start_month=11,
    end_month=3,
    practice_hours_per_week=15,
    competition_hours_per_week=6,
    travel_days_per_week=1,
)


class TestSeasons:
    """Test sport season coverage and load."""

    def test_month_range_wraps_year_end(self):
        """Nov-Mar covers January but not June."""
        assert month_in_range(1, 11, 3)
        assert month_in_range(11, 11, 3)
        assert not month_in_range(6, 11, 3)
        assert month_in_range(6, 5, 8)

    def test_season_load_includes_travel(self):
        assert season_load_hours(BASKETBALL) == 25.0

    def test_active_seasons(self):
        assert active_seasons([BASKETBALL], date(2027, 2, 1)) == [BASKETBALL]
        assert active_seasons([BASKETBALL], date(2027, 7, 1)) == []


class TestAcademicLoad:
    """Test academic calendar lookups."""

    def test_heaviest_covering_term_wins(self):
        calendar = [
            AcademicCalendarEntry(tenant_id="t-1", term_name="Fall", start=date(2026, 9, 1),
                                  end=date(2026, 12, 20), priority_level=3),
            AcademicCalendarEntry(tenant_id="t-1", term_name="Finals", start=date(2026, 12, 7),
                                  end=date(2026, 12, 18), priority_level=5),
        ]
        hours, term = academic_load(calendar, "t-1", date(2026, 12, 10))

        assert hours == 20.0
        assert term.term_name == "Finals"

    def test_no_tenant_means_no_load(self):
        calendar = [AcademicCalendarEntry(tenant_id="t-1", term_name="Fall", start=date(2026, 9, 1),
                                          end=date(2026, 12, 20), priority_level=3)]
        assert academic_load(calendar, None, date(2026, 10, 1)) == (0.0, None)


class TestManualEntries:
    """Test manual availability entries."""

    def test_no_entries_uses_capacity(self):
        assert manual_hours([], date(2026, 6, 1), 40.0) == (40.0, 0.0)

    def test_partial_block(self):
        schedule = [ScheduleEntry(kind="blocked", start=date(2026, 6, 3), end=date(2026, 6, 3), hours_per_week=8)]
        assert manual_hours(schedule, date(2026, 6, 1), 40.0) == (40.0, 8.0)

    def test_declared_hours_replace_capacity(self):
        schedule = [ScheduleEntry(kind="available", start=date(2026, 6, 1), end=date(2026, 6, 30), hours_per_week=12)]
        assert manual_hours(schedule, date(2026, 6, 8), 40.0) == (12.0, 0.0)
        assert manual_hours(schedule, date(2026, 7, 6), 40.0) == (0.0, 0.0)


class TestWeeklyAvailability:
    """Test effective weekly hours."""

    def test_week_starts(self):
        weeks = week_starts(date(2026, 6, 1), date(2026, 6, 28))

        assert weeks == [date(2026, 6, 1), date(2026, 6, 8), date(2026, 6, 15), date(2026, 6, 22)]

    def test_inverted_window_is_empty(self):
        assert week_starts(date(2026, 6, 28), date(2026, 6, 1)) == []

    def test_overloaded_week_floors_at_zero(self):
        student = StudentProfile(id="s-1", tenant_id="t-1", weekly_capacity_hours=20, sport="basketball")
        context = MatchContext(seasons=[BASKETBALL])

        assert calculate_available_hours(student, date(2027, 1, 4), context) == 0.0

    def test_toggles_disable_every_deduction(self):
        student = StudentProfile(
            id="s-1",
            tenant_id="t-1",
            schedule=[ScheduleEntry(kind="blocked", start=date(2027, 1, 1), end=date(2027, 1, 31))],
        )
        calendar = [AcademicCalendarEntry(tenant_id="t-1", term_name="Winter", start=date(2027, 1, 1),
                                          end=date(2027, 3, 1), priority_level=4)]
        context = MatchContext(
            calendar=calendar,
            seasons=[BASKETBALL],
            features={"schedule_matching": False, "academic_calendar": False, "sport_seasons": False},
        )

        assert calculate_available_hours(student, date(2027, 1, 4), context) == 40.0
