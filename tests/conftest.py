"""
Pytest configuration and shared fixtures.
"""

import json
from datetime import date
from pathlib import Path

import pytest

from matchengine.database import init_database
from matchengine.engine import MatchEngine
from matchengine.models import (
    AcademicCalendarEntry,
    AthleticTransfer,
    CompanyProfile,
    Engagement,
    Listing,
    ListingSkill,
    SportSeason,
    StudentProfile,
    StudentSkill,
)
from matchengine.sources import InMemorySource


JUNE_START = date(2026, 6, 1)
JUNE_END = date(2026, 6, 28)
OCTOBER_START = date(2026, 10, 5)
OCTOBER_END = date(2026, 11, 1)


@pytest.fixture
def alice() -> StudentProfile:
    """Strong data student at UCLA with a clean track record."""
    return StudentProfile(
        id="s-alice",
        tenant_id="ucla",
        skills=[
            StudentSkill(name="Python", category="technical", proficiency=4),
            StudentSkill(name="SQL", category="technical", proficiency=3),
        ],
        engagements=[
            Engagement(listing_id="old-1", status="completed", category="data"),
            Engagement(listing_id="old-2", status="completed", category="data"),
        ],
        rating_average=4.5,
        rating_count=4,
    )


@pytest.fixture
def bob() -> StudentProfile:
    """UCLA soccer player with little technical background."""
    return StudentProfile(
        id="s-bob",
        tenant_id="ucla",
        skills=[StudentSkill(name="python", proficiency=1)],
        sport="soccer",
    )


@pytest.fixture
def data_listing() -> Listing:
    """Tenant-only UCLA listing running four weeks in June."""
    return Listing(
        id="l-data",
        company_id="c-acme",
        tenant_id="ucla",
        visibility="tenant",
        title="Data analyst intern",
        category="data",
        required_skills=[
            ListingSkill(name="python", importance="required", min_proficiency=3),
            ListingSkill(name="sql", importance="preferred", min_proficiency=3),
        ],
        start=JUNE_START,
        end=JUNE_END,
        hours_per_week=20,
        max_students=2,
        is_paid=True,
        compensation="$30/hr",
        remote_allowed=True,
    )


@pytest.fixture
def source(alice, bob, data_listing) -> InMemorySource:
    """Two partnered tenants plus one unrelated tenant."""
    return InMemorySource(
        students=[
            alice,
            bob,
            StudentProfile(
                id="s-cara",
                tenant_id="usc",
                skills=[StudentSkill(name="python", proficiency=5), StudentSkill(name="sql", proficiency=5)],
            ),
            StudentProfile(id="s-dan", tenant_id="stanford", skills=[StudentSkill(name="python", proficiency=3)]),
        ],
        listings=[
            data_listing,
            Listing(
                id="l-open",
                company_id="c-acme",
                tenant_id="usc",
                visibility="open",
                category="engineering",
                required_skills=[ListingSkill(name="python", importance="required", min_proficiency=2)],
                start=JUNE_START,
                end=JUNE_END,
                hours_per_week=10,
            ),
            Listing(
                id="l-net",
                company_id="c-beta",
                tenant_id="usc",
                visibility="network",
                required_skills=[ListingSkill(name="teamwork", importance="required", min_proficiency=2)],
                start=OCTOBER_START,
                end=OCTOBER_END,
                hours_per_week=20,
            ),
        ],
        companies=[
            CompanyProfile(id="c-acme", tenant_id="ucla", name="Acme", rating_average=4.6, rating_count=10),
            CompanyProfile(id="c-beta", tenant_id="usc", name="Beta"),
        ],
        calendar=[
            AcademicCalendarEntry(
                tenant_id="ucla",
                term_name="Summer",
                term_type="summer",
                start=date(2026, 6, 1),
                end=date(2026, 8, 31),
                priority_level=1,
            ),
        ],
        seasons=[
            SportSeason(
                sport="soccer",
                season_type="competition",
                start_month=9,
                end_month=11,
                practice_hours_per_week=20,
                competition_hours_per_week=5,
                travel_days_per_week=4,
                intensity_level=5,
            ),
        ],
        transfers=[AthleticTransfer(sport="soccer", professional_skill="teamwork", transfer_strength=0.8)],
        partnerships=[("ucla", "usc")],
    )


@pytest.fixture
def db_path(tmp_path) -> Path:
    """Initialized temporary score database."""
    path = tmp_path / "matchengine.db"
    init_database(path)
    return path


@pytest.fixture
def engine(source, db_path) -> MatchEngine:
    return MatchEngine(source, db_path)


@pytest.fixture
def snapshot_file(tmp_path) -> Path:
    """Small JSON snapshot in the format accepted by load_snapshot."""
    data = {
        "students": [
            {
                "id": "s-1",
                "tenant_id": "t-1",
                "skills": [{"name": "python", "proficiency": 4}],
                "schedule": [{"kind": "blocked", "start": "2026-06-01", "end": "2026-06-07"}],
                "engagements": [{"listing_id": "x", "status": "completed"}],
            }
        ],
        "listings": [
            {
                "id": "l-1",
                "company_id": "c-1",
                "tenant_id": "t-1",
                "required_skills": [{"name": "python", "min_proficiency": 3}],
                "start": "2026-06-01",
                "end": "2026-06-28",
                "hours_per_week": 10,
            }
        ],
        "companies": [{"id": "c-1", "tenant_id": "t-1", "name": "One"}],
        "calendar": [
            {"tenant_id": "t-1", "term_name": "Spring", "start": "2026-01-10", "end": "2026-05-20", "priority_level": 4}
        ],
        "sport_seasons": [],
        "athletic_transfers": [],
        "partnerships": [["t-1", "t-2"]],
    }
    path = tmp_path / "snapshot.json"
    path.write_text(json.dumps(data, indent=2))
    return path
