"""
Read-only access to the collaborator stores (profiles, listings, calendars,
seasons, ratings, partnerships).

The engine only reads through ProfileSource. InMemorySource backs tests,
scripts and the CLI and can be loaded from a JSON snapshot.
"""

import json
from abc import ABC, abstractmethod
from datetime import date
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from .models import (
    AcademicCalendarEntry,
    AthleticTransfer,
    CompanyProfile,
    Engagement,
    Listing,
    ListingSkill,
    ScheduleEntry,
    SportSeason,
    StudentProfile,
    StudentSkill,
)


class ProfileSource(ABC):
    """What the engine needs from the rest of the marketplace."""

    @abstractmethod
    def get_student(self, student_id: str) -> Optional[StudentProfile]:
        ...

    @abstractmethod
    def get_listing(self, listing_id: str) -> Optional[Listing]:
        ...

    @abstractmethod
    def get_company(self, company_id: str) -> Optional[CompanyProfile]:
        ...

    @abstractmethod
    def calendar_for(self, tenant_id: Optional[str]) -> List[AcademicCalendarEntry]:
        ...

    @abstractmethod
    def seasons_for(self, student: StudentProfile) -> List[SportSeason]:
        ...

    @abstractmethod
    def transfers(self) -> List[AthleticTransfer]:
        ...

    @abstractmethod
    def partner_tenants(self, tenant_id: Optional[str]) -> FrozenSet[str]:
        ...

    @abstractmethod
    def students(self, tenant_ids: Optional[Iterable[str]] = None) -> List[StudentProfile]:
        """All students, or only those belonging to tenant_ids."""

    @abstractmethod
    def company_listings(self, company_id: str) -> List[Listing]:
        ...


class InMemorySource(ProfileSource):
    def __init__(
        self,
        students: Iterable[StudentProfile] = (),
        listings: Iterable[Listing] = (),
        companies: Iterable[CompanyProfile] = (),
        calendar: Iterable[AcademicCalendarEntry] = (),
        seasons: Iterable[SportSeason] = (),
        transfers: Iterable[AthleticTransfer] = (),
        partnerships: Iterable[Tuple[str, str]] = (),
    ):
        self._students: Dict[str, StudentProfile] = {s.id: s for s in students}
        self._listings: Dict[str, Listing] = {l.id: l for l in listings}
        self._companies: Dict[str, CompanyProfile] = {c.id: c for c in companies}
        self._calendar = list(calendar)
        self._seasons = list(seasons)
        self._transfers = list(transfers)
        self._partners: Dict[str, Set[str]] = {}
        for a, b in partnerships:
            self.add_partnership(a, b)

    # Mutators used by tests and the snapshot loader; real stores call the
    # invalidation tracker themselves after writing.

    def put_student(self, student: StudentProfile) -> None:
        self._students[student.id] = student

    def put_listing(self, listing: Listing) -> None:
        self._listings[listing.id] = listing

    def put_company(self, company: CompanyProfile) -> None:
        self._companies[company.id] = company

    def add_partnership(self, a: str, b: str) -> None:
        self._partners.setdefault(a, set()).add(b)
        self._partners.setdefault(b, set()).add(a)

    # ProfileSource

    def get_student(self, student_id: str) -> Optional[StudentProfile]:
        return self._students.get(student_id)

    def get_listing(self, listing_id: str) -> Optional[Listing]:
        return self._listings.get(listing_id)

    def get_company(self, company_id: str) -> Optional[CompanyProfile]:
        return self._companies.get(company_id)

    def calendar_for(self, tenant_id: Optional[str]) -> List[AcademicCalendarEntry]:
        if tenant_id is None:
            return []
        return [e for e in self._calendar if e.tenant_id == tenant_id]

    def seasons_for(self, student: StudentProfile) -> List[SportSeason]:
        if not student.sport:
            return []
        sport = student.sport.strip().lower()
        return [s for s in self._seasons if s.sport.strip().lower() == sport]

    def transfers(self) -> List[AthleticTransfer]:
        return list(self._transfers)

    def partner_tenants(self, tenant_id: Optional[str]) -> FrozenSet[str]:
        if tenant_id is None:
            return frozenset()
        return frozenset(self._partners.get(tenant_id, ()))

    def students(self, tenant_ids: Optional[Iterable[str]] = None) -> List[StudentProfile]:
        if tenant_ids is None:
            return list(self._students.values())
        wanted = set(tenant_ids)
        return [s for s in self._students.values() if s.tenant_id in wanted]

    def company_listings(self, company_id: str) -> List[Listing]:
        return [l for l in self._listings.values() if l.company_id == company_id]

    # Snapshot loading

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InMemorySource":
        """
        Build a source from a snapshot dict.

        Top-level keys: students, listings, companies, calendar,
        sport_seasons, athletic_transfers, partnerships (pairs of tenant ids).
        Dates are ISO strings (YYYY-MM-DD).
        """
        return cls(
            students=[_student(s) for s in data.get("students", [])],
            listings=[_listing(l) for l in data.get("listings", [])],
            companies=[CompanyProfile(**c) for c in data.get("companies", [])],
            calendar=[_calendar_entry(e) for e in data.get("calendar", [])],
            seasons=[SportSeason(**s) for s in data.get("sport_seasons", [])],
            transfers=[AthleticTransfer(**t) for t in data.get("athletic_transfers", [])],
            partnerships=[tuple(p) for p in data.get("partnerships", [])],
        )


def load_snapshot(path: Path) -> InMemorySource:
    """Load an InMemorySource from a JSON snapshot file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Snapshot not found: {path}")
    with path.open("r", encoding="utf-8") as f:
        return InMemorySource.from_dict(json.load(f))


def _parse_date(value: Optional[str]) -> Optional[date]:
    if value is None or isinstance(value, date):
        return value
    return date.fromisoformat(value)


def _student(data: Dict[str, Any]) -> StudentProfile:
    data = dict(data)
    data["skills"] = [StudentSkill(**s) for s in data.get("skills", [])]
    data["schedule"] = [
        ScheduleEntry(**{**e, "start": _parse_date(e["start"]), "end": _parse_date(e["end"])})
        for e in data.get("schedule", [])
    ]
    data["engagements"] = [Engagement(**e) for e in data.get("engagements", [])]
    return StudentProfile(**data)


def _listing(data: Dict[str, Any]) -> Listing:
    data = dict(data)
    data["required_skills"] = [ListingSkill(**s) for s in data.get("required_skills", [])]
    for key in ("start", "end", "application_deadline"):
        data[key] = _parse_date(data.get(key))
    return Listing(**data)


def _calendar_entry(data: Dict[str, Any]) -> AcademicCalendarEntry:
    return AcademicCalendarEntry(
        **{**data, "start": _parse_date(data["start"]), "end": _parse_date(data["end"])}
    )
