"""Shared types and helpers for all signal calculators.

Each signal returns a SignalResult whose evidence is one member of a tagged
union: the evidence class is selected by its ``signal`` tag, both in memory
and in the JSON stored on cached score rows.
"""

import math
from dataclasses import asdict, dataclass, field, fields
from typing import Any, ClassVar, Dict, List, Optional, Type, Union

NEUTRAL_SCORES = {
    "temporal": 50.0,
    "skills": 50.0,
    "sustainability": 60.0,
    "growth": 50.0,
    "trust": 50.0,
    "network": 40.0,
}


def clamp_score(value: float) -> float:
    """Clamp into [0, 100], mapping NaN to 0."""
    if value is None or math.isnan(value):
        return 0.0
    return float(min(100.0, max(0.0, value)))


@dataclass
class TemporalEvidence:
    signal: ClassVar[str] = "temporal"
    weeks_evaluated: int = 0
    required_hours: float = 0.0
    mean_available_hours: float = 0.0
    min_available_hours: float = 0.0
    in_season_weeks: int = 0
    constrained_weeks: int = 0
    constraints: List[str] = field(default_factory=list)
    reason: str = ""


@dataclass
class SkillsEvidence:
    signal: ClassVar[str] = "skills"
    total_required: int = 0
    matched: List[str] = field(default_factory=list)
    partial: List[str] = field(default_factory=list)
    transferred: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)
    policy: str = "proportional"
    reason: str = ""


@dataclass
class SustainabilityEvidence:
    signal: ClassVar[str] = "sustainability"
    completed: int = 0
    abandoned: int = 0
    active: int = 0
    follow_through: float = 0.0
    load_score: float = 0.0
    weekly_hours: float = 0.0
    intensity_score: Optional[float] = None
    reason: str = ""


@dataclass
class GrowthEvidence:
    signal: ClassVar[str] = "growth"
    difficulty: float = 0.0
    student_level: float = 0.0
    stretch: float = 0.0
    stretch_score: float = 0.0
    progression_score: float = 0.0
    reason: str = ""


@dataclass
class TrustEvidence:
    signal: ClassVar[str] = "trust"
    student_rating: Optional[float] = None
    student_rating_count: int = 0
    company_rating: Optional[float] = None
    company_rating_count: int = 0
    student_score: float = 0.0
    company_score: float = 0.0
    reason: str = ""


@dataclass
class NetworkEvidence:
    signal: ClassVar[str] = "network"
    tier: str = "open"
    student_tenant: Optional[str] = None
    listing_tenant: Optional[str] = None
    visibility: str = "open"
    visible: bool = True
    reason: str = ""


Evidence = Union[
    TemporalEvidence,
    SkillsEvidence,
    SustainabilityEvidence,
    GrowthEvidence,
    TrustEvidence,
    NetworkEvidence,
]

EVIDENCE_TYPES: Dict[str, Type] = {
    cls.signal: cls
    for cls in (
        TemporalEvidence,
        SkillsEvidence,
        SustainabilityEvidence,
        GrowthEvidence,
        TrustEvidence,
        NetworkEvidence,
    )
}


def evidence_to_dict(evidence: Evidence) -> Dict[str, Any]:
    data = asdict(evidence)
    data["signal"] = evidence.signal
    return data


def evidence_from_dict(data: Dict[str, Any]) -> Evidence:
    """Rebuild the evidence dataclass selected by the ``signal`` tag."""
    cls = EVIDENCE_TYPES[data["signal"]]
    names = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in data.items() if k in names})


@dataclass
class SignalResult:
    name: str
    value: float
    evidence: Evidence
    defaulted: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "value": self.value,
            "defaulted": self.defaulted,
            "evidence": evidence_to_dict(self.evidence),
        }

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "SignalResult":
        return cls(
            name=name,
            value=float(data["value"]),
            evidence=evidence_from_dict(data["evidence"]),
            defaulted=bool(data.get("defaulted", False)),
        )


def neutral_result(name: str, reason: str) -> SignalResult:
    """The documented neutral value for a signal that has no usable data."""
    evidence = EVIDENCE_TYPES[name](reason=reason)
    return SignalResult(name=name, value=NEUTRAL_SCORES[name], evidence=evidence, defaulted=True)
