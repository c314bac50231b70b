"""The six signal calculators, keyed by signal name in scoring order."""

from . import growth, network, skills, sustainability, temporal, trust
from .common import (
    NEUTRAL_SCORES,
    SignalResult,
    evidence_from_dict,
    evidence_to_dict,
    neutral_result,
)

CALCULATORS = {
    "temporal": temporal.score,
    "skills": skills.score,
    "sustainability": sustainability.score,
    "growth": growth.score,
    "trust": trust.score,
    "network": network.score,
}

__all__ = [
    "CALCULATORS",
    "NEUTRAL_SCORES",
    "SignalResult",
    "evidence_from_dict",
    "evidence_to_dict",
    "neutral_result",
]
