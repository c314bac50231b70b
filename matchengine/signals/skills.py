"""
Skills alignment: importance-weighted share of the listing's skills the
student holds.

Credit policy per listing skill:
  - proficiency >= minimum: full credit
  - proficiency below minimum: proportional credit, proficiency / minimum
  - skill missing but reachable through the student's sport: half the
    transfer strength (only with the athletic_transfer feature)
  - otherwise: zero
"""

from typing import Dict

from ..models import IMPORTANCE_WEIGHTS, Listing, MatchContext, StudentProfile
from .common import SignalResult, SkillsEvidence, clamp_score, neutral_result

TRANSFER_CREDIT = 0.5


def skill_credit(proficiency: int, minimum: int) -> float:
    """Credit for a held skill under the proportional policy."""
    minimum = max(1, minimum)
    if proficiency >= minimum:
        return 1.0
    return max(0.0, proficiency) / minimum


def _transfer_strengths(student: StudentProfile, context: MatchContext) -> Dict[str, float]:
    if not student.sport or not context.feature("athletic_transfer"):
        return {}
    sport = student.sport.strip().lower()
    strengths: Dict[str, float] = {}
    for t in context.transfers:
        if t.sport.strip().lower() != sport:
            continue
        key = t.professional_skill.strip().lower()
        strengths[key] = max(strengths.get(key, 0.0), t.transfer_strength)
    return strengths


def score(student: StudentProfile, listing: Listing, context: MatchContext) -> SignalResult:
    if not listing.required_skills:
        return neutral_result("skills", "listing lists no skills")

    held = student.skill_map()
    transfers = _transfer_strengths(student, context)
    evidence = SkillsEvidence(total_required=len(listing.required_skills))

    earned = 0.0
    possible = 0.0
    for req in listing.required_skills:
        key = req.name.strip().lower()
        weight = IMPORTANCE_WEIGHTS.get(req.importance, IMPORTANCE_WEIGHTS["nice_to_have"])
        possible += weight

        skill = held.get(key)
        if skill is not None:
            credit = skill_credit(skill.proficiency, req.min_proficiency)
            if credit >= 1.0:
                evidence.matched.append(key)
            else:
                evidence.partial.append(key)
        elif key in transfers:
            credit = TRANSFER_CREDIT * min(1.0, max(0.0, transfers[key]))
            evidence.transferred.append(key)
        else:
            credit = 0.0
            evidence.missing.append(key)
        earned += weight * credit

    value = clamp_score(round(100.0 * earned / possible, 2))
    return SignalResult(name="skills", value=value, evidence=evidence)
