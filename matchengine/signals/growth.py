"""
Growth trajectory: rewards a moderate stretch above the student's level.

stretch = opportunity difficulty - student level, on the 1-5 proficiency
scale. A stretch of half a level to a level and a half is ideal; trivial work
and large overreach are both penalized, overreach more steeply.
"""

from typing import List, Optional

from ..models import Listing, MatchContext, StudentProfile
from .common import GrowthEvidence, SignalResult, clamp_score, neutral_result

IDEAL_STRETCH_MIN = 0.5
IDEAL_STRETCH_MAX = 1.5
NEUTRAL_PROGRESSION = 70.0


def stretch_score(stretch: float) -> float:
    if IDEAL_STRETCH_MIN <= stretch <= IDEAL_STRETCH_MAX:
        return 100.0
    if stretch < IDEAL_STRETCH_MIN:
        return max(20.0, 100.0 - (IDEAL_STRETCH_MIN - stretch) * 25.0)
    return max(0.0, 100.0 - (stretch - IDEAL_STRETCH_MAX) * 40.0)


def progression_score(student: StudentProfile, category: Optional[str]) -> float:
    """Category progression from engagement history."""
    if not category or not student.engagements:
        return NEUTRAL_PROGRESSION
    key = category.strip().lower()
    in_category = [e for e in student.engagements if (e.category or "").strip().lower() == key]
    completed = sum(1 for e in in_category if e.status == "completed")
    if not in_category:
        return 80.0
    if completed == 0:
        return 55.0
    if completed <= 2:
        return 90.0
    return 60.0


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def score(student: StudentProfile, listing: Listing, context: MatchContext) -> SignalResult:
    if listing.difficulty is None and not listing.required_skills:
        return neutral_result("growth", "listing has neither difficulty nor skills")

    held = student.skill_map()
    if listing.difficulty is not None:
        difficulty = float(listing.difficulty)
    else:
        difficulty = _mean([float(max(1, r.min_proficiency)) for r in listing.required_skills])

    if listing.required_skills:
        levels = []
        for req in listing.required_skills:
            skill = held.get(req.name.strip().lower())
            levels.append(float(skill.proficiency) if skill else 0.0)
        level = _mean(levels)
    else:
        level = _mean([float(s.proficiency) for s in student.skills])

    stretch = difficulty - level
    stretch_part = stretch_score(stretch)
    progression = progression_score(student, listing.category)
    value = clamp_score(round(0.7 * stretch_part + 0.3 * progression, 2))

    evidence = GrowthEvidence(
        difficulty=round(difficulty, 2),
        student_level=round(level, 2),
        stretch=round(stretch, 2),
        stretch_score=round(stretch_part, 2),
        progression_score=progression,
    )
    return SignalResult(name="growth", value=value, evidence=evidence)
