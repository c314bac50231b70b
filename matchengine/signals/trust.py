"""
Trust: the student's received ratings combined with the listing company's
reputation. Both sides use the 1-5 rating scale and are regressed toward the
neutral 50 when only a few ratings exist.
"""

from typing import Optional

from ..models import Listing, MatchContext, StudentProfile
from .common import SignalResult, TrustEvidence, clamp_score

NEUTRAL = 50.0
PRIOR_RATINGS = 2
STUDENT_SHARE = 0.6


def rating_score(average: Optional[float], count: int) -> float:
    if average is None or count <= 0:
        return NEUTRAL
    raw = (min(5.0, max(1.0, average)) - 1.0) / 4.0 * 100.0
    return (count * raw + PRIOR_RATINGS * NEUTRAL) / (count + PRIOR_RATINGS)


def score(student: StudentProfile, listing: Listing, context: MatchContext) -> SignalResult:
    company = context.company
    company_avg = company.rating_average if company else None
    company_count = company.rating_count if company else 0

    student_part = rating_score(student.rating_average, student.rating_count)
    company_part = rating_score(company_avg, company_count)
    value = clamp_score(round(STUDENT_SHARE * student_part + (1 - STUDENT_SHARE) * company_part, 2))

    evidence = TrustEvidence(
        student_rating=student.rating_average,
        student_rating_count=student.rating_count,
        company_rating=company_avg,
        company_rating_count=company_count,
        student_score=round(student_part, 2),
        company_score=round(company_part, 2),
    )
    no_student = student.rating_average is None or student.rating_count <= 0
    no_company = company_avg is None or company_count <= 0
    defaulted = no_student and no_company
    if defaulted:
        evidence.reason = "no ratings on either side"
    return SignalResult(name="trust", value=value, evidence=evidence, defaulted=defaulted)
