# ABOUTME: Generates intervention recommendations from a risk score and its risk factors.
# ABOUTME: Rules are evaluated in table order, then stably sorted by priority.

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Sequence

from .factors import RiskFactor

PRIORITY_ORDER = {"high": 3, "medium": 2, "low": 1}


@dataclass(frozen=True)
class Recommendation:
    type: str  # immediate/short-term/long-term
    priority: str  # high/medium/low
    action: str
    description: str
    expected_impact: float


@dataclass(frozen=True)
class RecommendationRule:
    applies: Callable[[float, Sequence[RiskFactor]], bool]
    recommendation: Recommendation


def _has_factor(*markers: str) -> Callable[[float, Sequence[RiskFactor]], bool]:
    def check(_risk_score: float, factors: Sequence[RiskFactor]) -> bool:
        return any(marker in factor.name for factor in factors for marker in markers)

    return check


RECOMMENDATION_RULES = (
    RecommendationRule(
        applies=lambda risk_score, _factors: risk_score >= 85,
        recommendation=Recommendation(
            type="immediate",
            priority="high",
            action="Emergency Intervention",
            description="Immediate contact with student and academic advisor required",
            expected_impact=40,
        ),
    ),
    RecommendationRule(
        applies=_has_factor("Engagement", "Social Isolation"),
        recommendation=Recommendation(
            type="short-term",
            priority="high",
            action="Engagement Boost Program",
            description="Enroll in personalized engagement activities and peer study groups",
            expected_impact=25,
        ),
    ),
    RecommendationRule(
        applies=_has_factor("Performance", "Deadlines"),
        recommendation=Recommendation(
            type="short-term",
            priority="high",
            action="Academic Support Program",
            description="Provide tutoring, study skills training, and time management coaching",
            expected_impact=30,
        ),
    ),
    RecommendationRule(
        applies=_has_factor("Attendance", "Inactivity"),
        recommendation=Recommendation(
            type="immediate",
            priority="medium",
            action="Attendance Monitoring",
            description="Implement regular check-ins and attendance tracking with alerts",
            expected_impact=20,
        ),
    ),
    RecommendationRule(
        applies=lambda _risk_score, _factors: True,
        recommendation=Recommendation(
            type="long-term",
            priority="medium",
            action="Holistic Support Plan",
            description="Develop comprehensive support plan addressing academic, social, and personal needs",
            expected_impact=35,
        ),
    ),
)


def generate_interventions(
    risk_score: float,
    risk_factors: Sequence[RiskFactor],
    rules: Sequence[RecommendationRule] = RECOMMENDATION_RULES,
) -> List[Recommendation]:
    """
    Recommend interventions for a student given their risk score and factors.
    """

    recs = [rule.recommendation for rule in rules if rule.applies(risk_score, risk_factors)]
    return sorted(recs, key=lambda r: PRIORITY_ORDER[r.priority], reverse=True)
