# ABOUTME: Explains a risk score through table-driven risk and protective factor rules.
# ABOUTME: Also derives the boolean risk indicators attached to every prediction.

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Callable, Dict, List, Optional

from src.common.schemas import FeatureVector


@dataclass(frozen=True)
class RiskFactor:
    name: str
    weight: float
    description: str
    severity: str  # low/medium/high


@dataclass(frozen=True)
class ProtectiveFactor:
    name: str
    strength: float
    description: str


@dataclass(frozen=True)
class FactorRule:
    """Emits a factor when `triggers` holds; `escalates` upgrades severity to high."""

    name: str
    feature: str
    triggers: Callable[[float], bool]
    weight: float
    description: str
    escalates: Optional[Callable[[float], bool]] = None
    base_severity: str = "medium"

    def severity(self, value: float) -> str:
        if self.escalates is not None and self.escalates(value):
            return "high"
        return self.base_severity


@dataclass(frozen=True)
class RiskIndicators:
    engagement_decline: bool
    performance_decline: bool
    attendance_issues: bool
    social_isolation: bool
    technical_difficulties: bool
    motivational_issues: bool
    time_management_problems: bool

    def to_dict(self) -> Dict[str, bool]:
        return {_camel(k): v for k, v in asdict(self).items()}


RISK_FACTOR_RULES = (
    FactorRule(
        name="Low Engagement",
        feature="recent_engagement",
        triggers=lambda v: v < 50,
        escalates=lambda v: v < 30,
        weight=0.8,
        description="Student shows low engagement levels in recent activities",
    ),
    FactorRule(
        name="Declining Engagement",
        feature="engagement_trend",
        triggers=lambda v: v < -10,
        escalates=lambda v: v < -20,
        weight=0.9,
        description="Student engagement is trending downward",
    ),
    FactorRule(
        name="Poor Performance",
        feature="average_score",
        triggers=lambda v: v < 60,
        escalates=lambda v: v < 40,
        weight=0.7,
        description="Student performance is below acceptable levels",
    ),
    FactorRule(
        name="Low Attendance",
        feature="attendance_rate",
        triggers=lambda v: v < 0.7,
        escalates=lambda v: v < 0.5,
        weight=0.8,
        description="Student has irregular attendance patterns",
    ),
    FactorRule(
        name="Missed Deadlines",
        feature="deadline_miss_rate",
        triggers=lambda v: v > 0.3,
        escalates=lambda v: v > 0.5,
        weight=0.6,
        description="Student frequently misses assignment deadlines",
    ),
    FactorRule(
        name="Social Isolation",
        feature="social_interaction",
        triggers=lambda v: v < 0.2,
        weight=0.4,
        description="Student shows limited social interaction in learning environment",
        base_severity="low",
    ),
    FactorRule(
        name="Extended Inactivity",
        feature="inactivity_periods",
        triggers=lambda v: v > 5,
        escalates=lambda v: v > 10,
        weight=0.7,
        description="Student has multiple periods of extended inactivity",
    ),
)

PROTECTIVE_FACTOR_RULES = (
    FactorRule(
        name="Active Help Seeking",
        feature="help_seeking_behavior",
        triggers=lambda v: v > 0.5,
        weight=0.7,
        description="Student actively seeks help when needed",
    ),
    FactorRule(
        name="Consistent Study Habits",
        feature="session_consistency",
        triggers=lambda v: v > 0.8,
        weight=0.8,
        description="Student maintains consistent study sessions",
    ),
    FactorRule(
        name="Strong Social Engagement",
        feature="social_interaction",
        triggers=lambda v: v > 0.6,
        weight=0.6,
        description="Student actively participates in social learning",
    ),
    FactorRule(
        name="Improving Performance",
        feature="score_trend",
        triggers=lambda v: v > 5,
        weight=0.9,
        description="Student performance is showing improvement",
    ),
)


def identify_risk_factors(
    features: FeatureVector, rules=RISK_FACTOR_RULES
) -> List[RiskFactor]:
    factors = []
    for rule in rules:
        value = getattr(features, rule.feature)
        if rule.triggers(value):
            factors.append(
                RiskFactor(
                    name=rule.name,
                    weight=rule.weight,
                    description=rule.description,
                    severity=rule.severity(value),
                )
            )
    # sorted() is stable, so ties keep rule order.
    return sorted(factors, key=lambda f: f.weight, reverse=True)


def identify_protective_factors(
    features: FeatureVector, rules=PROTECTIVE_FACTOR_RULES
) -> List[ProtectiveFactor]:
    factors = [
        ProtectiveFactor(name=rule.name, strength=rule.weight, description=rule.description)
        for rule in rules
        if rule.triggers(getattr(features, rule.feature))
    ]
    return sorted(factors, key=lambda f: f.strength, reverse=True)


def derive_risk_indicators(features: FeatureVector) -> RiskIndicators:
    return RiskIndicators(
        engagement_decline=features.engagement_trend < -10 or features.recent_engagement < 40,
        performance_decline=features.score_trend < -5 or features.average_score < 60,
        attendance_issues=features.attendance_rate < 0.7 or features.inactivity_periods > 5,
        social_isolation=features.social_interaction < 0.3,
        # No technical telemetry is collected.
        technical_difficulties=False,
        motivational_issues=features.session_consistency < 0.5 and features.engagement_trend < 0,
        time_management_problems=features.deadline_miss_rate > 0.3,
    )


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)
