# ABOUTME: Defines the Prediction aggregate, alert event, and batch scan results.
# ABOUTME: Serializes predictions to cache-friendly dicts and renders them for humans.

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from .ensemble import RiskLevel
from .factors import ProtectiveFactor, RiskFactor, RiskIndicators
from .recommendation import Recommendation
from .timeline import TimelineProjection


@dataclass(frozen=True)
class HistoricalComparison:
    similar_cases_count: int
    successful_intervention_rate: float
    average_recovery_time: int  # days


def compare_with_history(risk_score: float, similar_cases_count: int = 0) -> HistoricalComparison:
    return HistoricalComparison(
        similar_cases_count=int(similar_cases_count),
        # Higher risk = lower success rate
        successful_intervention_rate=max(0.3, 1 - risk_score / 150),
        average_recovery_time=math.floor((risk_score / 10) * 7) + 14,
    )


@dataclass(frozen=True)
class Prediction:
    """Dropout-risk prediction for one student; never mutated after creation."""

    student_id: str
    course_id: Optional[str]
    risk_score: float
    risk_level: RiskLevel
    factors: Tuple[RiskFactor, ...]
    protective_factors: Tuple[ProtectiveFactor, ...]
    indicators: RiskIndicators
    recommendations: Tuple[Recommendation, ...]
    confidence: float
    timeline: TimelineProjection
    historical_comparison: HistoricalComparison
    generated_at: datetime
    model_scores: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "studentId": self.student_id,
            "courseId": self.course_id,
            "riskScore": self.risk_score,
            "riskLevel": self.risk_level.value,
            "factors": [
                {"factor": f.name, "weight": f.weight, "description": f.description, "severity": f.severity}
                for f in self.factors
            ],
            "protectiveFactors": [
                {"factor": f.name, "strength": f.strength, "description": f.description}
                for f in self.protective_factors
            ],
            "indicators": self.indicators.to_dict(),
            "recommendations": [
                {
                    "type": r.type,
                    "priority": r.priority,
                    "action": r.action,
                    "description": r.description,
                    "expectedImpact": r.expected_impact,
                }
                for r in self.recommendations
            ],
            "confidence": self.confidence,
            "timeline": {
                "riskIncrease30Days": self.timeline.risk_increase_30_days,
                "riskIncrease60Days": self.timeline.risk_increase_60_days,
                "riskIncrease90Days": self.timeline.risk_increase_90_days,
                "criticalPoint": self.timeline.critical_point,
            },
            "historicalComparison": {
                "similarCasesCount": self.historical_comparison.similar_cases_count,
                "successfulInterventionRate": self.historical_comparison.successful_intervention_rate,
                "averageRecoveryTime": self.historical_comparison.average_recovery_time,
            },
            "modelScores": dict(self.model_scores),
            "generatedAt": self.generated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Prediction":
        indicators = data["indicators"]
        timeline = data["timeline"]
        history = data["historicalComparison"]
        return cls(
            student_id=data["studentId"],
            course_id=data.get("courseId"),
            risk_score=float(data["riskScore"]),
            risk_level=RiskLevel(data["riskLevel"]),
            factors=tuple(
                RiskFactor(name=f["factor"], weight=f["weight"], description=f["description"], severity=f["severity"])
                for f in data["factors"]
            ),
            protective_factors=tuple(
                ProtectiveFactor(name=f["factor"], strength=f["strength"], description=f["description"])
                for f in data["protectiveFactors"]
            ),
            indicators=RiskIndicators(
                engagement_decline=indicators["engagementDecline"],
                performance_decline=indicators["performanceDecline"],
                attendance_issues=indicators["attendanceIssues"],
                social_isolation=indicators["socialIsolation"],
                technical_difficulties=indicators["technicalDifficulties"],
                motivational_issues=indicators["motivationalIssues"],
                time_management_problems=indicators["timeManagementProblems"],
            ),
            recommendations=tuple(
                Recommendation(
                    type=r["type"],
                    priority=r["priority"],
                    action=r["action"],
                    description=r["description"],
                    expected_impact=r["expectedImpact"],
                )
                for r in data["recommendations"]
            ),
            confidence=float(data["confidence"]),
            timeline=TimelineProjection(
                risk_increase_30_days=timeline["riskIncrease30Days"],
                risk_increase_60_days=timeline["riskIncrease60Days"],
                risk_increase_90_days=timeline["riskIncrease90Days"],
                critical_point=timeline.get("criticalPoint"),
            ),
            historical_comparison=HistoricalComparison(
                similar_cases_count=history["similarCasesCount"],
                successful_intervention_rate=history["successfulInterventionRate"],
                average_recovery_time=history["averageRecoveryTime"],
            ),
            generated_at=datetime.fromisoformat(data["generatedAt"]),
            model_scores=dict(data.get("modelScores", {})),
        )


@dataclass(frozen=True)
class RiskAlert:
    """Event published when a prediction lands in HIGH or CRITICAL."""

    student_id: str
    course_id: Optional[str]
    risk_score: float
    risk_level: RiskLevel
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "studentId": self.student_id,
            "courseId": self.course_id,
            "riskScore": self.risk_score,
            "riskLevel": self.risk_level.value,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class PredictionFailure:
    student_id: str
    error: str


@dataclass(frozen=True)
class BatchScanResult:
    """At-risk predictions sorted by risk score, plus learners whose prediction failed."""

    predictions: List[Prediction]
    failures: List[PredictionFailure] = field(default_factory=list)


def format_prediction(prediction: Prediction) -> str:
    """Render a prediction as a human-readable block."""
    lines = [
        "━" * 60,
        f"Student: {prediction.student_id}",
        f"Course: {prediction.course_id or 'all'}",
        f"Risk: {prediction.risk_score:.1f} ({prediction.risk_level.value}, "
        f"confidence {prediction.confidence:.0f}%)",
        "",
        "RISK FACTORS:",
    ]
    if prediction.factors:
        for factor in prediction.factors:
            lines.append(f"  [{factor.severity}] {factor.name}: {factor.description}")
    else:
        lines.append("  None detected.")

    lines.extend(["", "PROTECTIVE FACTORS:"])
    if prediction.protective_factors:
        for factor in prediction.protective_factors:
            lines.append(f"  {factor.name} ({factor.strength:.0%}): {factor.description}")
    else:
        lines.append("  None detected.")

    timeline = prediction.timeline
    lines.extend(
        [
            "",
            "PROJECTED RISK:",
            f"  30d {timeline.risk_increase_30_days:.1f} | 60d {timeline.risk_increase_60_days:.1f} "
            f"| 90d {timeline.risk_increase_90_days:.1f}",
        ]
    )
    if timeline.critical_point:
        lines.append(f"  Critical point: {timeline.critical_point}")

    lines.extend(["", "RECOMMENDATIONS:"])
    for rec in prediction.recommendations:
        lines.append(f"  ({rec.priority}/{rec.type}) {rec.action}: {rec.description}")
    lines.append("━" * 60)
    return "\n".join(lines)
