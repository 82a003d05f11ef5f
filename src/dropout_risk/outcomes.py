# ABOUTME: Forecasts learning outcomes (completion, grade, pace) from the risk feature vector.
# ABOUTME: Shares the feature vector with dropout scoring; every helper is a pure function.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import List, Optional

from src.common.schemas import FeatureVector

BASE_COMPLETION_DAYS = 90


@dataclass(frozen=True)
class LearningOutcomeForecast:
    expected_completion_date: str
    expected_final_grade: float
    struggling_topics: List[str] = field(default_factory=list)
    recommended_pace: str = "moderate"
    success_probability: float = 0.0
    intervention_needs: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class LearningOutcomeReport:
    student_id: str
    course_id: Optional[str]
    forecast: LearningOutcomeForecast
    confidence: float
    generated_at: datetime


def predict_completion_date(features: FeatureVector, today: date) -> str:
    adjustment = (features.recent_engagement + features.average_score + features.attendance_rate * 100) / 3
    adjusted_days = BASE_COMPLETION_DAYS * (100 / max(adjustment, 30))
    return (today + timedelta(days=adjusted_days)).isoformat()


def predict_final_grade(features: FeatureVector) -> float:
    predicted = features.average_score + features.score_trend * 2 + (features.recent_engagement / 100) * 10
    return min(max(predicted, 0.0), 100.0)


def predict_struggling_topics(features: FeatureVector) -> List[str]:
    topics = []
    if features.average_score < 60:
        topics.append("Core Concepts")
    if features.difficulty_progression < 0:
        topics.append("Advanced Topics")
    if features.deadline_miss_rate > 0.3:
        topics.append("Time Management")
    if features.social_interaction < 0.3:
        topics.append("Collaborative Learning")
    return topics


def predict_optimal_pace(features: FeatureVector) -> str:
    pace_score = (features.session_consistency + features.attendance_rate + features.recent_engagement / 100) / 3
    if pace_score > 0.8:
        return "fast"
    if pace_score > 0.5:
        return "moderate"
    return "slow"


def success_probability(features: FeatureVector) -> float:
    """Weighted engagement/performance/behavior blend as a percentage, capped at 95."""
    behavior = (features.attendance_rate + features.session_consistency + (1 - features.deadline_miss_rate)) / 3
    probability = (
        (features.recent_engagement / 100) * 0.3
        + (features.average_score / 100) * 0.4
        + behavior * 0.3
    )
    return min(probability * 100, 95.0)


def predict_intervention_needs(features: FeatureVector) -> List[str]:
    needs = []
    if features.recent_engagement < 50:
        needs.append("Engagement Enhancement")
    if features.average_score < 60:
        needs.append("Academic Support")
    if features.attendance_rate < 0.7:
        needs.append("Attendance Monitoring")
    if features.social_interaction < 0.3:
        needs.append("Social Integration")
    if features.deadline_miss_rate > 0.3:
        needs.append("Time Management Training")
    if features.help_seeking_behavior < 0.3:
        needs.append("Help-Seeking Encouragement")
    return needs


def forecast_learning_outcomes(features: FeatureVector, today: date) -> LearningOutcomeForecast:
    return LearningOutcomeForecast(
        expected_completion_date=predict_completion_date(features, today),
        expected_final_grade=predict_final_grade(features),
        struggling_topics=predict_struggling_topics(features),
        recommended_pace=predict_optimal_pace(features),
        success_probability=success_probability(features),
        intervention_needs=predict_intervention_needs(features),
    )
