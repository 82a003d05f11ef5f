# ABOUTME: Implements the four hand-tuned dropout-risk scorers used by the ensemble.
# ABOUTME: Each scorer is a pure function from a FeatureVector to a 0-100 risk estimate.

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict

import numpy as np

from src.common.schemas import FeatureVector

LOGISTIC_INTERCEPT = 50.0
LOGISTIC_SCALE = 20.0
LOGISTIC_COEFFICIENTS: Dict[str, float] = {
    "recent_engagement": -0.8,
    "engagement_trend": -1.2,
    "average_score": -0.6,
    "score_trend": -1.0,
    "attendance_rate": -0.9,
    "time_spent_trend": -0.7,
    "social_interaction": -0.4,
    "help_seeking_behavior": -0.3,
    "session_consistency": -0.5,
    "difficulty_progression": 0.2,
    "deadline_miss_rate": 1.5,
    "inactivity_periods": 1.8,
}

# Hidden layer: 4 neurons x 12 inputs, ordered as schemas.FEATURE_NAMES.
HIDDEN_WEIGHTS = np.array(
    [
        [-0.5, 0.3, -0.4, 0.2, -0.6, 0.1, -0.3, -0.2, -0.4, 0.3, 0.8, 0.9],
        [-0.7, -0.4, -0.5, -0.3, -0.8, -0.2, -0.1, 0.1, -0.3, 0.2, 0.6, 0.7],
        [-0.3, -0.6, -0.2, -0.5, -0.4, -0.3, 0.0, -0.1, -0.2, 0.1, 0.5, 0.8],
        [0.2, -0.3, 0.1, -0.2, -0.1, 0.0, 0.2, 0.3, 0.1, -0.1, 0.4, 0.3],
    ]
)
HIDDEN_BIAS = np.array([0.1, 0.2, 0.15, 0.05])
OUTPUT_WEIGHTS = np.array([0.6, 0.8, 0.7, 0.4])
OUTPUT_BIAS = 0.3
# Divisors bringing each input to roughly unit scale.
INPUT_SCALE = np.array([100.0, 50.0, 100.0, 50.0, 1.0, 50.0, 1.0, 1.0, 1.0, 50.0, 1.0, 10.0])

BOOSTING_BASE = 40.0
EXPECTED_ENGAGEMENT = 70.0
EXPECTED_PERFORMANCE = 75.0
EXPECTED_BEHAVIOR = 70.0


@dataclass(frozen=True)
class ScoringModel:
    """A named scoring function."""

    name: str
    score: Callable[[FeatureVector], float]


def _sigmoid(x):
    return 1.0 / (1.0 + np.exp(-x))


def logistic_regression_score(features: FeatureVector) -> float:
    linear = LOGISTIC_INTERCEPT
    for name, coef in LOGISTIC_COEFFICIENTS.items():
        linear += getattr(features, name) * coef
    # Clip keeps exp() finite for extreme trend values.
    probability = _sigmoid(np.clip(linear / LOGISTIC_SCALE, -500.0, 500.0))
    return float(probability * 100)


def rule_tree_score(features: FeatureVector) -> float:
    risk = 30.0

    # Engagement branch
    if features.recent_engagement < 40:
        risk += 20
        if features.engagement_trend < -10:
            risk += 15

    # Performance branch
    if features.average_score < 60:
        risk += 15
        if features.score_trend < -5:
            risk += 10

    # Attendance branch
    if features.attendance_rate < 0.7:
        risk += 12
        if features.inactivity_periods > 5:
            risk += 8

    # Behavior branch
    if features.deadline_miss_rate > 0.3:
        risk += 10
    if features.social_interaction < 0.2:
        risk += 5

    return min(risk, 100.0)


def neural_network_score(features: FeatureVector) -> float:
    """Single hidden layer forward pass with fixed weights and sigmoid activations."""
    inputs = np.array(features.values(), dtype=float) / INPUT_SCALE
    hidden = _sigmoid(np.clip(HIDDEN_WEIGHTS @ inputs + HIDDEN_BIAS, -500.0, 500.0))
    output = _sigmoid(float(OUTPUT_WEIGHTS @ hidden) + OUTPUT_BIAS)
    return float(output * 100)


def gradient_boosting_score(features: FeatureVector) -> float:
    prediction = BOOSTING_BASE
    prediction += engagement_residual(features) * 0.3
    prediction += performance_residual(features) * 0.25
    prediction += behavior_residual(features) * 0.2
    return min(max(prediction, 0.0), 100.0)


def engagement_residual(features: FeatureVector) -> float:
    return (EXPECTED_ENGAGEMENT - features.recent_engagement) / 10


def performance_residual(features: FeatureVector) -> float:
    return (EXPECTED_PERFORMANCE - features.average_score) / 10


def behavior_score(features: FeatureVector) -> float:
    """Composite 0-100 behavior score from attendance, consistency, deadlines, and social signals."""
    return (
        features.attendance_rate * 30
        + features.session_consistency * 25
        + (1 - features.deadline_miss_rate) * 20
        + features.social_interaction * 15
        + features.help_seeking_behavior * 10
    )


def behavior_residual(features: FeatureVector) -> float:
    return (EXPECTED_BEHAVIOR - behavior_score(features)) / 10


DEFAULT_MODELS = (
    ScoringModel("logistic_regression", logistic_regression_score),
    ScoringModel("random_forest", rule_tree_score),
    ScoringModel("neural_network", neural_network_score),
    ScoringModel("gradient_boosting", gradient_boosting_score),
)
