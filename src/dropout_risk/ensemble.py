# ABOUTME: Combines scorer outputs into one risk score and maps it to a risk level.
# ABOUTME: Also derives model agreement, data quality, and reported confidence.

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Mapping, Optional, Sequence

import numpy as np

from src.common.errors import InvariantViolation
from src.common.schemas import FeatureVector

from .models import DEFAULT_MODELS, ScoringModel

CRITICAL_THRESHOLD = 85.0
HIGH_THRESHOLD = 70.0
MEDIUM_THRESHOLD = 50.0

ZERO_FEATURE_PENALTY = 0.05
MIN_DATA_QUALITY = 0.3
MAX_CONFIDENCE = 0.95


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


@dataclass(frozen=True)
class EnsembleResult:
    model_scores: Dict[str, float]
    risk_score: float
    agreement: float


def score_models(
    features: FeatureVector, models: Sequence[ScoringModel] = DEFAULT_MODELS
) -> Dict[str, float]:
    """Run every scorer and check its output lies in [0, 100]."""
    scores: Dict[str, float] = {}
    for model in models:
        value = float(model.score(features))
        if not math.isfinite(value) or not 0.0 <= value <= 100.0:
            raise InvariantViolation(f"Model '{model.name}' returned {value!r}, expected [0, 100]")
        scores[model.name] = value
    return scores


def combine_scores(scores: Sequence[float], weights: Optional[Sequence[float]] = None) -> float:
    """Weighted average of scorer outputs, clamped to [0, 100]. Defaults to equal weights."""
    if not scores:
        raise ValueError("At least one model score is required.")
    if weights is None:
        weights = [1.0 / len(scores)] * len(scores)
    if len(weights) != len(scores):
        raise ValueError(f"Expected {len(scores)} weights, got {len(weights)}.")
    if not math.isclose(sum(weights), 1.0, abs_tol=1e-9):
        raise ValueError(f"Model weights must sum to 1.0, got {sum(weights)}.")
    weighted = sum(score * weight for score, weight in zip(scores, weights))
    return min(max(weighted, 0.0), 100.0)


def model_agreement(scores: Sequence[float]) -> float:
    """Inverse-variance agreement: 1.0 when scorers concur, falling to 0 as they diverge."""
    if not scores:
        return 0.0
    variance = float(np.var(np.asarray(scores, dtype=float)))
    return max(0.0, 1.0 - variance / 1000.0)


def run_ensemble(
    features: FeatureVector,
    models: Sequence[ScoringModel] = DEFAULT_MODELS,
    weights: Optional[Sequence[float]] = None,
) -> EnsembleResult:
    model_scores = score_models(features, models)
    values = list(model_scores.values())
    return EnsembleResult(
        model_scores=model_scores,
        risk_score=combine_scores(values, weights),
        agreement=model_agreement(values),
    )


def classify_risk_level(risk_score: float) -> RiskLevel:
    if risk_score >= CRITICAL_THRESHOLD:
        return RiskLevel.CRITICAL
    if risk_score >= HIGH_THRESHOLD:
        return RiskLevel.HIGH
    if risk_score >= MEDIUM_THRESHOLD:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def assess_data_quality(features: FeatureVector | Mapping[str, float]) -> float:
    """Start at 1.0 and subtract a fixed penalty per zero-valued feature, floored at 0.3."""
    values = features.values() if isinstance(features, FeatureVector) else list(features.values())
    quality = 1.0
    for value in values:
        if value is None or value == 0:
            quality -= ZERO_FEATURE_PENALTY
    return max(quality, MIN_DATA_QUALITY)


def calculate_confidence(data_quality: float, agreement: float) -> float:
    """Confidence percentage; never exceeds 95."""
    return min(data_quality * 0.6 + agreement * 0.4, MAX_CONFIDENCE) * 100
