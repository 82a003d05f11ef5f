# ABOUTME: Projects a student's risk score 30, 60, and 90 days ahead from current trends.
# ABOUTME: Flags the first horizon where projected risk reaches the critical threshold.

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from src.common.schemas import FeatureVector

from .ensemble import CRITICAL_THRESHOLD

HORIZONS = ((30, 0.5), (60, 1.0), (90, 1.5))


@dataclass(frozen=True)
class TimelineProjection:
    risk_increase_30_days: float
    risk_increase_60_days: float
    risk_increase_90_days: float
    critical_point: Optional[str] = None  # ISO date


def trend_factor(features: FeatureVector) -> float:
    return (features.engagement_trend + features.score_trend + features.time_spent_trend) / 3


def project_risk_timeline(
    features: FeatureVector, current_risk: float, today: date
) -> TimelineProjection:
    trend = trend_factor(features)

    projections = []
    critical_point = None
    for days, multiplier in HORIZONS:
        projected = max(0.0, current_risk + trend * multiplier)
        if critical_point is None and projected >= CRITICAL_THRESHOLD:
            critical_point = (today + timedelta(days=days)).isoformat()
        projections.append(min(projected, 100.0))

    return TimelineProjection(
        risk_increase_30_days=projections[0],
        risk_increase_60_days=projections[1],
        risk_increase_90_days=projections[2],
        critical_point=critical_point,
    )
