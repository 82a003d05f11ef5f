# ABOUTME: Defines canonical record structures consumed by the dropout-risk engine.
# ABOUTME: Centralizes activity, session, daily analytics, and feature vector definitions.

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional

FEATURE_NAMES = (
    "recent_engagement",
    "engagement_trend",
    "average_score",
    "score_trend",
    "attendance_rate",
    "time_spent_trend",
    "social_interaction",
    "help_seeking_behavior",
    "session_consistency",
    "difficulty_progression",
    "deadline_miss_rate",
    "inactivity_periods",
)


@dataclass(frozen=True)
class ActivityRecord:
    """Single learning activity event (quiz submission, forum post, help request...)."""

    student_id: str
    timestamp: datetime
    activity_type: str
    duration: Optional[float] = None
    course_id: Optional[str] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SessionRecord:
    """Learning session with its start time and optional duration in seconds."""

    student_id: str
    start_time: datetime
    duration: Optional[float] = None
    course_id: Optional[str] = None


@dataclass(frozen=True)
class DailyAnalyticsRecord:
    """Per-day analytics rollup for a student."""

    student_id: str
    date: date
    engagement_score: float
    total_time_spent: float = 0.0
    average_quiz_score: Optional[float] = None
    course_id: Optional[str] = None


@dataclass(frozen=True)
class FeatureVector:
    """Fixed-size numeric summary of a student's recent behavior."""

    student_id: str
    recent_engagement: float = 0.0
    engagement_trend: float = 0.0
    average_score: float = 0.0
    score_trend: float = 0.0
    attendance_rate: float = 0.0
    time_spent_trend: float = 0.0
    social_interaction: float = 0.0
    help_seeking_behavior: float = 0.0
    session_consistency: float = 0.0
    difficulty_progression: float = 0.0
    deadline_miss_rate: float = 0.0
    inactivity_periods: float = 0.0
    course_id: Optional[str] = None

    def values(self) -> List[float]:
        return [float(getattr(self, name)) for name in FEATURE_NAMES]

    def as_dict(self) -> Dict[str, float]:
        return {name: float(getattr(self, name)) for name in FEATURE_NAMES}
