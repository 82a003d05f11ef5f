# ABOUTME: Builds the twelve-feature dropout-risk vector from raw learning records.
# ABOUTME: Converts records to pandas frames and degrades every feature to 0 on missing data.

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from typing import Iterable, List, Optional

import numpy as np
import pandas as pd

from .errors import InvariantViolation
from .schemas import ActivityRecord, DailyAnalyticsRecord, FeatureVector, SessionRecord

SOCIAL_ACTIVITY_TYPES = {"DISCUSSION_POST", "CHAT_MESSAGE", "FORUM_POST"}
HELP_ACTIVITY_TYPE = "HELP_REQUEST"

ACTIVITY_COLUMNS = ["student_id", "course_id", "timestamp", "activity_type", "duration", "metadata"]
SESSION_COLUMNS = ["student_id", "course_id", "start_time", "duration"]
ANALYTICS_COLUMNS = [
    "student_id",
    "course_id",
    "date",
    "engagement_score",
    "average_quiz_score",
    "total_time_spent",
]

# Features bounded to [0, 1]; recent_engagement is bounded to [0, 100].
UNIT_RANGE_FEATURES = (
    "attendance_rate",
    "social_interaction",
    "help_seeking_behavior",
    "session_consistency",
    "deadline_miss_rate",
)


@dataclass(frozen=True)
class FeatureWindowConfig:
    """Window sizes and normalizers used by feature extraction."""

    window_days: int = 60
    recent_days: int = 7
    expected_sessions: int = 30
    inactivity_gap_days: float = 3.0
    help_normalizer: float = 10.0
    consistency_variance_scale: float = 10.0


def activities_to_frame(activities: Iterable[ActivityRecord]) -> pd.DataFrame:
    rows = [
        {
            "student_id": a.student_id,
            "course_id": a.course_id,
            "timestamp": a.timestamp,
            "activity_type": a.activity_type,
            "duration": a.duration,
            "metadata": dict(a.metadata or {}),
        }
        for a in activities
    ]
    if not rows:
        return pd.DataFrame(columns=ACTIVITY_COLUMNS)
    df = pd.DataFrame(rows)
    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True, errors="coerce")
    return df.sort_values("timestamp", kind="mergesort").reset_index(drop=True)


def sessions_to_frame(sessions: Iterable[SessionRecord]) -> pd.DataFrame:
    rows = [
        {
            "student_id": s.student_id,
            "course_id": s.course_id,
            "start_time": s.start_time,
            "duration": s.duration,
        }
        for s in sessions
    ]
    if not rows:
        return pd.DataFrame(columns=SESSION_COLUMNS)
    df = pd.DataFrame(rows)
    df["start_time"] = pd.to_datetime(df["start_time"], utc=True, errors="coerce")
    return df.sort_values("start_time", kind="mergesort").reset_index(drop=True)


def analytics_to_frame(analytics: Iterable[DailyAnalyticsRecord]) -> pd.DataFrame:
    rows = [
        {
            "student_id": a.student_id,
            "course_id": a.course_id,
            "date": a.date,
            "engagement_score": a.engagement_score,
            "average_quiz_score": a.average_quiz_score,
            "total_time_spent": a.total_time_spent,
        }
        for a in analytics
    ]
    if not rows:
        return pd.DataFrame(columns=ANALYTICS_COLUMNS)
    df = pd.DataFrame(rows)
    df["date"] = pd.to_datetime(df["date"], utc=True, errors="coerce")
    for col in ("engagement_score", "average_quiz_score", "total_time_spent"):
        df[col] = pd.to_numeric(df[col], errors="coerce")
    df["total_time_spent"] = df["total_time_spent"].fillna(0.0)
    return df.sort_values("date", kind="mergesort").reset_index(drop=True)


def frame_to_activities(df: pd.DataFrame) -> List[ActivityRecord]:
    """Rebuild activity records from a frame (metadata may be a dict or a JSON string)."""
    records = []
    for row in df.to_dict("records"):
        metadata = row.get("metadata")
        if isinstance(metadata, str):
            metadata = json.loads(metadata) if metadata.strip() else {}
        elif not isinstance(metadata, dict):
            metadata = {}
        records.append(
            ActivityRecord(
                student_id=str(row["student_id"]),
                timestamp=pd.Timestamp(row["timestamp"]).to_pydatetime(),
                activity_type=str(row["activity_type"]),
                duration=_optional_float(row.get("duration")),
                course_id=_optional_str(row.get("course_id")),
                metadata=metadata,
            )
        )
    return records


def frame_to_sessions(df: pd.DataFrame) -> List[SessionRecord]:
    return [
        SessionRecord(
            student_id=str(row["student_id"]),
            start_time=pd.Timestamp(row["start_time"]).to_pydatetime(),
            duration=_optional_float(row.get("duration")),
            course_id=_optional_str(row.get("course_id")),
        )
        for row in df.to_dict("records")
    ]


def frame_to_analytics(df: pd.DataFrame) -> List[DailyAnalyticsRecord]:
    return [
        DailyAnalyticsRecord(
            student_id=str(row["student_id"]),
            date=pd.Timestamp(row["date"]).date(),
            engagement_score=float(row["engagement_score"]),
            total_time_spent=_optional_float(row.get("total_time_spent")) or 0.0,
            average_quiz_score=_optional_float(row.get("average_quiz_score")),
            course_id=_optional_str(row.get("course_id")),
        )
        for row in df.to_dict("records")
    ]


def extract_feature_vector(
    student_id: str,
    activities: Iterable[ActivityRecord],
    sessions: Iterable[SessionRecord],
    analytics: Iterable[DailyAnalyticsRecord],
    course_id: Optional[str] = None,
    config: FeatureWindowConfig = FeatureWindowConfig(),
) -> FeatureVector:
    """
    Compute the dropout-risk feature vector for one student.

    Records are expected to be pre-filtered to the trailing window by the caller.
    Empty collections never raise; each affected feature falls back to 0.
    """

    activity_df = activities_to_frame(activities)
    session_df = sessions_to_frame(sessions)
    analytics_df = analytics_to_frame(analytics)

    vector = FeatureVector(
        student_id=student_id,
        course_id=course_id,
        recent_engagement=_clamp(recent_engagement(analytics_df, config.recent_days), 0.0, 100.0),
        engagement_trend=engagement_trend(analytics_df),
        average_score=average_score(analytics_df),
        score_trend=score_trend(analytics_df),
        attendance_rate=_clamp(attendance_rate(session_df, config.expected_sessions), 0.0, 1.0),
        time_spent_trend=time_spent_trend(analytics_df, config.recent_days),
        social_interaction=_clamp(social_interaction(activity_df), 0.0, 1.0),
        help_seeking_behavior=_clamp(help_seeking_behavior(activity_df, config.help_normalizer), 0.0, 1.0),
        session_consistency=_clamp(
            session_consistency(session_df, config.consistency_variance_scale), 0.0, 1.0
        ),
        difficulty_progression=difficulty_progression(activity_df),
        deadline_miss_rate=_clamp(deadline_miss_rate(activity_df), 0.0, 1.0),
        inactivity_periods=float(inactivity_periods(activity_df, session_df, config.inactivity_gap_days)),
    )
    validate_feature_vector(vector)
    return vector


def validate_feature_vector(vector: FeatureVector) -> None:
    """Raise InvariantViolation when any feature is non-finite or outside its documented range."""

    for name, value in vector.as_dict().items():
        if not math.isfinite(value):
            raise InvariantViolation(f"Feature '{name}' is not finite: {value!r}")
    for name in UNIT_RANGE_FEATURES:
        value = getattr(vector, name)
        if not 0.0 <= value <= 1.0:
            raise InvariantViolation(f"Feature '{name}'={value} outside [0, 1]")
    if not 0.0 <= vector.recent_engagement <= 100.0:
        raise InvariantViolation(f"Feature 'recent_engagement'={vector.recent_engagement} outside [0, 100]")
    if vector.inactivity_periods < 0:
        raise InvariantViolation(f"Feature 'inactivity_periods'={vector.inactivity_periods} is negative")


def recent_engagement(analytics_df: pd.DataFrame, recent_days: int = 7) -> float:
    recent = analytics_df["engagement_score"].tail(recent_days).dropna()
    return float(recent.mean()) if not recent.empty else 0.0


def engagement_trend(analytics_df: pd.DataFrame) -> float:
    if len(analytics_df) < 14:
        return 0.0
    return _half_difference(analytics_df["engagement_score"].fillna(0.0))


def average_score(analytics_df: pd.DataFrame) -> float:
    scores = analytics_df["average_quiz_score"].dropna()
    return float(scores.mean()) if not scores.empty else 0.0


def score_trend(analytics_df: pd.DataFrame) -> float:
    scores = analytics_df["average_quiz_score"].dropna()
    if len(scores) < 4:
        return 0.0
    return _half_difference(scores)


def attendance_rate(session_df: pd.DataFrame, expected_sessions: int = 30) -> float:
    if expected_sessions <= 0:
        return 0.0
    return min(len(session_df) / expected_sessions, 1.0)


def time_spent_trend(analytics_df: pd.DataFrame, week_days: int = 7) -> float:
    """Percentage change of mean daily time spent, last week versus first week."""
    if len(analytics_df) < week_days:
        return 0.0
    spent = analytics_df["total_time_spent"]
    first_avg = float(spent.head(week_days).sum()) / week_days
    last_avg = float(spent.tail(week_days).sum()) / week_days
    if first_avg == 0:
        return 0.0
    return ((last_avg - first_avg) / first_avg) * 100


def social_interaction(activity_df: pd.DataFrame) -> float:
    if activity_df.empty:
        return 0.0
    social = activity_df["activity_type"].isin(SOCIAL_ACTIVITY_TYPES).sum()
    return min(float(social) / len(activity_df), 1.0)


def help_seeking_behavior(activity_df: pd.DataFrame, normalizer: float = 10.0) -> float:
    if activity_df.empty:
        return 0.0
    is_help = activity_df["activity_type"] == HELP_ACTIVITY_TYPE
    help_related = activity_df["metadata"].apply(lambda m: bool(_meta(m, "isHelpRelated")))
    return min(float((is_help | help_related).sum()) / normalizer, 1.0)


def session_consistency(session_df: pd.DataFrame, variance_scale: float = 10.0) -> float:
    if len(session_df) < 7:
        return 0.0
    intervals = session_df["start_time"].diff().dropna().dt.total_seconds() / 86400.0
    variance = float(np.var(intervals.to_numpy(dtype=float)))
    # Lower variance = higher consistency
    return max(0.0, 1.0 - variance / variance_scale)


def difficulty_progression(activity_df: pd.DataFrame) -> float:
    if activity_df.empty:
        return 0.0
    levels = [
        float(_meta(m, "difficultyLevel"))
        for m in activity_df["metadata"]
        if _meta(m, "difficultyLevel")
    ]
    if len(levels) < 2:
        return 0.0
    return float(np.diff(levels[-5:]).sum()) / 4


def deadline_miss_rate(activity_df: pd.DataFrame) -> float:
    if activity_df.empty:
        return 0.0
    tagged = [
        m for m in activity_df["metadata"] if _meta(m, "deadline") and _meta(m, "submissionTime")
    ]
    if not tagged:
        return 0.0
    deadlines = pd.to_datetime([m["deadline"] for m in tagged], utc=True)
    submissions = pd.to_datetime([m["submissionTime"] for m in tagged], utc=True)
    missed = int((submissions > deadlines).sum())
    return missed / len(tagged)


def inactivity_periods(
    activity_df: pd.DataFrame, session_df: pd.DataFrame, gap_days: float = 3.0
) -> int:
    """Count gaps longer than `gap_days` between consecutive events of either stream."""
    events = pd.concat(
        [activity_df["timestamp"], session_df["start_time"]], ignore_index=True
    ).dropna()
    if len(events) < 2:
        return 0
    events = pd.to_datetime(events, utc=True).sort_values(kind="mergesort")
    gaps = events.diff().dropna().dt.total_seconds() / 86400.0
    return int((gaps > gap_days).sum())


def _half_difference(values: pd.Series) -> float:
    half = len(values) // 2
    first = values.iloc[:half]
    second = values.iloc[half:]
    return float(second.mean()) - float(first.mean())


def _meta(metadata, key: str):
    if isinstance(metadata, dict):
        return metadata.get(key)
    return None


def _clamp(value: float, low: float, high: float) -> float:
    return min(max(float(value), low), high)


def _optional_float(value) -> Optional[float]:
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return None
    return float(value)


def _optional_str(value) -> Optional[str]:
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return None
    return str(value)
