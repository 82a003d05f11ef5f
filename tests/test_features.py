# ABOUTME: Tests feature extraction from activity, session, and daily analytics records.
# ABOUTME: Covers empty inputs, each feature formula, clamping, and determinism.

from datetime import date, datetime, timedelta, timezone

import pytest

from src.common.errors import InvariantViolation
from src.common.features import FeatureWindowConfig, extract_feature_vector, validate_feature_vector
from src.common.schemas import (
    FEATURE_NAMES,
    ActivityRecord,
    DailyAnalyticsRecord,
    FeatureVector,
    SessionRecord,
)

START = datetime(2024, 1, 1, 9, tzinfo=timezone.utc)


def _activity(day: float, activity_type: str = "QUIZ_ATTEMPT", **metadata) -> ActivityRecord:
    return ActivityRecord(
        student_id="s1",
        timestamp=START + timedelta(days=day),
        activity_type=activity_type,
        metadata=metadata,
    )


def _session(day: float) -> SessionRecord:
    return SessionRecord(student_id="s1", start_time=START + timedelta(days=day), duration=1800)


def _analytics(day: int, engagement: float, time_spent: float = 60.0, quiz=None) -> DailyAnalyticsRecord:
    return DailyAnalyticsRecord(
        student_id="s1",
        date=date(2024, 1, 1) + timedelta(days=day),
        engagement_score=engagement,
        total_time_spent=time_spent,
        average_quiz_score=quiz,
    )


def test_empty_records_yield_zero_vector():
    vector = extract_feature_vector("s1", [], [], [], course_id="c1")

    assert vector.student_id == "s1"
    assert vector.course_id == "c1"
    assert vector.values() == [0.0] * len(FEATURE_NAMES)


def test_engagement_and_time_spent_trends_use_halves_and_weeks():
    analytics = [_analytics(d, 80.0, time_spent=60.0) for d in range(7)]
    analytics += [_analytics(d, 40.0, time_spent=30.0) for d in range(7, 14)]

    vector = extract_feature_vector("s1", [], [], analytics)

    assert vector.recent_engagement == pytest.approx(40.0)
    assert vector.engagement_trend == pytest.approx(-40.0)
    assert vector.time_spent_trend == pytest.approx(-50.0)


def test_engagement_trend_requires_two_weeks_of_data():
    analytics = [_analytics(d, 90.0 - d * 5) for d in range(13)]

    vector = extract_feature_vector("s1", [], [], analytics)

    assert vector.engagement_trend == 0.0


def test_time_spent_trend_is_zero_when_first_week_has_no_time():
    analytics = [_analytics(d, 50.0, time_spent=0.0) for d in range(7)]
    analytics += [_analytics(d, 50.0, time_spent=30.0) for d in range(7, 10)]

    vector = extract_feature_vector("s1", [], [], analytics)

    assert vector.time_spent_trend == 0.0


def test_scores_ignore_days_without_quizzes():
    analytics = [
        _analytics(0, 50, quiz=80.0),
        _analytics(1, 50, quiz=None),
        _analytics(2, 50, quiz=80.0),
        _analytics(3, 50, quiz=60.0),
        _analytics(4, 50, quiz=60.0),
    ]

    vector = extract_feature_vector("s1", [], [], analytics)

    assert vector.average_score == pytest.approx(70.0)
    assert vector.score_trend == pytest.approx(-20.0)


def test_attendance_rate_is_capped_at_one():
    sessions = [_session(d * 0.5) for d in range(45)]

    vector = extract_feature_vector("s1", [], sessions, [])

    assert vector.attendance_rate == 1.0


def test_attendance_rate_uses_expected_sessions():
    sessions = [_session(d) for d in range(6)]

    vector = extract_feature_vector("s1", [], sessions, [], config=FeatureWindowConfig(expected_sessions=12))

    assert vector.attendance_rate == pytest.approx(0.5)


def test_session_consistency_penalizes_interval_variance():
    regular = [_session(d) for d in range(8)]
    irregular = [_session(d) for d in (0, 1, 2, 3, 4, 5, 9)]

    assert extract_feature_vector("s1", [], regular, []).session_consistency == pytest.approx(1.0)
    # Intervals [1, 1, 1, 1, 1, 4] have variance 1.25.
    assert extract_feature_vector("s1", [], irregular, []).session_consistency == pytest.approx(0.875)


def test_session_consistency_needs_seven_sessions():
    sessions = [_session(d) for d in range(6)]

    assert extract_feature_vector("s1", [], sessions, []).session_consistency == 0.0


def test_activity_mix_features():
    activities = [
        _activity(0, "FORUM_POST"),
        _activity(0.1, "HELP_REQUEST"),
        _activity(0.2, "HELP_REQUEST"),
        _activity(0.3, "QUIZ_ATTEMPT", isHelpRelated=True),
    ]

    vector = extract_feature_vector("s1", activities, [], [])

    assert vector.social_interaction == pytest.approx(0.25)
    assert vector.help_seeking_behavior == pytest.approx(0.3)


def test_help_seeking_is_capped_at_one():
    activities = [_activity(i * 0.01, "HELP_REQUEST") for i in range(25)]

    assert extract_feature_vector("s1", activities, [], []).help_seeking_behavior == 1.0


def test_difficulty_progression_uses_last_five_tagged_activities():
    activities = [_activity(i * 0.1, difficultyLevel=level) for i, level in enumerate([5, 1, 2, 3, 4, 5])]
    activities.append(_activity(1.0))

    vector = extract_feature_vector("s1", activities, [], [])

    # Last five levels 1..5 rise by 4 in total.
    assert vector.difficulty_progression == pytest.approx(1.0)


def test_deadline_miss_rate_counts_late_submissions():
    activities = [
        _activity(0, deadline="2024-01-05T00:00:00Z", submissionTime="2024-01-04T12:00:00Z"),
        _activity(1, deadline="2024-01-05T00:00:00Z", submissionTime="2024-01-06T12:00:00Z"),
        _activity(2, deadline="2024-01-05T00:00:00Z"),
    ]

    vector = extract_feature_vector("s1", activities, [], [])

    assert vector.deadline_miss_rate == pytest.approx(0.5)


def test_inactivity_periods_merge_activity_and_session_timelines():
    activities = [_activity(0), _activity(10)]
    sessions = [_session(5)]

    vector = extract_feature_vector("s1", activities, sessions, [])

    # Gaps of 5 and 5 days; a 3-day gap would not count.
    assert vector.inactivity_periods == 2.0
    assert extract_feature_vector("s1", [_activity(0), _activity(3)], [], []).inactivity_periods == 0.0


def test_extraction_is_deterministic():
    activities = [_activity(i * 1.7, "CHAT_MESSAGE" if i % 3 == 0 else "QUIZ_ATTEMPT") for i in range(20)]
    sessions = [_session(i * 2.3) for i in range(15)]
    analytics = [_analytics(d, 30 + (d * 7) % 50, time_spent=10 + d, quiz=50 + d % 9) for d in range(40)]

    first = extract_feature_vector("s1", activities, sessions, analytics)
    second = extract_feature_vector("s1", list(reversed(activities)), sessions, list(reversed(analytics)))

    assert first == second


def test_validate_feature_vector_rejects_out_of_range_rates():
    with pytest.raises(InvariantViolation):
        validate_feature_vector(FeatureVector(student_id="s1", attendance_rate=1.2))
    with pytest.raises(InvariantViolation):
        validate_feature_vector(FeatureVector(student_id="s1", recent_engagement=float("nan")))
