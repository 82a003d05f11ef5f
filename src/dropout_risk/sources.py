# ABOUTME: Declares the record source, prediction cache, and alert sink collaborators.
# ABOUTME: Ships in-memory implementations backed by pandas frames, a TTL dict, and a queue.

from __future__ import annotations

import asyncio
import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple

import pandas as pd

from src.common.features import (
    ACTIVITY_COLUMNS,
    ANALYTICS_COLUMNS,
    SESSION_COLUMNS,
    frame_to_activities,
    frame_to_analytics,
    frame_to_sessions,
)
from src.common.schemas import ActivityRecord, DailyAnalyticsRecord, SessionRecord

from .prediction import RiskAlert


class RecordSource(Protocol):
    async def fetch_activities(
        self, student_id: str, course_id: Optional[str], start: datetime, end: datetime
    ) -> Sequence[ActivityRecord]: ...

    async def fetch_sessions(
        self, student_id: str, course_id: Optional[str], start: datetime, end: datetime
    ) -> Sequence[SessionRecord]: ...

    async def fetch_daily_analytics(
        self, student_id: str, course_id: Optional[str], start: datetime, end: datetime
    ) -> Sequence[DailyAnalyticsRecord]: ...

    async def list_active_students(self, course_id: Optional[str], since: datetime) -> Sequence[str]: ...


class PredictionCache(Protocol):
    async def get(self, key: str) -> Optional[Dict[str, Any]]: ...

    async def set(self, key: str, value: Dict[str, Any], ttl_seconds: int) -> None: ...

    async def delete(self, key: str) -> None: ...


class AlertSink(Protocol):
    async def publish(self, alert: RiskAlert) -> None: ...


class FrameRecordSource:
    """
    RecordSource over in-memory pandas frames.

    Frames use the column layouts in src.common.features; timestamps are read as UTC.
    Sessions carry no course column in practice, so they are filtered by student only,
    matching how sessions are recorded across courses.
    """

    def __init__(
        self,
        activities: Optional[pd.DataFrame] = None,
        sessions: Optional[pd.DataFrame] = None,
        analytics: Optional[pd.DataFrame] = None,
    ):
        self.activities = _prepare(activities, ACTIVITY_COLUMNS, "timestamp")
        self.sessions = _prepare(sessions, SESSION_COLUMNS, "start_time")
        self.analytics = _prepare(analytics, ANALYTICS_COLUMNS, "date")

    async def fetch_activities(self, student_id, course_id, start, end) -> List[ActivityRecord]:
        rows = _select(self.activities, "timestamp", student_id, course_id, start, end)
        return frame_to_activities(rows)

    async def fetch_sessions(self, student_id, course_id, start, end) -> List[SessionRecord]:
        rows = _select(self.sessions, "start_time", student_id, None, start, end)
        return frame_to_sessions(rows)

    async def fetch_daily_analytics(self, student_id, course_id, start, end) -> List[DailyAnalyticsRecord]:
        rows = _select(self.analytics, "date", student_id, course_id, start, end)
        return frame_to_analytics(rows)

    async def list_active_students(self, course_id, since) -> List[str]:
        df = self.analytics[self.analytics["date"] >= _utc(since)]
        if course_id is not None:
            df = df[df["course_id"] == course_id]
        return sorted(df["student_id"].astype(str).unique().tolist())


class InMemoryTTLCache:
    """Key -> value store with per-entry expiry. Concurrent writers: last write wins."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Dict[str, Any]]] = {}

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: Dict[str, Any], ttl_seconds: int) -> None:
        self._entries[key] = (self._clock() + ttl_seconds, value)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)


class QueueAlertSink:
    """Collects alerts on an asyncio queue for a downstream notifier to drain."""

    def __init__(self, maxsize: int = 0):
        self.queue: "asyncio.Queue[RiskAlert]" = asyncio.Queue(maxsize=maxsize)

    async def publish(self, alert: RiskAlert) -> None:
        await self.queue.put(alert)

    def drain(self) -> List[RiskAlert]:
        alerts = []
        while not self.queue.empty():
            alerts.append(self.queue.get_nowait())
        return alerts


def _prepare(df: Optional[pd.DataFrame], columns: List[str], time_col: str) -> pd.DataFrame:
    if df is None:
        df = pd.DataFrame(columns=columns)
    df = df.copy()
    for col in columns:
        if col not in df.columns:
            df[col] = None
    df[time_col] = pd.to_datetime(df[time_col], utc=True, errors="coerce")
    return df


def _select(
    df: pd.DataFrame,
    time_col: str,
    student_id: str,
    course_id: Optional[str],
    start: datetime,
    end: datetime,
) -> pd.DataFrame:
    mask = (df["student_id"].astype(str) == student_id) & df[time_col].between(_utc(start), _utc(end))
    if course_id is not None:
        mask &= df["course_id"] == course_id
    return df[mask].sort_values(time_col, kind="mergesort")


def _utc(value: datetime) -> pd.Timestamp:
    ts = pd.Timestamp(value)
    return ts.tz_localize("UTC") if ts.tzinfo is None else ts.tz_convert("UTC")
