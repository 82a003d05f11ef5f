# ABOUTME: Connects the engine's cache and alert collaborators to Redis and NATS.
# ABOUTME: Values travel as JSON so any worker can read predictions another worker cached.

from __future__ import annotations

import json
from typing import Any, Dict, Optional

import nats
import redis.asyncio as redis
from loguru import logger

from .prediction import RiskAlert

DEFAULT_ALERT_SUBJECT = "dropout.risk.high"


class RedisPredictionCache:
    """PredictionCache backed by redis.asyncio; expiry is delegated to Redis (SET EX)."""

    def __init__(self, client: "redis.Redis", prefix: str = ""):
        self.client = client
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str = "") -> "RedisPredictionCache":
        return cls(redis.from_url(url, encoding="utf-8", decode_responses=True), prefix=prefix)

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        raw = await self.client.get(self.prefix + key)
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Dict[str, Any], ttl_seconds: int) -> None:
        await self.client.set(self.prefix + key, json.dumps(value), ex=ttl_seconds)

    async def delete(self, key: str) -> None:
        await self.client.delete(self.prefix + key)

    async def close(self) -> None:
        await self.client.aclose()


class NatsAlertPublisher:
    """AlertSink publishing alerts as JSON to a NATS subject."""

    def __init__(self, connection, subject: str = DEFAULT_ALERT_SUBJECT):
        self.connection = connection
        self.subject = subject

    @classmethod
    async def connect(cls, url: str, subject: str = DEFAULT_ALERT_SUBJECT) -> "NatsAlertPublisher":
        connection = await nats.connect(url, name="dropout_risk_engine")
        return cls(connection, subject=subject)

    async def publish(self, alert: RiskAlert) -> None:
        payload = json.dumps(alert.to_dict()).encode()
        await self.connection.publish(self.subject, payload)
        logger.info(f"Published {alert.risk_level.value} alert for student {alert.student_id} to '{self.subject}'")

    async def close(self) -> None:
        if self.connection.is_connected:
            await self.connection.close()
