# ABOUTME: Tests the Redis cache and NATS alert adapters against mocked clients.
# ABOUTME: Confirms JSON encoding, key prefixes, expiry, and connection shutdown.

import asyncio
import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

from src.dropout_risk.adapters import NatsAlertPublisher, RedisPredictionCache
from src.dropout_risk.ensemble import RiskLevel
from src.dropout_risk.prediction import RiskAlert


def test_redis_cache_round_trips_json_with_expiry():
    client = MagicMock()
    client.set = AsyncMock()
    client.get = AsyncMock(return_value=json.dumps({"riskScore": 81.5}))
    cache = RedisPredictionCache(client, prefix="test:")

    asyncio.run(cache.set("dropout_prediction:s1:all", {"riskScore": 81.5}, ttl_seconds=3600))
    value = asyncio.run(cache.get("dropout_prediction:s1:all"))

    client.set.assert_awaited_once_with(
        "test:dropout_prediction:s1:all", json.dumps({"riskScore": 81.5}), ex=3600
    )
    client.get.assert_awaited_once_with("test:dropout_prediction:s1:all")
    assert value == {"riskScore": 81.5}


def test_redis_cache_miss_and_delete():
    client = MagicMock()
    client.get = AsyncMock(return_value=None)
    client.delete = AsyncMock()
    client.aclose = AsyncMock()
    cache = RedisPredictionCache(client)

    assert asyncio.run(cache.get("missing")) is None
    asyncio.run(cache.delete("missing"))
    asyncio.run(cache.close())

    client.delete.assert_awaited_once_with("missing")
    client.aclose.assert_awaited_once()


def test_redis_cache_from_url_decodes_responses():
    with patch("src.dropout_risk.adapters.redis.from_url") as from_url:
        cache = RedisPredictionCache.from_url("redis://localhost:6379/0", prefix="p:")

    from_url.assert_called_once_with("redis://localhost:6379/0", encoding="utf-8", decode_responses=True)
    assert cache.client is from_url.return_value
    assert cache.prefix == "p:"


def test_nats_publisher_sends_alert_json():
    connection = MagicMock()
    connection.publish = AsyncMock()
    publisher = NatsAlertPublisher(connection, subject="alerts.dropout")
    alert = RiskAlert(
        student_id="s1",
        course_id="c1",
        risk_score=88.0,
        risk_level=RiskLevel.CRITICAL,
        timestamp=datetime(2024, 3, 1, tzinfo=timezone.utc),
    )

    asyncio.run(publisher.publish(alert))

    subject, payload = connection.publish.await_args.args
    assert subject == "alerts.dropout"
    assert json.loads(payload.decode()) == {
        "studentId": "s1",
        "courseId": "c1",
        "riskScore": 88.0,
        "riskLevel": "CRITICAL",
        "timestamp": "2024-03-01T00:00:00+00:00",
    }


def test_nats_publisher_connect_and_close():
    connection = MagicMock()
    connection.is_connected = True
    connection.close = AsyncMock()

    with patch("src.dropout_risk.adapters.nats.connect", new=AsyncMock(return_value=connection)) as connect:
        publisher = asyncio.run(NatsAlertPublisher.connect("nats://localhost:4222"))
        asyncio.run(publisher.close())

    connect.assert_awaited_once_with("nats://localhost:4222", name="dropout_risk_engine")
    assert publisher.subject == "dropout.risk.high"
    connection.close.assert_awaited_once()
