# ABOUTME: Orchestrates dropout-risk predictions: cache check, extraction, scoring, and alerts.
# ABOUTME: Also runs concurrent at-risk scans that isolate per-student failures.

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Iterable, List, Mapping, Optional, Sequence, Union

import pandas as pd
from loguru import logger

from src.common.errors import UpstreamQueryFailure
from src.common.evaluation import evaluate_risk_predictions
from src.common.features import extract_feature_vector
from src.common.schemas import FeatureVector

from .config import EngineConfig
from .ensemble import (
    EnsembleResult,
    RiskLevel,
    assess_data_quality,
    calculate_confidence,
    classify_risk_level,
    run_ensemble,
)
from .factors import derive_risk_indicators, identify_protective_factors, identify_risk_factors
from .models import DEFAULT_MODELS, ScoringModel
from .outcomes import LearningOutcomeReport, forecast_learning_outcomes
from .prediction import (
    BatchScanResult,
    Prediction,
    PredictionFailure,
    RiskAlert,
    compare_with_history,
)
from .recommendation import generate_interventions
from .sources import AlertSink, PredictionCache, RecordSource
from .timeline import project_risk_timeline

ALERT_LEVELS = {RiskLevel.HIGH, RiskLevel.CRITICAL}
DEFAULT_PERFORMANCE_METRICS = ("auc", "average_precision", "accuracy", "precision", "recall", "f1")

# (risk_score, course_id) -> number of comparable historical cases
HistoryLookup = Callable[[float, Optional[str]], Awaitable[int]]


def cache_key(student_id: str, course_id: Optional[str] = None) -> str:
    return f"dropout_prediction:{student_id}:{course_id or 'all'}"


def compose_prediction(
    features: FeatureVector,
    ensemble: EnsembleResult,
    generated_at: datetime,
    similar_cases_count: int = 0,
) -> Prediction:
    """Assemble a Prediction from an already scored feature vector. Pure."""

    risk_score = ensemble.risk_score
    factors = identify_risk_factors(features)
    confidence = calculate_confidence(assess_data_quality(features), ensemble.agreement)
    return Prediction(
        student_id=features.student_id,
        course_id=features.course_id,
        risk_score=risk_score,
        risk_level=classify_risk_level(risk_score),
        factors=tuple(factors),
        protective_factors=tuple(identify_protective_factors(features)),
        indicators=derive_risk_indicators(features),
        recommendations=tuple(generate_interventions(risk_score, factors)),
        confidence=confidence,
        timeline=project_risk_timeline(features, risk_score, generated_at.date()),
        historical_comparison=compare_with_history(risk_score, similar_cases_count),
        generated_at=generated_at,
        model_scores=dict(ensemble.model_scores),
    )


class DropoutRiskPredictor:
    """
    Predicts dropout risk for students using an ensemble of heuristic scorers.

    Collaborators are injected: a RecordSource for raw records, a PredictionCache for
    TTL-bounded results, and an optional AlertSink receiving HIGH/CRITICAL alerts.
    """

    def __init__(
        self,
        source: RecordSource,
        cache: PredictionCache,
        alerts: Optional[AlertSink] = None,
        config: EngineConfig = EngineConfig(),
        models: Sequence[ScoringModel] = DEFAULT_MODELS,
        clock: Optional[Callable[[], datetime]] = None,
        history_lookup: Optional[HistoryLookup] = None,
    ):
        self.source = source
        self.cache = cache
        self.alerts = alerts
        self.config = config
        self.models = tuple(models)
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.history_lookup = history_lookup

    async def predict_student_dropout_risk(
        self, student_id: str, course_id: Optional[str] = None
    ) -> Prediction:
        key = cache_key(student_id, course_id)
        try:
            cached = await self._call_cache(self.cache.get(key), student_id)
            if cached is not None:
                logger.debug(f"Cache hit for {key}")
                return Prediction.from_dict(cached)

            features = await self.extract_features(student_id, course_id)
            ensemble = run_ensemble(features, self.models, self.config.model_weights)
            similar_cases = await self._similar_cases(ensemble.risk_score, course_id, student_id)
            prediction = compose_prediction(features, ensemble, self.clock(), similar_cases)

            await self._call_cache(
                self.cache.set(key, prediction.to_dict(), self.config.cache_ttl_seconds), student_id
            )
            logger.info(
                f"Predicted dropout risk {prediction.risk_score:.1f} ({prediction.risk_level.value}) "
                f"for student {student_id}"
            )

            if prediction.risk_level in ALERT_LEVELS:
                await self._emit_alert(prediction)

            return prediction
        except Exception as exc:
            logger.error(f"Error predicting dropout risk for student {student_id}: {exc}")
            raise

    async def get_at_risk_students(
        self,
        course_id: Optional[str] = None,
        risk_threshold: Optional[float] = None,
        student_ids: Optional[Iterable[str]] = None,
    ) -> BatchScanResult:
        """
        Predict risk for every candidate student and keep those at or above the threshold.

        Candidates default to students with analytics in the active window. A failed
        prediction does not abort the scan; it is reported in `failures` instead.
        """

        threshold = self.config.default_risk_threshold if risk_threshold is None else risk_threshold
        if student_ids is None:
            since = self.clock() - timedelta(days=self.config.active_window_days)
            student_ids = await self._query(
                self.source.list_active_students(course_id, since), "active students", None
            )
        candidates = list(dict.fromkeys(student_ids))
        semaphore = asyncio.Semaphore(max(1, self.config.max_concurrency))

        async def run_one(student_id: str) -> Union[Prediction, PredictionFailure]:
            async with semaphore:
                try:
                    return await self.predict_student_dropout_risk(student_id, course_id)
                except Exception as exc:
                    logger.warning(f"Skipping student {student_id} in at-risk scan: {exc}")
                    return PredictionFailure(student_id=student_id, error=f"{type(exc).__name__}: {exc}")

        results = await asyncio.gather(*(run_one(student_id) for student_id in candidates))

        predictions = [r for r in results if isinstance(r, Prediction) and r.risk_score >= threshold]
        predictions.sort(key=lambda p: (-p.risk_score, p.student_id))
        failures = sorted(
            (r for r in results if isinstance(r, PredictionFailure)), key=lambda f: f.student_id
        )
        logger.info(
            f"At-risk scan over {len(candidates)} students: {len(predictions)} at or above "
            f"{threshold}, {len(failures)} failed"
        )
        return BatchScanResult(predictions=predictions, failures=failures)

    async def invalidate(self, student_id: str, course_id: Optional[str] = None) -> None:
        await self._call_cache(self.cache.delete(cache_key(student_id, course_id)), student_id)

    async def predict_learning_outcomes(
        self, student_id: str, course_id: Optional[str] = None
    ) -> LearningOutcomeReport:
        try:
            features = await self.extract_features(student_id, course_id)
            ensemble = run_ensemble(features, self.models, self.config.model_weights)
            now = self.clock()
            return LearningOutcomeReport(
                student_id=student_id,
                course_id=course_id,
                forecast=forecast_learning_outcomes(features, now.date()),
                confidence=calculate_confidence(assess_data_quality(features), ensemble.agreement),
                generated_at=now,
            )
        except Exception as exc:
            logger.error(f"Error predicting learning outcomes for student {student_id}: {exc}")
            raise

    def model_performance(
        self, labelled: pd.DataFrame, metrics: Sequence[str] = DEFAULT_PERFORMANCE_METRICS
    ) -> Mapping[str, float]:
        """Score past predictions (`risk_score`) against observed dropouts (`y_true`)."""
        return evaluate_risk_predictions(labelled, metrics, threshold=self.config.default_risk_threshold)

    async def extract_features(self, student_id: str, course_id: Optional[str] = None) -> FeatureVector:
        end = self.clock()
        start = end - timedelta(days=self.config.features.window_days)
        activities, sessions, analytics = await asyncio.gather(
            self._query(self.source.fetch_activities(student_id, course_id, start, end), "activities", student_id),
            self._query(self.source.fetch_sessions(student_id, course_id, start, end), "sessions", student_id),
            self._query(
                self.source.fetch_daily_analytics(student_id, course_id, start, end), "analytics", student_id
            ),
        )
        logger.debug(
            f"Fetched {len(activities)} activities, {len(sessions)} sessions, "
            f"{len(analytics)} analytics rows for student {student_id}"
        )
        return extract_feature_vector(
            student_id, activities, sessions, analytics, course_id=course_id, config=self.config.features
        )

    # Sync entrypoints for scripts and notebooks.
    def predict_student_dropout_risk_sync(self, student_id: str, course_id: Optional[str] = None) -> Prediction:
        return asyncio.run(self.predict_student_dropout_risk(student_id, course_id))

    def get_at_risk_students_sync(
        self,
        course_id: Optional[str] = None,
        risk_threshold: Optional[float] = None,
        student_ids: Optional[Iterable[str]] = None,
    ) -> BatchScanResult:
        return asyncio.run(self.get_at_risk_students(course_id, risk_threshold, student_ids))

    def predict_learning_outcomes_sync(
        self, student_id: str, course_id: Optional[str] = None
    ) -> LearningOutcomeReport:
        return asyncio.run(self.predict_learning_outcomes(student_id, course_id))

    async def _query(self, awaitable: Awaitable, what: str, student_id: Optional[str]):
        try:
            return await asyncio.wait_for(awaitable, timeout=self.config.query_timeout_seconds)
        except asyncio.TimeoutError as exc:
            raise UpstreamQueryFailure(
                f"Timed out after {self.config.query_timeout_seconds}s fetching {what} for student {student_id}",
                student_id=student_id,
            ) from exc
        except UpstreamQueryFailure:
            raise
        except Exception as exc:
            raise UpstreamQueryFailure(
                f"Failed to fetch {what} for student {student_id}: {exc}", student_id=student_id
            ) from exc

    async def _call_cache(self, awaitable: Awaitable, student_id: str):
        return await self._query(awaitable, "cache entry", student_id)

    async def _similar_cases(self, risk_score: float, course_id: Optional[str], student_id: str) -> int:
        if self.history_lookup is None:
            return 0
        return int(await self._query(self.history_lookup(risk_score, course_id), "historical cases", student_id))

    async def _emit_alert(self, prediction: Prediction) -> None:
        if self.alerts is None:
            return
        alert = RiskAlert(
            student_id=prediction.student_id,
            course_id=prediction.course_id,
            risk_score=prediction.risk_score,
            risk_level=prediction.risk_level,
            timestamp=self.clock(),
        )
        try:
            await self.alerts.publish(alert)
            logger.info(f"Emitted {alert.risk_level.value} dropout alert for student {alert.student_id}")
        except Exception as exc:
            # The prediction is already cached; alert delivery is best-effort.
            logger.error(f"Failed to publish dropout alert for student {alert.student_id}: {exc}")
