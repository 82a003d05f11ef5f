# ABOUTME: Exposes the dropout-risk engine entrypoints.
# ABOUTME: Groups scorers, ensemble, explanations, timeline projection, and the orchestrator.

from .config import EngineConfig, load_engine_config
from .ensemble import RiskLevel, classify_risk_level, combine_scores, run_ensemble
from .models import DEFAULT_MODELS, ScoringModel
from .orchestrator import DropoutRiskPredictor, cache_key, compose_prediction
from .prediction import BatchScanResult, Prediction, PredictionFailure, RiskAlert, format_prediction
from .sources import FrameRecordSource, InMemoryTTLCache, QueueAlertSink

__all__ = [
    "BatchScanResult",
    "DEFAULT_MODELS",
    "DropoutRiskPredictor",
    "EngineConfig",
    "FrameRecordSource",
    "InMemoryTTLCache",
    "Prediction",
    "PredictionFailure",
    "QueueAlertSink",
    "RiskAlert",
    "RiskLevel",
    "ScoringModel",
    "cache_key",
    "classify_risk_level",
    "combine_scores",
    "compose_prediction",
    "format_prediction",
    "load_engine_config",
    "run_ensemble",
]
