# ABOUTME: Loads the dropout-risk engine configuration from YAML.
# ABOUTME: Groups window sizes, cache TTL, query timeouts, fan-out limits, and model weights.

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional, Tuple

import yaml

from src.common.features import FeatureWindowConfig


@dataclass(frozen=True)
class EngineConfig:
    """Runtime settings for the prediction orchestrator."""

    features: FeatureWindowConfig = field(default_factory=FeatureWindowConfig)
    active_window_days: int = 30
    cache_ttl_seconds: int = 3600
    query_timeout_seconds: float = 10.0
    max_concurrency: int = 16
    default_risk_threshold: float = 70.0
    alert_subject: str = "dropout.risk.high"
    model_weights: Optional[Tuple[float, ...]] = None


def load_engine_config(config_path: Path) -> EngineConfig:
    """Read an engine config YAML; missing keys keep their defaults."""

    with open(config_path) as f:
        cfg = yaml.safe_load(f) or {}

    engine_cfg = dict(cfg.get("engine", {}))
    feature_cfg = cfg.get("features", {})

    _reject_unknown(engine_cfg, EngineConfig, "engine")
    _reject_unknown(feature_cfg, FeatureWindowConfig, "features")

    weights = engine_cfg.pop("model_weights", None)
    return EngineConfig(
        features=FeatureWindowConfig(**feature_cfg),
        model_weights=tuple(float(w) for w in weights) if weights else None,
        **engine_cfg,
    )


def _reject_unknown(section: dict, cls, name: str) -> None:
    known = {f.name for f in fields(cls)} - {"features"}
    unknown = sorted(set(section) - known)
    if unknown:
        raise ValueError(f"Unknown keys in '{name}' config section: {', '.join(unknown)}")
