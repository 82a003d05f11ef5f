# ABOUTME: Tests loading the engine configuration from YAML.
# ABOUTME: Covers the shipped defaults, partial overrides, and unknown keys.

from pathlib import Path

import pytest

from src.common.features import FeatureWindowConfig
from src.dropout_risk.config import EngineConfig, load_engine_config

REPO_ROOT = Path(__file__).resolve().parents[1]


def test_shipped_config_matches_defaults():
    config = load_engine_config(REPO_ROOT / "configs" / "dropout_risk.yaml")

    assert config.features == FeatureWindowConfig()
    assert config.cache_ttl_seconds == 3600
    assert config.active_window_days == 30
    assert config.default_risk_threshold == 70.0
    assert config.model_weights == (0.25, 0.25, 0.25, 0.25)


def test_partial_config_keeps_defaults(tmp_path):
    path = tmp_path / "engine.yaml"
    path.write_text("features:\n  window_days: 30\nengine:\n  max_concurrency: 4\n")

    config = load_engine_config(path)

    assert config.features.window_days == 30
    assert config.features.recent_days == 7
    assert config.max_concurrency == 4
    assert config.model_weights is None
    assert config.query_timeout_seconds == EngineConfig().query_timeout_seconds


def test_empty_config_file_is_all_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")

    assert load_engine_config(path) == EngineConfig()


def test_unknown_keys_are_rejected(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("engine:\n  cache_ttl: 10\n")

    with pytest.raises(ValueError, match="cache_ttl"):
        load_engine_config(path)
