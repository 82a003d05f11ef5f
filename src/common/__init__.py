# ABOUTME: Makes the shared common package importable by the risk engine and scripts.
# ABOUTME: Re-exports record schemas, feature extraction, errors, and evaluation helpers.

from .schemas import (
    FEATURE_NAMES,
    ActivityRecord,
    DailyAnalyticsRecord,
    FeatureVector,
    SessionRecord,
)
from .errors import DropoutRiskError, InvariantViolation, UpstreamQueryFailure
from .features import FeatureWindowConfig, extract_feature_vector, validate_feature_vector
from .evaluation import evaluate_risk_predictions

__all__ = [
    "FEATURE_NAMES",
    "ActivityRecord",
    "DailyAnalyticsRecord",
    "DropoutRiskError",
    "FeatureVector",
    "FeatureWindowConfig",
    "InvariantViolation",
    "SessionRecord",
    "UpstreamQueryFailure",
    "evaluate_risk_predictions",
    "extract_feature_vector",
    "validate_feature_vector",
]
