# ABOUTME: Evaluates dropout-risk scores against observed dropout outcomes.
# ABOUTME: Computes ranking, threshold, and calibration metrics with scikit-learn.

from typing import Iterable, Mapping

import numpy as np
import pandas as pd
from sklearn.metrics import (
    accuracy_score,
    average_precision_score,
    f1_score,
    precision_score,
    recall_score,
    roc_auc_score,
)

THRESHOLD_METRICS = {
    "accuracy": accuracy_score,
    "precision": precision_score,
    "recall": recall_score,
    "f1": f1_score,
}


def evaluate_risk_predictions(
    predictions: pd.DataFrame,
    metrics: Iterable[str],
    threshold: float = 70.0,
) -> Mapping[str, float]:
    """
    Evaluate risk scores using the requested metric names.

    Parameters
    ----------
    predictions : pd.DataFrame
        Expected columns: ['y_true', 'risk_score'] where y_true is 1 for students who
        dropped out and risk_score is on the 0-100 scale.
    metrics : Iterable[str]
        Metric identifiers: 'auc', 'average_precision', 'accuracy', 'precision',
        'recall', 'f1', 'calibration_ece'.
    threshold : float
        Risk score at or above which a student counts as flagged for threshold metrics.
    """

    metrics = list(metrics)
    if predictions is None or len(predictions) == 0:
        return {metric: np.nan for metric in metrics}

    y_true = predictions["y_true"].astype(int)
    probability = (predictions["risk_score"].astype(float) / 100.0).clip(0.0, 1.0)
    flagged = (predictions["risk_score"].astype(float) >= threshold).astype(int)

    results = {}
    for metric in metrics:
        if metric == "auc":
            # roc_auc_score requires both classes; return 0.0 when degenerate.
            if len(np.unique(y_true)) < 2:
                results[metric] = 0.0
            else:
                results[metric] = float(roc_auc_score(y_true, probability))
        elif metric == "average_precision":
            results[metric] = float(average_precision_score(y_true, probability))
        elif metric in THRESHOLD_METRICS:
            scorer = THRESHOLD_METRICS[metric]
            if metric == "accuracy":
                results[metric] = float(scorer(y_true, flagged))
            else:
                results[metric] = float(scorer(y_true, flagged, zero_division=0))
        elif metric == "calibration_ece":
            results[metric] = float(_expected_calibration_error(y_true, probability))
        else:
            raise ValueError(f"Unsupported metric '{metric}'.")

    return results


def _expected_calibration_error(y_true: pd.Series, y_pred: pd.Series, num_bins: int = 10) -> float:
    """
    Compute expected calibration error using equal-width bins between 0 and 1.
    """

    bins = np.linspace(0.0, 1.0, num_bins + 1)
    # Scores of exactly 1.0 belong to the last bin.
    digitized = np.clip(np.digitize(y_pred, bins) - 1, 0, num_bins - 1)
    total = len(y_true)
    if total == 0:
        return np.nan

    y_true_arr = y_true.to_numpy(dtype=float)
    y_pred_arr = y_pred.to_numpy(dtype=float)
    ece = 0.0
    for b in range(num_bins):
        mask = digitized == b
        count = mask.sum()
        if count == 0:
            continue
        acc = y_true_arr[mask].mean()
        conf = y_pred_arr[mask].mean()
        ece += (count / total) * abs(acc - conf)
    return ece
