"""Validation metrics, deployment gate and performance reporting."""

from datetime import datetime

import numpy as np
import structlog

from ..models import TrainingReport, ValidationMetrics

logger = structlog.get_logger()


def _safe_ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator else 0.0


def compute_metrics(predictions: np.ndarray, labels: np.ndarray) -> ValidationMetrics:
    """Confusion-matrix metrics for binary predictions against labels."""
    from sklearn.metrics import (
        accuracy_score,
        confusion_matrix,
        f1_score,
        precision_score,
        recall_score,
    )

    y_pred = predictions.astype(int)
    y_true = labels.astype(int)

    precision = float(precision_score(y_true, y_pred, zero_division=0))
    recall = float(recall_score(y_true, y_pred, zero_division=0))
    f1 = float(f1_score(y_true, y_pred, zero_division=0))

    # labels= keeps the matrix 2x2 when a class is absent from the holdout
    cm = confusion_matrix(y_true, y_pred, labels=[0, 1])
    tn, fp, fn, tp = (int(v) for v in cm.ravel())

    metrics = ValidationMetrics(
        precision=precision,
        recall=recall,
        f1_score=f1,
        false_positive_rate=_safe_ratio(fp, fp + tn),
        accuracy=float(accuracy_score(y_true, y_pred)) if len(y_true) else 0.0,
    )
    logger.info(
        "model_validated",
        true_positives=tp,
        false_positives=fp,
        true_negatives=tn,
        false_negatives=fn,
        precision=round(precision, 4),
        recall=round(recall, 4),
        f1_score=round(f1, 4),
    )
    return metrics


def meets_performance_threshold(metrics: ValidationMetrics, threshold: float) -> bool:
    return (
        metrics.precision >= threshold
        and metrics.recall >= threshold
        and metrics.f1_score >= threshold
    )


def _pct(value: float) -> str:
    return f"{value * 100:.2f}%"


def calculate_improvements(
    new: ValidationMetrics,
    current: ValidationMetrics,
) -> dict[str, str]:
    return {
        "precision_improvement": _pct(new.precision - current.precision),
        "recall_improvement": _pct(new.recall - current.recall),
        "f1_score_improvement": _pct(new.f1_score - current.f1_score),
    }


def generate_recommendations(metrics: ValidationMetrics) -> list[str]:
    recommendations = []
    if metrics.precision < 0.9:
        recommendations.append("Consider adding more features to reduce false positives")
    if metrics.recall < 0.9:
        recommendations.append("Increase training data for fraud cases to improve detection")
    if metrics.false_positive_rate > 0.05:
        recommendations.append("Adjust decision thresholds to reduce false positive rate")
    return recommendations


def generate_performance_report(
    model_version: str,
    trained_at: datetime,
    metrics: ValidationMetrics,
    previous: ValidationMetrics,
) -> TrainingReport:
    performance = {
        "precision": _pct(metrics.precision),
        "recall": _pct(metrics.recall),
        "f1_score": _pct(metrics.f1_score),
        "false_positive_rate": _pct(metrics.false_positive_rate),
    }
    if metrics.accuracy is not None:
        performance["accuracy"] = _pct(metrics.accuracy)

    return TrainingReport(
        model_version=model_version,
        training_date=trained_at,
        performance=performance,
        improvements=calculate_improvements(metrics, previous),
        recommendations=generate_recommendations(metrics),
    )
