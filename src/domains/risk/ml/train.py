"""Scheduled retraining of the fraud evaluation model.

Trains a logistic regression from scratch by batch gradient descent on the
last 90 days of terminal payment outcomes, validates it on the newest 20 %,
and deploys only when precision, recall and F1 all clear the performance
threshold. Deployment updates the engine's reported metrics; live scoring
weights are never changed.

Usage:
    Triggered weekly by the external scheduler via POST /api/v1/risk/training/run.
"""

import asyncio
import dataclasses
from datetime import UTC, datetime, timedelta
from typing import Any

import numpy as np
import structlog
import yaml

from ..alerts import publish_event
from ..audit import AuditAction, AuditLog
from ..config import RiskConfig, TimeSettings, TrainingSettings, default_config
from ..engine import RiskEngine
from ..exceptions import TrainingError
from ..history import TransactionHistory
from ..models import (
    LabeledOutcome,
    ModelSnapshot,
    TrainerState,
    TrainingOutcome,
    TrainingReport,
    TrainingRunResult,
)
from .evaluate import compute_metrics, generate_performance_report, meets_performance_threshold
from .features import build_feature_matrix, chronological_split, get_feature_names

logger = structlog.get_logger()


def load_training_settings(
    config_path: str,
    base: TrainingSettings | None = None,
) -> TrainingSettings:
    """Overlay a YAML file onto training settings."""
    settings = dataclasses.replace(base or TrainingSettings())
    with open(config_path) as f:
        overrides = yaml.safe_load(f) or {}
    known = {f.name for f in dataclasses.fields(TrainingSettings)}
    for key, value in overrides.items():
        if key not in known:
            logger.warning("unknown_training_setting", key=key)
            continue
        setattr(settings, key, value)
    return settings


def sigmoid(z: np.ndarray) -> np.ndarray:
    return 1.0 / (1.0 + np.exp(-np.clip(z, -500, 500)))


def train_logistic_regression(
    features: np.ndarray,
    labels: np.ndarray,
    learning_rate: float,
    epochs: int,
) -> dict[str, Any]:
    """Batch gradient descent on standardized features.

    Returns weights, bias and the standardization statistics needed to
    score new rows.
    """
    means = features.mean(axis=0)
    stds = features.std(axis=0)
    stds[stds == 0] = 1.0
    x = (features - means) / stds
    n = len(labels)

    weights = np.zeros(x.shape[1])
    bias = 0.0
    for _ in range(epochs):
        error = labels - sigmoid(x @ weights + bias)
        weights += learning_rate * (x.T @ error) / n
        bias += learning_rate * float(error.mean())

    return {"weights": weights, "bias": bias, "means": means, "stds": stds}


def predict(model: dict[str, Any], features: np.ndarray, threshold: float = 0.5) -> np.ndarray:
    x = (features - model["means"]) / model["stds"]
    return (sigmoid(x @ model["weights"] + model["bias"]) > threshold).astype(int)


def generate_model_version(now: datetime) -> str:
    return f"{now.year}.{now.month}.{now.day}.{now.hour}"


def train_and_validate(
    samples: list[LabeledOutcome],
    now: datetime,
    settings: TrainingSettings,
    timezone: str = TimeSettings.local_timezone,
) -> ModelSnapshot:
    """CPU-bound training pass. Runs in a worker thread."""
    train_samples, holdout = chronological_split(samples, settings.validation_fraction)
    if not train_samples or not holdout:
        raise TrainingError(
            f"cannot split {len(samples)} samples with fraction {settings.validation_fraction}"
        )

    features, labels = build_feature_matrix(train_samples + holdout, now, timezone)
    split = len(train_samples)

    model = train_logistic_regression(
        features[:split], labels[:split], settings.learning_rate, settings.epochs
    )
    predictions = predict(model, features[split:], settings.prediction_threshold)
    metrics = compute_metrics(predictions, labels[split:])

    return ModelSnapshot(
        version=generate_model_version(now),
        weights=[float(w) for w in model["weights"]],
        bias=float(model["bias"]),
        feature_names=get_feature_names(),
        feature_means=[float(m) for m in model["means"]],
        feature_stds=[float(s) for s in model["stds"]],
        trained_at=now,
        metrics=metrics,
        training_samples=split,
        validation_samples=len(holdout),
    )


class ModelTrainer:
    """Singleton retraining job.

    A single in-process flag rejects overlapping runs outright. The flag is
    released on every exit path.
    """

    def __init__(
        self,
        history: TransactionHistory,
        engine: RiskEngine,
        audit: AuditLog,
        config: RiskConfig | None = None,
        kafka_producer=None,
        alerts_topic: str = "payments.risk.alerts",
    ) -> None:
        self._history = history
        self._engine = engine
        self._audit = audit
        self._config = config or default_config
        self._kafka_producer = kafka_producer
        self._alerts_topic = alerts_topic
        self._is_training = False
        self._state = TrainerState.IDLE
        self._last_snapshot: ModelSnapshot | None = None
        self._last_outcome: TrainingOutcome | None = None

    @property
    def is_training(self) -> bool:
        return self._is_training

    @property
    def state(self) -> TrainerState:
        return self._state

    @property
    def schedule(self) -> str:
        """Cron expression the external scheduler should trigger retrain on."""
        return self._config.training.schedule

    @property
    def last_snapshot(self) -> ModelSnapshot | None:
        return self._last_snapshot

    @property
    def last_outcome(self) -> TrainingOutcome | None:
        return self._last_outcome

    async def retrain(self, now: datetime | None = None) -> TrainingRunResult:
        if self._is_training:
            logger.info("model_training_already_running")
            return TrainingRunResult(outcome=TrainingOutcome.ALREADY_RUNNING)

        self._is_training = True
        self._state = TrainerState.TRAINING
        logger.info("model_training_started")
        try:
            result = await self._run(now or datetime.now(UTC))
        except Exception as exc:
            logger.exception("model_training_failed")
            await self._record_failure(exc)
            result = TrainingRunResult(outcome=TrainingOutcome.FAILED, error=str(exc))
        finally:
            self._is_training = False
            self._state = TrainerState.IDLE

        self._last_outcome = result.outcome
        return result

    async def _run(self, now: datetime) -> TrainingRunResult:
        settings = self._config.training
        since = now - timedelta(days=settings.lookback_days)
        samples = await self._history.labeled_outcomes(since)

        if len(samples) < settings.min_samples:
            logger.info(
                "insufficient_training_data",
                sample_count=len(samples),
                min_samples=settings.min_samples,
            )
            return TrainingRunResult(
                outcome=TrainingOutcome.INSUFFICIENT_DATA, sample_count=len(samples)
            )

        snapshot = await asyncio.to_thread(
            train_and_validate, samples, now, settings, self._config.time.local_timezone
        )

        if meets_performance_threshold(snapshot.metrics, settings.performance_threshold):
            self._state = TrainerState.DEPLOYED
            report = await self._deploy(snapshot)
            return TrainingRunResult(
                outcome=TrainingOutcome.DEPLOYED,
                sample_count=len(samples),
                snapshot=snapshot,
                report=report,
            )

        self._state = TrainerState.REJECTED
        await self._alert_degradation(snapshot)
        return TrainingRunResult(
            outcome=TrainingOutcome.REJECTED, sample_count=len(samples), snapshot=snapshot
        )

    async def _deploy(self, snapshot: ModelSnapshot) -> TrainingReport:
        previous = self._engine.model_metrics
        report = generate_performance_report(
            snapshot.version, snapshot.trained_at, snapshot.metrics, previous
        )

        self._engine.record_model_metrics(snapshot)
        self._last_snapshot = snapshot

        try:
            await self._audit.append(
                AuditAction.MODEL_DEPLOYED,
                {
                    "model_version": snapshot.version,
                    "performance": snapshot.metrics.model_dump(),
                    "training_samples": snapshot.training_samples,
                    "validation_samples": snapshot.validation_samples,
                },
            )
            await self._audit.append(
                AuditAction.MODEL_PERFORMANCE_REPORT, report.model_dump(mode="json")
            )
        except Exception:
            logger.exception("model_deploy_audit_failed", model_version=snapshot.version)

        logger.info(
            "model_deployed",
            model_version=snapshot.version,
            performance=report.performance,
            improvements=report.improvements,
            recommendations=report.recommendations,
        )
        return report

    async def _alert_degradation(self, snapshot: ModelSnapshot) -> None:
        threshold = self._config.training.performance_threshold
        details = {
            "model_version": snapshot.version,
            "performance": snapshot.metrics.model_dump(),
            "threshold": threshold,
            "message": "Model performance below acceptable threshold",
        }
        logger.warning(
            "model_performance_degraded",
            model_version=snapshot.version,
            precision=snapshot.metrics.precision,
            recall=snapshot.metrics.recall,
            f1_score=snapshot.metrics.f1_score,
            threshold=threshold,
        )
        try:
            await self._audit.append(AuditAction.MODEL_PERFORMANCE_ALERT, details)
        except Exception:
            logger.exception("model_alert_audit_failed", model_version=snapshot.version)
        await publish_event(
            self._kafka_producer,
            self._alerts_topic,
            {"event_type": "model-performance-degraded", **details},
        )

    async def _record_failure(self, exc: Exception) -> None:
        try:
            await self._audit.append(
                AuditAction.MODEL_TRAINING_FAILED,
                {"error": str(exc), "error_type": type(exc).__name__},
            )
        except Exception:
            logger.exception("model_failure_audit_failed")
