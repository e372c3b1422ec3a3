"""Tests for training features, metrics and the logistic regression loop."""

from datetime import UTC, datetime, timedelta

import numpy as np
import pytest

from src.domains.risk.config import TrainingSettings
from src.domains.risk.ml.evaluate import (
    calculate_improvements,
    compute_metrics,
    generate_performance_report,
    generate_recommendations,
    meets_performance_threshold,
)
from src.domains.risk.ml.features import (
    account_age_days,
    amount_percentile,
    build_feature_matrix,
    chronological_split,
    get_feature_names,
)
from src.domains.risk.ml.train import (
    generate_model_version,
    load_training_settings,
    predict,
    sigmoid,
    train_logistic_regression,
)
from src.domains.risk.models import LabeledOutcome, PaymentStatus, ValidationMetrics

NOW = datetime(2026, 3, 10, 14, 0, 0)


def _outcome(i: int, **kwargs) -> LabeledOutcome:
    defaults = {
        "session_id": f"s-{i}",
        "user_id": "user-1",
        "amount": 1000.0,
        "timestamp": NOW - timedelta(days=i),
        "user_created_at": NOW - timedelta(days=400),
        "payment_status": PaymentStatus.PAID,
    }
    defaults.update(kwargs)
    return LabeledOutcome(**defaults)


class TestLabels:
    def test_blocked_is_fraud(self):
        assert _outcome(0, payment_status=PaymentStatus.BLOCKED).is_fraud

    def test_failed_under_review_is_fraud(self):
        outcome = _outcome(0, payment_status=PaymentStatus.FAILED, fraud_review_required=True)
        assert outcome.is_fraud

    def test_plain_failure_is_not_fraud(self):
        assert not _outcome(0, payment_status=PaymentStatus.FAILED).is_fraud

    def test_paid_under_review_is_not_fraud(self):
        assert not _outcome(0, fraud_review_required=True).is_fraud


class TestFeatures:
    def test_feature_names(self):
        assert get_feature_names() == [
            "amount",
            "hour_of_day",
            "account_age_days",
            "amount_percentile",
            "user_frequency",
        ]

    def test_account_age(self):
        assert account_age_days(NOW - timedelta(days=30, hours=5), NOW) == 30
        assert account_age_days(None, NOW) == 0
        assert account_age_days(NOW + timedelta(days=2), NOW) == 0

    def test_amount_percentile(self):
        amounts = [100.0, 200.0, 300.0, 400.0]
        assert amount_percentile(100.0, amounts) == 0.0
        assert amount_percentile(300.0, amounts) == 0.5
        assert amount_percentile(500.0, amounts) == 1.0
        assert amount_percentile(10.0, []) == 0.0

    def test_build_feature_matrix(self):
        samples = [
            _outcome(0, amount=500.0),
            _outcome(1, amount=1500.0, user_id="user-2", payment_status=PaymentStatus.BLOCKED),
            _outcome(2, amount=1000.0),
        ]
        features, labels = build_feature_matrix(samples, NOW)

        assert features.shape == (3, 5)
        assert labels.tolist() == [0.0, 1.0, 0.0]
        assert features[0].tolist() == [500.0, 14.0, 400.0, 0.0, 2.0]
        assert features[1][3] == pytest.approx(2 / 3)
        assert features[1][4] == 1.0

    def test_hour_of_day_uses_local_zone(self):
        # 00:30 UTC is 03:30 in Nairobi
        sample = _outcome(0, timestamp=datetime(2026, 3, 10, 0, 30, tzinfo=UTC))
        features, _ = build_feature_matrix([sample], NOW)
        assert features[0][1] == 3.0

        features, _ = build_feature_matrix([sample], NOW, timezone="UTC")
        assert features[0][1] == 0.0

    def test_empty_feature_matrix(self):
        features, labels = build_feature_matrix([], NOW)
        assert features.shape == (0, 5)
        assert labels.shape == (0,)

    def test_chronological_split_holds_out_newest(self):
        samples = [_outcome(i) for i in range(10)]
        train, holdout = chronological_split(samples, 0.2)

        assert len(train) == 8
        assert len(holdout) == 2
        assert max(s.timestamp for s in train) < min(s.timestamp for s in holdout)
        assert {s.session_id for s in holdout} == {"s-0", "s-1"}


class TestMetrics:
    def test_compute_metrics(self):
        predictions = np.array([1, 1, 0, 0, 1, 0])
        labels = np.array([1, 0, 0, 1, 1, 0])
        metrics = compute_metrics(predictions, labels)

        assert metrics.precision == pytest.approx(2 / 3)
        assert metrics.recall == pytest.approx(2 / 3)
        assert metrics.f1_score == pytest.approx(2 / 3)
        assert metrics.false_positive_rate == pytest.approx(1 / 3)
        assert metrics.accuracy == pytest.approx(4 / 6)

    def test_no_positive_predictions(self):
        metrics = compute_metrics(np.zeros(4), np.array([1, 0, 0, 0]))
        assert metrics.precision == 0.0
        assert metrics.recall == 0.0
        assert metrics.f1_score == 0.0
        assert metrics.accuracy == pytest.approx(0.75)

    def test_holdout_without_fraud_cases(self):
        metrics = compute_metrics(np.zeros(5), np.zeros(5))
        assert metrics.precision == 0.0
        assert metrics.recall == 0.0
        assert metrics.false_positive_rate == 0.0
        assert metrics.accuracy == 1.0

    def test_threshold_requires_all_three(self):
        good = ValidationMetrics(precision=0.9, recall=0.86, f1_score=0.88, false_positive_rate=0.02)
        weak_recall = good.model_copy(update={"recall": 0.84})
        assert meets_performance_threshold(good, 0.85)
        assert not meets_performance_threshold(weak_recall, 0.85)

    def test_threshold_is_inclusive(self):
        exact = ValidationMetrics(
            precision=0.85, recall=0.85, f1_score=0.85, false_positive_rate=0.0
        )
        assert meets_performance_threshold(exact, 0.85)

    def test_improvements_are_formatted_percentages(self):
        new = ValidationMetrics(precision=0.95, recall=0.90, f1_score=0.925, false_positive_rate=0.02)
        old = ValidationMetrics(precision=0.92, recall=0.88, f1_score=0.90, false_positive_rate=0.03)
        assert calculate_improvements(new, old) == {
            "precision_improvement": "3.00%",
            "recall_improvement": "2.00%",
            "f1_score_improvement": "2.50%",
        }

    def test_recommendations(self):
        weak = ValidationMetrics(precision=0.86, recall=0.87, f1_score=0.86, false_positive_rate=0.08)
        strong = ValidationMetrics(precision=0.95, recall=0.95, f1_score=0.95, false_positive_rate=0.01)
        assert len(generate_recommendations(weak)) == 3
        assert generate_recommendations(strong) == []

    def test_performance_report(self):
        metrics = ValidationMetrics(
            precision=1.0, recall=0.9, f1_score=0.947, false_positive_rate=0.0, accuracy=0.97
        )
        previous = ValidationMetrics(
            precision=0.92, recall=0.88, f1_score=0.90, false_positive_rate=0.03
        )
        report = generate_performance_report("2026.3.10.14", NOW, metrics, previous)

        assert report.model_version == "2026.3.10.14"
        assert report.performance["precision"] == "100.00%"
        assert report.performance["accuracy"] == "97.00%"
        assert report.improvements["precision_improvement"] == "8.00%"
        assert report.recommendations == []


class TestLogisticRegression:
    def test_sigmoid_is_bounded_for_extreme_inputs(self):
        values = sigmoid(np.array([-1e6, 0.0, 1e6]))
        assert values[0] == pytest.approx(0.0)
        assert values[1] == pytest.approx(0.5)
        assert values[2] == pytest.approx(1.0)
        assert np.all(np.isfinite(values))

    def test_learns_separable_data(self):
        rng = np.random.default_rng(7)
        low = rng.normal(1000.0, 100.0, size=(60, 1))
        high = rng.normal(40000.0, 2000.0, size=(30, 1))
        features = np.vstack([low, high])
        labels = np.concatenate([np.zeros(60), np.ones(30)])

        model = train_logistic_regression(features, labels, learning_rate=0.1, epochs=500)
        assert predict(model, features).tolist() == labels.astype(int).tolist()

    def test_constant_feature_does_not_divide_by_zero(self):
        features = np.column_stack([np.ones(10), np.arange(10, dtype=float)])
        labels = (np.arange(10) >= 5).astype(float)

        model = train_logistic_regression(features, labels, learning_rate=0.1, epochs=200)
        assert model["stds"][0] == 1.0
        assert np.all(np.isfinite(model["weights"]))

    def test_model_version_format(self):
        assert generate_model_version(datetime(2026, 3, 8, 2, 15)) == "2026.3.8.2"


class TestTrainingSettingsFile:
    def test_yaml_overlay(self, tmp_path):
        path = tmp_path / "training.yaml"
        path.write_text("epochs: 250\nlearning_rate: 0.05\nunknown_key: 1\n")

        settings = load_training_settings(str(path))
        assert settings.epochs == 250
        assert settings.learning_rate == 0.05
        assert settings.min_samples == 100
        assert not hasattr(settings, "unknown_key")

    def test_overlay_leaves_base_untouched(self, tmp_path):
        path = tmp_path / "training.yaml"
        path.write_text("min_samples: 10\n")
        base = TrainingSettings()

        settings = load_training_settings(str(path), base)
        assert settings.min_samples == 10
        assert base.min_samples == 100

    def test_empty_file(self, tmp_path):
        path = tmp_path / "training.yaml"
        path.write_text("")
        assert load_training_settings(str(path)) == TrainingSettings()
