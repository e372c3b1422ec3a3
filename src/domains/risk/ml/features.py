"""Feature construction for the retraining job.

Each labeled outcome becomes a fixed-length vector:
    amount, hour_of_day, account_age_days, amount_percentile, user_frequency
Percentile and frequency are relative to the training set itself.
"""

import bisect
from collections import Counter
from datetime import datetime

import numpy as np

from ..analyzers.time_pattern import to_local_hour
from ..config import TimeSettings
from ..models import LabeledOutcome

FEATURE_NAMES = [
    "amount",
    "hour_of_day",
    "account_age_days",
    "amount_percentile",
    "user_frequency",
]


def get_feature_names() -> list[str]:
    return list(FEATURE_NAMES)


def account_age_days(created_at: datetime | None, now: datetime) -> int:
    if created_at is None:
        return 0
    return max((now - created_at).days, 0)


def amount_percentile(amount: float, sorted_amounts: list[float]) -> float:
    """Fraction of the set strictly below the first amount >= this one."""
    if not sorted_amounts:
        return 0.0
    return bisect.bisect_left(sorted_amounts, amount) / len(sorted_amounts)


def build_feature_matrix(
    samples: list[LabeledOutcome],
    now: datetime,
    timezone: str = TimeSettings.local_timezone,
) -> tuple[np.ndarray, np.ndarray]:
    """Return (features, labels) with one row per sample, in input order.

    Hour of day is measured in the same local zone the time-pattern analyzer uses.
    """
    sorted_amounts = sorted(s.amount for s in samples)
    frequency = Counter(s.user_id for s in samples)

    rows = [
        [
            s.amount,
            float(to_local_hour(s.timestamp, timezone)),
            float(account_age_days(s.user_created_at, now)),
            amount_percentile(s.amount, sorted_amounts),
            float(frequency[s.user_id]),
        ]
        for s in samples
    ]
    features = np.asarray(rows, dtype=float).reshape(len(samples), len(FEATURE_NAMES))
    labels = np.asarray([1.0 if s.is_fraud else 0.0 for s in samples], dtype=float)
    return features, labels


def chronological_split(
    samples: list[LabeledOutcome],
    validation_fraction: float,
) -> tuple[list[LabeledOutcome], list[LabeledOutcome]]:
    """Oldest (1 - fraction) for training, newest fraction held out."""
    ordered = sorted(samples, key=lambda s: s.timestamp)
    split = int(len(ordered) * (1 - validation_fraction))
    return ordered[:split], ordered[split:]
