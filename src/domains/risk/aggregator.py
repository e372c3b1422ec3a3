"""Weighted combination of factor scores into one 0-100 risk score."""

import math
from collections.abc import Mapping
from types import MappingProxyType

from .models import RiskFactor

# Fixed factor weights; retraining reports metrics but never adjusts these.
WEIGHTS: Mapping[RiskFactor, float] = MappingProxyType(
    {
        RiskFactor.AMOUNT_DEVIATION: 0.25,
        RiskFactor.TIME_PATTERN: 0.20,
        RiskFactor.FREQUENCY: 0.15,
        RiskFactor.DEVICE_FINGERPRINT: 0.15,
        RiskFactor.BEHAVIOR_HISTORY: 0.15,
        RiskFactor.EXTERNAL_DATABASE: 0.10,
    }
)


def aggregate(factor_scores: Mapping[RiskFactor, float]) -> int:
    """Weighted sum, clamped to [0, 100] and rounded half up.

    Missing factors contribute 0.
    """
    weighted = sum(factor_scores.get(factor, 0.0) * weight for factor, weight in WEIGHTS.items())
    clamped = min(100.0, max(0.0, weighted))
    return int(math.floor(clamped + 0.5))
