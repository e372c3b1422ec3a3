"""Score to ALLOW / REVIEW / BLOCK mapping."""

from .config import DecisionThresholds
from .models import Decision


def decide(score: int, thresholds: DecisionThresholds) -> Decision:
    if score >= thresholds.block:
        return Decision.BLOCK
    if score >= thresholds.review:
        return Decision.REVIEW
    return Decision.ALLOW
