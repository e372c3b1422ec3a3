"""Time-of-day risk."""

from datetime import datetime
from zoneinfo import ZoneInfo

from ..config import RiskConfig
from ..models import FactorResult, RiskFactor, TransactionContext, UserRiskProfile
from .base import RiskAnalyzer


class TimePatternAnalyzer(RiskAnalyzer):
    """Late-night and early-morning payments carry more risk."""

    factor = RiskFactor.TIME_PATTERN
    fallback_score = 20.0

    async def analyze(
        self,
        ctx: TransactionContext,
        profile: UserRiskProfile | None,
        config: RiskConfig,
    ) -> FactorResult:
        cfg = config.time
        hour = local_hour(ctx, cfg.local_timezone)

        if hour >= 23 or hour <= 5:
            return self._result(
                cfg.unusual_hours_score, "Payment attempted during unusual hours (11 PM - 5 AM)"
            )
        if hour <= 7:
            return self._result(
                cfg.early_morning_score, "Payment attempted during early morning hours"
            )
        return self._result(cfg.normal_score)


def local_hour(ctx: TransactionContext, timezone: str) -> int:
    return to_local_hour(ctx.timestamp, timezone)


def to_local_hour(ts: datetime, timezone: str) -> int:
    """Hour of day in the local zone. Naive timestamps are taken as already local."""
    if ts.tzinfo is not None:
        ts = ts.astimezone(ZoneInfo(timezone))
    return ts.hour
