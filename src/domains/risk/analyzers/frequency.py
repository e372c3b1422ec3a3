"""Payment velocity: recent failures and counterparty spread."""

from datetime import timedelta

from ..config import RiskConfig
from ..history import TransactionHistory
from ..models import FactorResult, RiskFactor, TransactionContext, UserRiskProfile
from .base import RiskAnalyzer


class FrequencyAnalyzer(RiskAnalyzer):
    """Repeated failed payments or booking many counterparties in one day."""

    factor = RiskFactor.FREQUENCY
    fallback_score = 20.0

    def __init__(self, history: TransactionHistory) -> None:
        self._history = history

    async def analyze(
        self,
        ctx: TransactionContext,
        profile: UserRiskProfile | None,
        config: RiskConfig,
    ) -> FactorResult:
        cfg = config.velocity
        since = ctx.timestamp - timedelta(minutes=cfg.failure_window_minutes)
        failures = await self._history.count_failed_payments(ctx.user_id, since)

        reasons: list[str] = []
        if failures >= 3:
            score = 90.0
        elif failures == 2:
            score = 60.0
        else:
            score = min(30.0, failures * 15.0)
        if failures >= 2:
            reasons.append(
                f"{failures} failed payment attempts in last {cfg.failure_window_minutes} minutes"
            )

        day_start = ctx.timestamp.replace(hour=0, minute=0, second=0, microsecond=0)
        counterparties = await self._history.count_distinct_counterparties(ctx.user_id, day_start)
        if counterparties > cfg.counterparty_limit:
            reasons.append(f"Booking sessions with {counterparties} different counterparties today")
            score = max(score, cfg.counterparty_score)

        return self._result(score, *reasons)
