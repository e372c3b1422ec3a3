"""Amount deviation from the user's own payment history."""

import math

from ..config import RiskConfig
from ..models import FactorResult, RiskFactor, TransactionContext, UserRiskProfile
from .base import RiskAnalyzer


class AmountDeviationAnalyzer(RiskAnalyzer):
    """Flags amounts far outside the user's historical mean."""

    factor = RiskFactor.AMOUNT_DEVIATION
    fallback_score = 20.0

    async def analyze(
        self,
        ctx: TransactionContext,
        profile: UserRiskProfile | None,
        config: RiskConfig,
    ) -> FactorResult:
        cfg = config.amount
        if profile is None or profile.transaction_count < cfg.min_history:
            return self._result(cfg.new_user_score)

        amount = ctx.amount_float
        average = profile.average_amount
        deviation = _deviation(amount, average, profile.standard_deviation)

        if deviation > cfg.deviation_limit:
            return self._result(
                min(80.0, 40.0 + deviation * 10),
                f"Amount {amount:g} is {deviation:.1f} standard deviations from user average",
            )

        if amount > average * cfg.multiple_of_average:
            return self._result(
                70.0, f"Amount is {cfg.multiple_of_average:g}x higher than historical average"
            )

        return self._result(min(50.0, deviation * 15))


def _deviation(amount: float, average: float, stddev: float) -> float:
    if stddev > 0:
        return abs(amount - average) / stddev
    # Every past amount was identical
    return 0.0 if amount == average else math.inf
