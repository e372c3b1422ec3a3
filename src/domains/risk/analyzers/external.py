"""External fraud list and known fraud number ranges."""

import structlog

from ..blocklist import ExternalFraudDatabase
from ..config import RiskConfig
from ..models import FactorResult, RiskFactor, TransactionContext, UserRiskProfile
from .base import RiskAnalyzer

logger = structlog.get_logger()


class ExternalDatabaseAnalyzer(RiskAnalyzer):
    """Fails open: an unreachable fraud database contributes 0."""

    factor = RiskFactor.EXTERNAL_DATABASE
    fallback_score = 0.0

    def __init__(self, fraud_database: ExternalFraudDatabase) -> None:
        self._fraud_database = fraud_database

    async def analyze(
        self,
        ctx: TransactionContext,
        profile: UserRiskProfile | None,
        config: RiskConfig,
    ) -> FactorResult:
        cfg = config.external
        try:
            if await self._fraud_database.is_listed(ctx.phone_number):
                return self._result(
                    cfg.listed_score, "Phone number found in external fraud database"
                )
            if await self._fraud_database.matches_pattern(ctx.phone_number):
                return self._result(cfg.pattern_score, "Phone number matches known fraud pattern")
        except Exception:
            logger.warning("fraud_database_unavailable", user_id=ctx.user_id, exc_info=True)
            return self._result(0.0)
        return self._result(0.0)
