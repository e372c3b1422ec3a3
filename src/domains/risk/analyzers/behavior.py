"""Consistency with the user's established session types and locations."""

from ..config import RiskConfig
from ..geo import GeoResolver
from ..models import FactorResult, RiskFactor, TransactionContext, UserRiskProfile
from .base import RiskAnalyzer


class BehaviorConsistencyAnalyzer(RiskAnalyzer):
    """Scores departures from the profile.

    Does not touch the profile itself; the engine upserts it after scoring.
    """

    factor = RiskFactor.BEHAVIOR_HISTORY
    fallback_score = 20.0

    def __init__(self, geo: GeoResolver) -> None:
        self._geo = geo

    async def analyze(
        self,
        ctx: TransactionContext,
        profile: UserRiskProfile | None,
        config: RiskConfig,
    ) -> FactorResult:
        cfg = config.behavior
        if profile is None:
            return self._result(cfg.new_user_score)

        score = 0.0
        reasons: list[str] = []

        if ctx.session_type and ctx.session_type not in profile.preferred_session_types:
            reasons.append("Unusual session type for this user")
            score += cfg.session_type_penalty

        if ctx.ip_address and profile.known_locations:
            country = await self._geo.resolve(ctx.ip_address)
            if country and country not in profile.known_locations:
                reasons.append(f"Payment from unusual location: {country}")
                score += cfg.location_penalty

        return self._result(min(cfg.max_score, score), *reasons)
