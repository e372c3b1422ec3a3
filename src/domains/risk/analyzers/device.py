"""Device fingerprint familiarity and sharing."""

from ..config import RiskConfig
from ..history import TransactionHistory
from ..models import FactorResult, RiskFactor, TransactionContext, UserRiskProfile
from .base import RiskAnalyzer


class DeviceFingerprintAnalyzer(RiskAnalyzer):
    factor = RiskFactor.DEVICE_FINGERPRINT
    fallback_score = 25.0

    def __init__(self, history: TransactionHistory) -> None:
        self._history = history

    async def analyze(
        self,
        ctx: TransactionContext,
        profile: UserRiskProfile | None,
        config: RiskConfig,
    ) -> FactorResult:
        cfg = config.device
        fingerprint = ctx.device_fingerprint
        if not fingerprint:
            return self._result(cfg.missing_score, "No device fingerprint provided")

        if profile is not None and fingerprint not in profile.known_devices:
            return self._result(cfg.unknown_device_score, "Payment from unknown device")

        shared_users = await self._history.count_device_users(fingerprint)
        if shared_users > cfg.shared_user_limit:
            return self._result(
                cfg.shared_device_score, f"Device associated with {shared_users} different users"
            )
        return self._result(min(40.0, shared_users * cfg.per_user_score))
