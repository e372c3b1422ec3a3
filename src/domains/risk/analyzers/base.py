"""Abstract base class for risk factor analyzers."""

from abc import ABC, abstractmethod

from ..config import RiskConfig
from ..models import FactorResult, RiskFactor, TransactionContext, UserRiskProfile


class RiskAnalyzer(ABC):
    """Scores one risk factor for a transaction on a 0-100 scale.

    Analyzers are read-only: they receive a snapshot of the user's profile
    and never mutate it. A failing analyzer is replaced by its
    fallback_score by the pipeline runner.
    """

    factor: RiskFactor
    fallback_score: float = 20.0

    @abstractmethod
    async def analyze(
        self,
        ctx: TransactionContext,
        profile: UserRiskProfile | None,
        config: RiskConfig,
    ) -> FactorResult:
        """Evaluate this factor and return a FactorResult."""
        ...

    def _result(self, score: float, *reasons: str) -> FactorResult:
        return FactorResult(
            factor=self.factor,
            score=max(0.0, min(float(score), 100.0)),
            reasons=list(reasons),
        )

    def fallback(self) -> FactorResult:
        return FactorResult(factor=self.factor, score=self.fallback_score, fallback=True)
