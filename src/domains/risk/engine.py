"""Risk scoring pipeline: blocklist -> profile -> analyzers -> aggregate -> decide -> enforce.

RiskEngine.evaluate raises AnalysisFault when a pass cannot be completed;
RiskEngine.analyze is the caller-facing boundary that converts any fault
into the fail-open ALLOW outcome, so infrastructure faults never block a
payment.
"""

import asyncio
import time

import structlog

from .aggregator import aggregate
from .analyzers import RiskAnalyzer, build_analyzers
from .audit import AuditAction, AuditLog
from .blocklist import Blocklist, ExternalFraudDatabase
from .config import RiskConfig, default_config
from .decision import decide
from .enforcement import Enforcer
from .exceptions import AnalysisFault
from .geo import GeoResolver
from .history import TransactionHistory
from .models import (
    Decision,
    EngineMetrics,
    FactorResult,
    ModelSnapshot,
    RiskAnalysis,
    TransactionContext,
    UserRiskProfile,
    ValidationMetrics,
)
from .profiles import ProfileStore

logger = structlog.get_logger()

BLOCKED_REASON = "blocked"
FAIL_OPEN_REASON = "analysis failed, defaulting to allow"


class RiskEngine:
    """Scores payment attempts and enforces BLOCK decisions."""

    def __init__(
        self,
        history: TransactionHistory,
        audit: AuditLog,
        config: RiskConfig | None = None,
        *,
        blocklist: Blocklist | None = None,
        fraud_database: ExternalFraudDatabase | None = None,
        geo: GeoResolver | None = None,
        profiles: ProfileStore | None = None,
        analyzers: list[RiskAnalyzer] | None = None,
        enforcer: Enforcer | None = None,
    ) -> None:
        self._config = config or default_config
        self._audit = audit
        self._blocklist = blocklist if blocklist is not None else Blocklist()
        self._fraud_database = (
            fraud_database
            if fraud_database is not None
            else ExternalFraudDatabase(self._config.external.fraud_patterns)
        )
        self._geo = geo or GeoResolver(
            self._config.profiles.default_country, self._config.profiles.ip_prefix_countries
        )
        self._profiles = profiles or ProfileStore(history, self._geo, self._config)
        self._analyzers = (
            analyzers
            if analyzers is not None
            else build_analyzers(history, self._geo, self._fraud_database)
        )
        self._enforcer = enforcer or Enforcer(self._blocklist, history, audit)
        self._model_metrics = ValidationMetrics(**self._config.training.baseline_metrics)
        self._trained_model_version: str | None = None

        logger.info(
            "risk_engine_initialized",
            analyzer_count=len(self._analyzers),
            model_version=self.model_version,
        )

    @property
    def model_version(self) -> str:
        return self._config.engine.model_version

    @property
    def model_metrics(self) -> ValidationMetrics:
        return self._model_metrics

    @property
    def blocklist(self) -> Blocklist:
        return self._blocklist

    @property
    def profiles(self) -> ProfileStore:
        return self._profiles

    async def analyze(self, ctx: TransactionContext) -> RiskAnalysis:
        """Score a transaction. Always returns a decision and never raises."""
        start = time.perf_counter()
        try:
            timeout = self._config.engine.hard_timeout_seconds
            if timeout is None:
                return await self.evaluate(ctx)
            try:
                return await asyncio.wait_for(self.evaluate(ctx), timeout=timeout)
            except TimeoutError as exc:
                raise AnalysisFault(
                    f"analysis exceeded {timeout}s deadline", user_id=ctx.user_id
                ) from exc
        except Exception as exc:
            logger.error(
                "risk_analysis_failed",
                user_id=ctx.user_id,
                session_id=ctx.session_id,
                error=str(exc),
                exc_info=True,
            )
            return RiskAnalysis(
                user_id=ctx.user_id,
                session_id=ctx.session_id,
                score=0,
                decision=Decision.ALLOW,
                reasons=[FAIL_OPEN_REASON],
                processing_time_ms=_elapsed_ms(start),
                model_version=self.model_version,
                error=str(exc),
            )

    async def evaluate(self, ctx: TransactionContext) -> RiskAnalysis:
        """Run the scoring pipeline. Raises AnalysisFault on any pipeline failure."""
        start = time.perf_counter()

        if self._blocklist.is_blocked(ctx.user_id, ctx.phone_number):
            analysis = RiskAnalysis(
                user_id=ctx.user_id,
                session_id=ctx.session_id,
                score=100,
                decision=Decision.BLOCK,
                reasons=[BLOCKED_REASON],
                processing_time_ms=_elapsed_ms(start),
                model_version=self.model_version,
            )
            logger.info("blocked_identifier_rejected", user_id=ctx.user_id)
            await self._finish(ctx, analysis)
            return analysis

        try:
            profile = await self._profiles.get(ctx.user_id)
            results = await self._run_analyzers(ctx, profile)
        except Exception as exc:
            raise AnalysisFault("risk factor evaluation failed", user_id=ctx.user_id) from exc

        factor_scores = {r.factor: r.score for r in results}
        score = aggregate(factor_scores)
        decision = decide(score, self._config.thresholds)

        try:
            await self._profiles.record_transaction(ctx)
        except Exception:
            logger.exception("risk_profile_update_failed", user_id=ctx.user_id)

        analysis = RiskAnalysis(
            user_id=ctx.user_id,
            session_id=ctx.session_id,
            factor_scores=factor_scores,
            score=score,
            decision=decision,
            reasons=[reason for r in results for reason in r.reasons],
            processing_time_ms=_elapsed_ms(start),
            model_version=self.model_version,
        )

        if analysis.processing_time_ms > self._config.engine.latency_budget_ms:
            logger.warning(
                "risk_analysis_slow",
                user_id=ctx.user_id,
                processing_time_ms=analysis.processing_time_ms,
                budget_ms=self._config.engine.latency_budget_ms,
            )

        await self._finish(ctx, analysis)

        logger.info(
            "transaction_analyzed",
            user_id=ctx.user_id,
            session_id=ctx.session_id,
            score=score,
            decision=decision.value,
            fallback_factors=[r.factor.value for r in results if r.fallback],
            processing_time_ms=analysis.processing_time_ms,
        )
        return analysis

    async def _run_analyzers(
        self,
        ctx: TransactionContext,
        profile: UserRiskProfile | None,
    ) -> list[FactorResult]:
        return list(
            await asyncio.gather(*(self._run_one(a, ctx, profile) for a in self._analyzers))
        )

    async def _run_one(
        self,
        analyzer: RiskAnalyzer,
        ctx: TransactionContext,
        profile: UserRiskProfile | None,
    ) -> FactorResult:
        try:
            return await analyzer.analyze(ctx, profile, self._config)
        except Exception:
            logger.exception(
                "analyzer_failed",
                factor=analyzer.factor.value,
                user_id=ctx.user_id,
                fallback_score=analyzer.fallback_score,
            )
            return analyzer.fallback()

    async def _finish(self, ctx: TransactionContext, analysis: RiskAnalysis) -> None:
        try:
            await self._audit.append(
                AuditAction.FRAUD_ANALYSIS,
                {
                    "session_id": ctx.session_id,
                    "risk_score": analysis.score,
                    "decision": analysis.decision.value,
                    "factor_scores": {k.value: v for k, v in analysis.factor_scores.items()},
                    "reasons": analysis.reasons,
                    "model_version": analysis.model_version,
                },
                target_user_id=ctx.user_id,
            )
        except Exception:
            logger.exception("risk_analysis_audit_failed", user_id=ctx.user_id)

        if analysis.decision == Decision.BLOCK:
            try:
                await self._enforcer.enforce(
                    ctx.user_id, ctx.phone_number, "; ".join(analysis.reasons)
                )
            except Exception:
                logger.exception("enforcement_failed", user_id=ctx.user_id)

    # --- Administration ---

    async def add_to_blocklist(self, identifier: str, actor: str = "admin") -> bool:
        added = self._blocklist.add(identifier)
        await self._audit_admin(AuditAction.BLOCKLIST_ADD, identifier, actor)
        return added

    async def remove_from_blocklist(self, identifier: str, actor: str = "admin") -> bool:
        removed = self._blocklist.remove(identifier)
        await self._audit_admin(AuditAction.BLOCKLIST_REMOVE, identifier, actor)
        return removed

    async def add_to_fraud_database(self, phone_number: str, actor: str = "admin") -> None:
        self._fraud_database.add(phone_number)
        await self._audit_admin(AuditAction.FRAUD_DATABASE_ADD, phone_number, actor)

    async def remove_from_fraud_database(self, phone_number: str, actor: str = "admin") -> None:
        self._fraud_database.remove(phone_number)
        await self._audit_admin(AuditAction.FRAUD_DATABASE_REMOVE, phone_number, actor)

    async def _audit_admin(self, action: str, identifier: str, actor: str) -> None:
        try:
            await self._audit.append(action, {"identifier": identifier}, actor=actor)
        except Exception:
            logger.exception("admin_audit_failed", action=action)

    # --- Metrics ---

    def record_model_metrics(self, snapshot: ModelSnapshot) -> None:
        """Adopt a deployed snapshot's validation metrics.

        Scoring weights are not touched; the trained model is reported
        alongside the rule-based scorer, not in place of it.
        """
        self._model_metrics = snapshot.metrics
        self._trained_model_version = snapshot.version
        logger.info(
            "model_metrics_updated",
            trained_model_version=snapshot.version,
            precision=snapshot.metrics.precision,
            recall=snapshot.metrics.recall,
            f1_score=snapshot.metrics.f1_score,
        )

    def get_metrics(self) -> EngineMetrics:
        return EngineMetrics(
            model_version=self.model_version,
            metrics=self._model_metrics,
            trained_model_version=self._trained_model_version,
            thresholds={
                "REVIEW": self._config.thresholds.review,
                "BLOCK": self._config.thresholds.block,
            },
            blocklist_size=len(self._blocklist),
            fraud_database_size=len(self._fraud_database),
            profile_count=len(self._profiles),
        )


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)
