"""Payment risk scoring domain."""

from .aggregator import WEIGHTS, aggregate
from .audit import AuditAction, AuditEntry, AuditLog, SqlAuditWriter, verify_chain
from .blocklist import Blocklist, ExternalFraudDatabase
from .config import RiskConfig
from .decision import decide
from .engine import RiskEngine
from .enforcement import Enforcer
from .exceptions import AnalysisFault, AuditWriteError, RiskEngineError, TrainingError
from .geo import GeoResolver
from .history import SqlTransactionHistory, TransactionHistory
from .models import (
    Decision,
    FactorResult,
    ModelSnapshot,
    RiskAnalysis,
    RiskFactor,
    TransactionContext,
    UserRiskProfile,
    ValidationMetrics,
)
from .profiles import ProfileStore

__all__ = [
    "WEIGHTS",
    "AnalysisFault",
    "AuditAction",
    "AuditEntry",
    "AuditLog",
    "AuditWriteError",
    "Blocklist",
    "Decision",
    "Enforcer",
    "ExternalFraudDatabase",
    "FactorResult",
    "GeoResolver",
    "ModelSnapshot",
    "ProfileStore",
    "RiskAnalysis",
    "RiskConfig",
    "RiskEngine",
    "RiskEngineError",
    "RiskFactor",
    "SqlAuditWriter",
    "SqlTransactionHistory",
    "TrainingError",
    "TransactionContext",
    "TransactionHistory",
    "UserRiskProfile",
    "ValidationMetrics",
    "aggregate",
    "decide",
    "verify_chain",
]
