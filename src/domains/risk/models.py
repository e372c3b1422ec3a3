"""Pydantic models for the payment risk domain."""

from datetime import UTC, datetime
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class Decision(StrEnum):
    ALLOW = "ALLOW"
    REVIEW = "REVIEW"
    BLOCK = "BLOCK"


class RiskFactor(StrEnum):
    AMOUNT_DEVIATION = "amount_deviation"
    TIME_PATTERN = "time_pattern"
    FREQUENCY = "frequency"
    DEVICE_FINGERPRINT = "device_fingerprint"
    BEHAVIOR_HISTORY = "behavior_history"
    EXTERNAL_DATABASE = "external_database"


class PaymentStatus(StrEnum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    BLOCKED = "blocked"


class SessionStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


TERMINAL_PAYMENT_STATUSES = (PaymentStatus.PAID, PaymentStatus.BLOCKED, PaymentStatus.FAILED)
OPEN_SESSION_STATUSES = (SessionStatus.PENDING, SessionStatus.APPROVED)


# --- Scoring ---


class TransactionContext(BaseModel):
    """Input to a single scoring pass."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    session_id: str
    amount: Decimal = Field(gt=0)
    phone_number: str
    device_fingerprint: str | None = None
    ip_address: str | None = None
    session_type: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def amount_float(self) -> float:
        return float(self.amount)


class FactorResult(BaseModel):
    factor: RiskFactor
    score: float = Field(ge=0.0, le=100.0)
    reasons: list[str] = []
    fallback: bool = False


class RiskAnalysis(BaseModel):
    """Outcome of one scoring pass. Never mutated after it is produced."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    session_id: str
    factor_scores: dict[RiskFactor, float] = Field(default_factory=dict)
    score: int = Field(ge=0, le=100)
    decision: Decision
    reasons: list[str] = []
    processing_time_ms: float = 0.0
    model_version: str
    analyzed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    error: str | None = None


class UserRiskProfile(BaseModel):
    """Rolling per-user statistics used to spot deviation from a user's own history."""

    user_id: str
    transaction_count: int = 0
    average_amount: float = 0.0
    standard_deviation: float = 0.0
    known_devices: set[str] = Field(default_factory=set)
    preferred_session_types: set[str] = Field(default_factory=set)
    known_locations: set[str] = Field(default_factory=set)
    last_updated: datetime = Field(default_factory=lambda: datetime.now(UTC))


# --- History records ---


class TransactionRecord(BaseModel):
    session_id: str
    user_id: str
    counterparty_id: str | None = None
    amount: float
    session_type: str | None = None
    device_fingerprint: str | None = None
    ip_address: str | None = None
    status: SessionStatus = SessionStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    created_at: datetime


class LabeledOutcome(BaseModel):
    """A historical payment with a terminal outcome, used for training."""

    session_id: str
    user_id: str
    amount: float
    timestamp: datetime
    user_created_at: datetime | None = None
    payment_status: PaymentStatus
    fraud_review_required: bool = False

    @property
    def is_fraud(self) -> bool:
        return self.payment_status == PaymentStatus.BLOCKED or (
            self.fraud_review_required and self.payment_status == PaymentStatus.FAILED
        )


# --- Model training ---


class ValidationMetrics(BaseModel):
    precision: float = Field(ge=0.0, le=1.0)
    recall: float = Field(ge=0.0, le=1.0)
    f1_score: float = Field(ge=0.0, le=1.0)
    false_positive_rate: float = Field(ge=0.0, le=1.0)
    accuracy: float | None = Field(default=None, ge=0.0, le=1.0)


class ModelSnapshot(BaseModel):
    version: str
    weights: list[float]
    bias: float = 0.0
    feature_names: list[str]
    feature_means: list[float] = []
    feature_stds: list[float] = []
    trained_at: datetime
    metrics: ValidationMetrics
    training_samples: int = 0
    validation_samples: int = 0


class TrainingReport(BaseModel):
    model_version: str
    training_date: datetime
    performance: dict[str, str]
    improvements: dict[str, str]
    recommendations: list[str] = []


class TrainerState(StrEnum):
    IDLE = "idle"
    TRAINING = "training"
    DEPLOYED = "deployed"
    REJECTED = "rejected"


class TrainingOutcome(StrEnum):
    DEPLOYED = "deployed"
    REJECTED = "rejected"
    INSUFFICIENT_DATA = "insufficient_data"
    ALREADY_RUNNING = "already_running"
    FAILED = "failed"


class TrainingRunResult(BaseModel):
    outcome: TrainingOutcome
    sample_count: int = 0
    snapshot: ModelSnapshot | None = None
    report: TrainingReport | None = None
    error: str | None = None


# --- Reporting ---


class EngineMetrics(BaseModel):
    model_version: str
    metrics: ValidationMetrics
    trained_model_version: str | None = None
    thresholds: dict[str, int]
    blocklist_size: int
    fraud_database_size: int
    profile_count: int
