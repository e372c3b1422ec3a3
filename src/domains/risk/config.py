"""Risk engine configuration with sensible defaults."""

import os
from dataclasses import dataclass, field


@dataclass
class DecisionThresholds:
    review: int = 70
    block: int = 90

    def __post_init__(self) -> None:
        if not 0 <= self.review <= self.block <= 100:
            raise ValueError(
                f"Thresholds must satisfy 0 <= review <= block <= 100, "
                f"got review={self.review} block={self.block}"
            )


@dataclass
class AmountSettings:
    min_history: int = 5
    new_user_score: float = 30.0
    deviation_limit: float = 3.0
    multiple_of_average: float = 5.0


@dataclass
class TimeSettings:
    # Naive timestamps are assumed to already be in this zone
    local_timezone: str = "Africa/Nairobi"
    unusual_hours_score: float = 60.0
    early_morning_score: float = 30.0
    normal_score: float = 10.0


@dataclass
class VelocitySettings:
    failure_window_minutes: int = 10
    counterparty_limit: int = 3
    counterparty_score: float = 50.0


@dataclass
class DeviceSettings:
    missing_score: float = 40.0
    unknown_device_score: float = 50.0
    shared_user_limit: int = 5
    shared_device_score: float = 70.0
    per_user_score: float = 8.0


@dataclass
class BehaviorSettings:
    new_user_score: float = 25.0
    session_type_penalty: float = 20.0
    location_penalty: float = 30.0
    max_score: float = 80.0


@dataclass
class ExternalSettings:
    fraud_patterns: tuple[str, ...] = (r"^254700000", r"^254711111")
    listed_score: float = 100.0
    pattern_score: float = 80.0


@dataclass
class ProfileSettings:
    history_limit: int = 50
    default_country: str = "KE"
    # IP prefix -> ISO country, consulted before default_country
    ip_prefix_countries: dict[str, str] = field(default_factory=dict)


@dataclass
class EngineSettings:
    model_version: str = "1.0.0"
    latency_budget_ms: float = 2000.0
    # None keeps the latency budget advisory only
    hard_timeout_seconds: float | None = None


@dataclass
class TrainingSettings:
    schedule: str = "0 2 * * 0"
    lookback_days: int = 90
    min_samples: int = 100
    learning_rate: float = 0.01
    epochs: int = 1000
    validation_fraction: float = 0.2
    prediction_threshold: float = 0.5
    performance_threshold: float = 0.85
    baseline_metrics: dict[str, float] = field(
        default_factory=lambda: {
            "precision": 0.92,
            "recall": 0.88,
            "f1_score": 0.90,
            "false_positive_rate": 0.03,
        }
    )


@dataclass
class RiskConfig:
    thresholds: DecisionThresholds = field(default_factory=DecisionThresholds)
    amount: AmountSettings = field(default_factory=AmountSettings)
    time: TimeSettings = field(default_factory=TimeSettings)
    velocity: VelocitySettings = field(default_factory=VelocitySettings)
    device: DeviceSettings = field(default_factory=DeviceSettings)
    behavior: BehaviorSettings = field(default_factory=BehaviorSettings)
    external: ExternalSettings = field(default_factory=ExternalSettings)
    profiles: ProfileSettings = field(default_factory=ProfileSettings)
    engine: EngineSettings = field(default_factory=EngineSettings)
    training: TrainingSettings = field(default_factory=TrainingSettings)

    @classmethod
    def from_env(cls) -> "RiskConfig":
        """Load config with env var overrides. Env vars use RISK_ prefix."""
        config = cls()

        # Decision overrides
        review = int(os.getenv("RISK_REVIEW_THRESHOLD", config.thresholds.review))
        block = int(os.getenv("RISK_BLOCK_THRESHOLD", config.thresholds.block))
        config.thresholds = DecisionThresholds(review=review, block=block)

        # Engine overrides
        if v := os.getenv("RISK_MODEL_VERSION"):
            config.engine.model_version = v
        if v := os.getenv("RISK_LATENCY_BUDGET_MS"):
            config.engine.latency_budget_ms = float(v)
        if v := os.getenv("RISK_HARD_TIMEOUT_SECONDS"):
            config.engine.hard_timeout_seconds = float(v)
        if v := os.getenv("RISK_LOCAL_TIMEZONE"):
            config.time.local_timezone = v
        if v := os.getenv("RISK_DEFAULT_COUNTRY"):
            config.profiles.default_country = v

        # Training overrides
        if v := os.getenv("RISK_TRAINING_MIN_SAMPLES"):
            config.training.min_samples = int(v)
        if v := os.getenv("RISK_TRAINING_EPOCHS"):
            config.training.epochs = int(v)
        if v := os.getenv("RISK_TRAINING_LEARNING_RATE"):
            config.training.learning_rate = float(v)
        if v := os.getenv("RISK_PERFORMANCE_THRESHOLD"):
            config.training.performance_threshold = float(v)

        return config


# Module-level default instance
default_config = RiskConfig()
