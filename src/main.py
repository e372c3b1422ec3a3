"""FastAPI application entry point for the payment risk engine."""

import contextlib
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from src.api.middleware.error_handler import global_exception_handler
from src.api.middleware.logging import StructuredLoggingMiddleware
from src.api.routes.health import router as health_router
from src.api.routes.risk import router as risk_router
from src.config import settings
from src.domains.risk.exceptions import RiskEngineError
from src.shared.logging import setup_logging

logger = structlog.get_logger()

# Track app start time for uptime calculation
APP_START_TIME: float = 0.0


async def _start_kafka_producer():
    if not settings.kafka_enabled:
        return None
    try:
        from aiokafka import AIOKafkaProducer

        producer = AIOKafkaProducer(bootstrap_servers=settings.kafka_bootstrap_servers)
        await producer.start()
        logger.info("kafka_producer_started", servers=settings.kafka_bootstrap_servers)
        return producer
    except Exception:
        logger.warning("kafka_producer_failed_to_start", exc_info=True)
        return None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Construct the engine's long-lived collaborators once and share them via app.state."""
    global APP_START_TIME
    APP_START_TIME = time.time()
    setup_logging(settings.log_level)

    logger.info(
        "risk_engine_starting",
        app_name=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
    )

    from src.db.database import async_session_factory, init_db
    from src.domains.risk.audit import AuditLog, SqlAuditWriter
    from src.domains.risk.blocklist import Blocklist
    from src.domains.risk.config import RiskConfig
    from src.domains.risk.engine import RiskEngine
    from src.domains.risk.enforcement import Enforcer
    from src.domains.risk.history import SqlTransactionHistory
    from src.domains.risk.ml.train import ModelTrainer, load_training_settings

    await init_db()

    config = RiskConfig.from_env()
    if settings.training_config_path:
        config.training = load_training_settings(settings.training_config_path, config.training)

    producer = await _start_kafka_producer()
    history = SqlTransactionHistory(async_session_factory)
    writer = SqlAuditWriter(async_session_factory)
    last_hash, last_sequence = await writer.load_head()
    audit = AuditLog(writer, last_hash=last_hash, last_sequence=last_sequence)

    blocklist = Blocklist()
    enforcer = Enforcer(
        blocklist, history, audit, kafka_producer=producer, topic=settings.risk_enforcement_topic
    )
    engine = RiskEngine(history, audit, config, blocklist=blocklist, enforcer=enforcer)
    trainer = ModelTrainer(
        history,
        engine,
        audit,
        config,
        kafka_producer=producer,
        alerts_topic=settings.risk_alerts_topic,
    )

    app.state.risk_engine = engine
    app.state.model_trainer = trainer

    yield

    if producer is not None:
        with contextlib.suppress(Exception):
            await producer.stop()
    logger.info("risk_engine_shutting_down")


app = FastAPI(
    title="Payment Risk Engine",
    description="Transaction risk scoring, enforcement and model retraining",
    version=settings.app_version,
    lifespan=lifespan,
)

# Structured logging middleware
app.add_middleware(StructuredLoggingMiddleware)

# Exception handlers
for exc_class in (ValueError, LookupError, RiskEngineError, Exception):
    app.add_exception_handler(exc_class, global_exception_handler)

# Register routers
app.include_router(health_router)
app.include_router(risk_router)


def get_uptime() -> int:
    """Get application uptime in seconds."""
    if APP_START_TIME == 0.0:
        return 0
    return int(time.time() - APP_START_TIME)
