"""Operator endpoints for the risk engine: blocklist administration, metrics, retraining."""

import structlog
from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from src.domains.risk.engine import RiskEngine
from src.domains.risk.ml.train import ModelTrainer
from src.domains.risk.models import EngineMetrics, TrainingRunResult

logger = structlog.get_logger()
router = APIRouter(prefix="/api/v1/risk", tags=["risk"])


class BlocklistRequest(BaseModel):
    identifier: str = Field(min_length=1)
    actor: str = "admin"


class FraudDatabaseRequest(BaseModel):
    phone_number: str = Field(min_length=1)
    actor: str = "admin"


def get_risk_engine(request: Request) -> RiskEngine:
    engine = getattr(request.app.state, "risk_engine", None)
    if engine is None:
        raise RuntimeError("risk engine not initialized")
    return engine


def get_model_trainer(request: Request) -> ModelTrainer:
    trainer = getattr(request.app.state, "model_trainer", None)
    if trainer is None:
        raise RuntimeError("model trainer not initialized")
    return trainer


@router.get("/metrics")
async def get_metrics(
    engine: RiskEngine = Depends(get_risk_engine),  # noqa: B008
) -> EngineMetrics:
    return engine.get_metrics()


@router.post("/blocklist", status_code=201)
async def add_to_blocklist(
    body: BlocklistRequest,
    engine: RiskEngine = Depends(get_risk_engine),  # noqa: B008
) -> dict:
    added = await engine.add_to_blocklist(body.identifier, actor=body.actor)
    logger.info("blocklist_admin_add", identifier=body.identifier, added=added, actor=body.actor)
    return {"identifier": body.identifier, "blocked": True, "added": added}


@router.delete("/blocklist/{identifier}")
async def remove_from_blocklist(
    identifier: str,
    actor: str = "admin",
    engine: RiskEngine = Depends(get_risk_engine),  # noqa: B008
) -> dict:
    removed = await engine.remove_from_blocklist(identifier, actor=actor)
    if not removed:
        raise LookupError(f"{identifier} is not blocked")
    logger.info("blocklist_admin_remove", identifier=identifier, actor=actor)
    return {"identifier": identifier, "blocked": False}


@router.post("/fraud-database", status_code=201)
async def add_to_fraud_database(
    body: FraudDatabaseRequest,
    engine: RiskEngine = Depends(get_risk_engine),  # noqa: B008
) -> dict:
    await engine.add_to_fraud_database(body.phone_number, actor=body.actor)
    return {"phone_number": body.phone_number, "listed": True}


@router.delete("/fraud-database/{phone_number}")
async def remove_from_fraud_database(
    phone_number: str,
    actor: str = "admin",
    engine: RiskEngine = Depends(get_risk_engine),  # noqa: B008
) -> dict:
    await engine.remove_from_fraud_database(phone_number, actor=actor)
    return {"phone_number": phone_number, "listed": False}


@router.post("/training/run")
async def run_training(
    trainer: ModelTrainer = Depends(get_model_trainer),  # noqa: B008
) -> TrainingRunResult:
    return await trainer.retrain()


@router.get("/training/status")
async def training_status(
    trainer: ModelTrainer = Depends(get_model_trainer),  # noqa: B008
) -> dict:
    snapshot = trainer.last_snapshot
    return {
        "state": trainer.state.value,
        "is_training": trainer.is_training,
        "last_outcome": trainer.last_outcome.value if trainer.last_outcome else None,
        "last_model_version": snapshot.version if snapshot else None,
        "schedule": trainer.schedule,
    }
