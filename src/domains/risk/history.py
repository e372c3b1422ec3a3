"""Historical transaction queries backing the analyzers and the trainer.

The engine treats storage as an eventually-consistent collaborator: stale
reads are tolerated, and apart from enforcement's session cancellation the
engine never writes here.
"""

from datetime import datetime
from typing import Protocol

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.db.models import PaymentSession, User

from .models import (
    OPEN_SESSION_STATUSES,
    TERMINAL_PAYMENT_STATUSES,
    LabeledOutcome,
    PaymentStatus,
    SessionStatus,
    TransactionRecord,
)

logger = structlog.get_logger()


class TransactionHistory(Protocol):
    async def paid_transactions(self, user_id: str, limit: int) -> list[TransactionRecord]: ...

    async def count_failed_payments(self, user_id: str, since: datetime) -> int: ...

    async def count_distinct_counterparties(self, user_id: str, since: datetime) -> int: ...

    async def count_device_users(self, device_fingerprint: str) -> int: ...

    async def labeled_outcomes(self, since: datetime) -> list[LabeledOutcome]: ...

    async def cancel_open_sessions(self, user_id: str, reason: str) -> int: ...


def _to_record(row: PaymentSession) -> TransactionRecord:
    return TransactionRecord(
        session_id=row.id,
        user_id=row.client_id,
        counterparty_id=row.counterparty_id,
        amount=float(row.price or 0),
        session_type=row.session_type,
        device_fingerprint=row.device_fingerprint,
        ip_address=row.ip_address,
        status=SessionStatus(row.status),
        payment_status=PaymentStatus(row.payment_status),
        created_at=row.created_at,
    )


class SqlTransactionHistory:
    """TransactionHistory over the payment_sessions table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def paid_transactions(self, user_id: str, limit: int) -> list[TransactionRecord]:
        stmt = (
            select(PaymentSession)
            .where(
                PaymentSession.client_id == user_id,
                PaymentSession.payment_status == PaymentStatus.PAID.value,
            )
            .order_by(PaymentSession.created_at.desc())
            .limit(limit)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [_to_record(row) for row in result.scalars().all()]

    async def count_failed_payments(self, user_id: str, since: datetime) -> int:
        stmt = select(func.count()).where(
            PaymentSession.client_id == user_id,
            PaymentSession.payment_status == PaymentStatus.FAILED.value,
            PaymentSession.payment_initiated_at >= since,
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return result.scalar_one()

    async def count_distinct_counterparties(self, user_id: str, since: datetime) -> int:
        stmt = select(func.count(func.distinct(PaymentSession.counterparty_id))).where(
            PaymentSession.client_id == user_id,
            PaymentSession.created_at >= since,
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return result.scalar_one()

    async def count_device_users(self, device_fingerprint: str) -> int:
        stmt = select(func.count(func.distinct(PaymentSession.client_id))).where(
            PaymentSession.device_fingerprint == device_fingerprint,
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return result.scalar_one()

    async def labeled_outcomes(self, since: datetime) -> list[LabeledOutcome]:
        stmt = (
            select(PaymentSession, User.created_at)
            .outerjoin(User, User.id == PaymentSession.client_id)
            .where(
                PaymentSession.payment_initiated_at >= since,
                PaymentSession.payment_status.in_([s.value for s in TERMINAL_PAYMENT_STATUSES]),
            )
            .order_by(PaymentSession.payment_initiated_at)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [
                LabeledOutcome(
                    session_id=row.id,
                    user_id=row.client_id,
                    amount=float(row.price or 0),
                    timestamp=row.payment_initiated_at,
                    user_created_at=user_created_at,
                    payment_status=PaymentStatus(row.payment_status),
                    fraud_review_required=bool(row.fraud_review_required),
                )
                for row, user_created_at in result.all()
            ]

    async def cancel_open_sessions(self, user_id: str, reason: str) -> int:
        stmt = (
            update(PaymentSession)
            .where(
                PaymentSession.client_id == user_id,
                PaymentSession.status.in_([s.value for s in OPEN_SESSION_STATUSES]),
            )
            .values(status=SessionStatus.CANCELLED.value, cancellation_reason=reason)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()
        logger.info("open_sessions_cancelled", user_id=user_id, count=result.rowcount)
        return result.rowcount
