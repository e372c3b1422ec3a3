"""In-memory collaborators for risk engine tests."""

import asyncio
from datetime import datetime, timedelta

from src.domains.risk.audit import AuditEntry
from src.domains.risk.models import (
    OPEN_SESSION_STATUSES,
    LabeledOutcome,
    PaymentStatus,
    SessionStatus,
    TransactionContext,
    TransactionRecord,
)


class InMemoryTransactionHistory:
    """TransactionHistory over plain lists."""

    def __init__(
        self,
        records: list[TransactionRecord] | None = None,
        outcomes: list[LabeledOutcome] | None = None,
    ) -> None:
        self.records = list(records or [])
        self.outcomes = list(outcomes or [])
        self.paid_queries = 0
        self.cancel_calls: list[tuple[str, str]] = []

    async def paid_transactions(self, user_id: str, limit: int) -> list[TransactionRecord]:
        self.paid_queries += 1
        # Yield so concurrent callers interleave
        await asyncio.sleep(0)
        paid = [
            r for r in self.records
            if r.user_id == user_id and r.payment_status == PaymentStatus.PAID
        ]
        paid.sort(key=lambda r: r.created_at, reverse=True)
        return paid[:limit]

    async def count_failed_payments(self, user_id: str, since: datetime) -> int:
        return sum(
            1 for r in self.records
            if r.user_id == user_id
            and r.payment_status == PaymentStatus.FAILED
            and r.created_at >= since
        )

    async def count_distinct_counterparties(self, user_id: str, since: datetime) -> int:
        return len({
            r.counterparty_id for r in self.records
            if r.user_id == user_id and r.created_at >= since and r.counterparty_id
        })

    async def count_device_users(self, device_fingerprint: str) -> int:
        return len({r.user_id for r in self.records if r.device_fingerprint == device_fingerprint})

    async def labeled_outcomes(self, since: datetime) -> list[LabeledOutcome]:
        await asyncio.sleep(0)
        return [o for o in self.outcomes if o.timestamp >= since]

    async def cancel_open_sessions(self, user_id: str, reason: str) -> int:
        self.cancel_calls.append((user_id, reason))
        cancelled = 0
        for i, r in enumerate(self.records):
            if r.user_id == user_id and r.status in OPEN_SESSION_STATUSES:
                self.records[i] = r.model_copy(update={"status": SessionStatus.CANCELLED})
                cancelled += 1
        return cancelled


class MemoryAuditWriter:
    def __init__(self) -> None:
        self.entries: list[AuditEntry] = []
        self.fail = False

    async def write(self, entry: AuditEntry) -> None:
        if self.fail:
            raise ConnectionError("audit store unavailable")
        self.entries.append(entry.model_copy())

    def actions(self) -> list[str]:
        return [e.action for e in self.entries]


# Naive timestamps are read as local time; 14:00 is a normal business hour.
NOW = datetime(2026, 3, 10, 14, 0, 0)


def make_context(**kwargs) -> TransactionContext:
    defaults = {
        "user_id": "user-1",
        "session_id": "session-1",
        "amount": "2500.00",
        "phone_number": "254722000001",
        "device_fingerprint": "device-a",
        "ip_address": "41.90.1.10",
        "session_type": "individual",
        "timestamp": NOW,
    }
    defaults.update(kwargs)
    return TransactionContext(**defaults)


def make_record(**kwargs) -> TransactionRecord:
    defaults = {
        "session_id": "hist-1",
        "user_id": "user-1",
        "counterparty_id": "therapist-1",
        "amount": 2500.0,
        "session_type": "individual",
        "device_fingerprint": "device-a",
        "ip_address": "41.90.1.10",
        "status": SessionStatus.COMPLETED,
        "payment_status": PaymentStatus.PAID,
        "created_at": NOW - timedelta(days=7),
    }
    defaults.update(kwargs)
    return TransactionRecord(**defaults)


def paid_history(user_id: str = "user-1", amounts=(2000, 2500, 3000, 2500, 2000, 3000)):
    """Six paid sessions averaging 2500."""
    return [
        make_record(
            session_id=f"{user_id}-paid-{i}",
            user_id=user_id,
            amount=float(a),
            created_at=NOW - timedelta(days=30 - i),
        )
        for i, a in enumerate(amounts)
    ]
