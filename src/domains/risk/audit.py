"""Tamper-evident, hash-chained audit log.

Each entry's hash is SHA-256 over the previous entry's hash concatenated
with the entry's canonical JSON content. The engine only appends; anything
that reads the table back can recompute the chain with verify_chain.
"""

import asyncio
import hashlib
import json
from datetime import UTC, datetime
from typing import Any, Protocol

import structlog
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.db.models import AuditLogEntry

from .exceptions import AuditWriteError

logger = structlog.get_logger()


class AuditAction:
    FRAUD_ANALYSIS = "FRAUD_ANALYSIS"
    FRAUD_BLOCK_USER = "FRAUD_BLOCK_USER"
    BLOCKLIST_ADD = "FRAUD_BLOCKLIST_ADD"
    BLOCKLIST_REMOVE = "FRAUD_BLOCKLIST_REMOVE"
    FRAUD_DATABASE_ADD = "FRAUD_DATABASE_ADD"
    FRAUD_DATABASE_REMOVE = "FRAUD_DATABASE_REMOVE"
    MODEL_DEPLOYED = "FRAUD_MODEL_DEPLOYED"
    MODEL_PERFORMANCE_REPORT = "FRAUD_MODEL_PERFORMANCE_REPORT"
    MODEL_PERFORMANCE_ALERT = "FRAUD_MODEL_PERFORMANCE_ALERT"
    MODEL_TRAINING_FAILED = "FRAUD_MODEL_TRAINING_FAILED"


class AuditEntry(BaseModel):
    sequence: int
    action: str
    actor: str = "system"
    target_user_id: str | None = None
    details: dict[str, Any] = {}
    timestamp: datetime
    previous_hash: str | None = None
    entry_hash: str = ""

    def canonical_content(self) -> str:
        payload = {
            "sequence": self.sequence,
            "action": self.action,
            "actor": self.actor,
            "target_user_id": self.target_user_id,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }
        return json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)


def compute_entry_hash(entry: AuditEntry, previous_hash: str | None) -> str:
    data = (previous_hash or "") + entry.canonical_content()
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def verify_chain(entries: list[AuditEntry], previous_hash: str | None = None) -> bool:
    """Recompute every hash in order. False on any edit, gap, or reordering.

    previous_hash is the hash preceding the first entry (None at genesis).
    """
    for entry in entries:
        if entry.previous_hash != previous_hash:
            return False
        if compute_entry_hash(entry, previous_hash) != entry.entry_hash:
            return False
        previous_hash = entry.entry_hash
    return True


class AuditWriter(Protocol):
    async def write(self, entry: AuditEntry) -> None: ...


class SqlAuditWriter:
    """Persists audit entries to the audit_log table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def load_head(self) -> tuple[str | None, int]:
        """Hash and sequence of the newest persisted entry, to resume the chain."""
        stmt = (
            select(AuditLogEntry.entry_hash, AuditLogEntry.sequence)
            .order_by(AuditLogEntry.sequence.desc())
            .limit(1)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            row = result.one_or_none()
        if row is None:
            return None, 0
        return row[0], row[1]

    async def write(self, entry: AuditEntry) -> None:
        async with self._session_factory() as session:
            session.add(
                AuditLogEntry(
                    sequence=entry.sequence,
                    action=entry.action,
                    actor=entry.actor,
                    target_user_id=entry.target_user_id,
                    details=entry.details,
                    previous_hash=entry.previous_hash,
                    entry_hash=entry.entry_hash,
                    created_at=entry.timestamp,
                )
            )
            await session.commit()


class AuditLog:
    """Append-only hash chain in front of an AuditWriter."""

    def __init__(
        self,
        writer: AuditWriter,
        *,
        last_hash: str | None = None,
        last_sequence: int = 0,
    ) -> None:
        self._writer = writer
        self._last_hash = last_hash
        self._sequence = last_sequence
        self._lock = asyncio.Lock()

    @property
    def head(self) -> str | None:
        return self._last_hash

    async def append(
        self,
        action: str,
        details: dict[str, Any],
        *,
        target_user_id: str | None = None,
        actor: str = "system",
    ) -> AuditEntry:
        async with self._lock:
            entry = AuditEntry(
                sequence=self._sequence + 1,
                action=action,
                actor=actor,
                target_user_id=target_user_id,
                details=json.loads(json.dumps(details, default=str)),
                timestamp=datetime.now(UTC),
                previous_hash=self._last_hash,
            )
            entry.entry_hash = compute_entry_hash(entry, self._last_hash)
            try:
                await self._writer.write(entry)
            except Exception as exc:
                raise AuditWriteError(f"audit write failed for {action}") from exc
            self._sequence = entry.sequence
            self._last_hash = entry.entry_hash

        logger.debug("audit_entry_appended", action=action, sequence=entry.sequence)
        return entry
