"""Block enforcement: blocklist, session cancellation, audit, notification."""

from datetime import UTC, datetime

import structlog

from .alerts import publish_event
from .audit import AuditAction, AuditLog
from .blocklist import Blocklist
from .history import TransactionHistory

logger = structlog.get_logger()

FRAUD_CANCELLATION_REASON = "Fraud detection"


class Enforcer:
    """Applies a BLOCK decision.

    Each step is fire-and-log: a failed cancellation is left to whatever
    reconciliation job owns the session lifecycle, and nothing here is
    allowed to reach the caller of the scoring pipeline.
    """

    def __init__(
        self,
        blocklist: Blocklist,
        history: TransactionHistory,
        audit: AuditLog,
        kafka_producer=None,
        topic: str = "payments.risk.enforcement",
    ) -> None:
        self._blocklist = blocklist
        self._history = history
        self._audit = audit
        self._kafka_producer = kafka_producer
        self._topic = topic

    async def enforce(self, user_id: str, phone_number: str | None, reason: str) -> None:
        newly_blocked = [i for i in (user_id, phone_number) if i and self._blocklist.add(i)]

        cancelled: int | None = None
        try:
            cancelled = await self._history.cancel_open_sessions(
                user_id, FRAUD_CANCELLATION_REASON
            )
        except Exception:
            logger.exception("session_cancellation_failed", user_id=user_id)

        try:
            await self._audit.append(
                AuditAction.FRAUD_BLOCK_USER,
                {
                    "phone_number": phone_number,
                    "reason": reason,
                    "newly_blocked": newly_blocked,
                    "cancelled_sessions": cancelled,
                },
                target_user_id=user_id,
            )
        except Exception:
            logger.exception("enforcement_audit_failed", user_id=user_id)

        await publish_event(
            self._kafka_producer,
            self._topic,
            {
                "event_type": "user-blocked",
                "user_id": user_id,
                "phone_number": phone_number,
                "reason": reason,
                "blocked_at": datetime.now(UTC).isoformat(),
            },
            key=user_id,
        )

        logger.warning(
            "user_blocked_for_fraud",
            user_id=user_id,
            newly_blocked=len(newly_blocked),
            cancelled_sessions=cancelled,
            reason=reason,
        )
