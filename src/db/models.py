"""SQLAlchemy ORM models for payment sessions and the audit trail."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import BigInteger, Boolean, DateTime, Float, ForeignKey, Numeric, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    phone_number: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class PaymentSession(Base):
    __tablename__ = "payment_sessions"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    client_id: Mapped[str] = mapped_column(ForeignKey("users.id"), index=True)
    counterparty_id: Mapped[str | None] = mapped_column(String, index=True, nullable=True)
    session_type: Mapped[str | None] = mapped_column(String, nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    status: Mapped[str] = mapped_column(String, index=True, default="pending")
    payment_status: Mapped[str] = mapped_column(String, index=True, default="pending")
    mpesa_phone_number: Mapped[str | None] = mapped_column(String, nullable=True)
    device_fingerprint: Mapped[str | None] = mapped_column(String, index=True, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String, nullable=True)
    fraud_review_required: Mapped[bool] = mapped_column(Boolean, default=False)
    fraud_risk_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    payment_initiated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )


class AuditLogEntry(Base):
    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    sequence: Mapped[int] = mapped_column(BigInteger, unique=True, index=True)
    action: Mapped[str] = mapped_column(String, index=True)
    actor: Mapped[str] = mapped_column(String, default="system")
    target_user_id: Mapped[str | None] = mapped_column(String, index=True, nullable=True)
    details: Mapped[dict] = mapped_column(JSONB, default=dict)
    previous_hash: Mapped[str | None] = mapped_column(String, nullable=True)
    entry_hash: Mapped[str] = mapped_column(String, unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
