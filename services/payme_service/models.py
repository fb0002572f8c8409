"""Database models for the Payme Service."""
from datetime import datetime
from enum import Enum

from sqlalchemy import (
    JSON,
    BigInteger,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
)

from shared.database import Base


class OrderStatus(str, Enum):
    """Business lifecycle of a billing order."""
    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    """Payment lifecycle of a billing order."""
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class TransactionState(int, Enum):
    """Payme transaction states, as numbered on the wire."""
    CREATED = 1
    COMPLETED = 2
    CANCELLED = -1
    CANCELLED_AFTER_COMPLETE = -2

    @property
    def is_cancelled(self) -> bool:
        return self.value < 0


class Order(Base):
    """Billing order. Only the payment fields are written by this service."""

    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=True, index=True)

    amount = Column(Numeric(14, 2), nullable=False)
    currency = Column(String(3), default="UZS", nullable=False)
    status = Column(String(20), default=OrderStatus.PENDING.value, nullable=False, index=True)
    payment_status = Column(String(20), default=PaymentStatus.PENDING.value, nullable=False)
    payment_method = Column(String(20), nullable=True)

    # Payment linkage
    transaction_id = Column(String(64), nullable=True, unique=True)
    transaction_created_at = Column(DateTime, nullable=True)
    paid_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class PaymeTransaction(Base):
    """Audit trail of a Payme payment attempt. Rows are never deleted."""

    __tablename__ = "payme_transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    payme_id = Column(String(64), nullable=False, unique=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, unique=True)

    amount = Column(Numeric(14, 2), nullable=False)
    account = Column(JSON, nullable=False)

    # Millisecond timestamps as exchanged with Payme
    payme_time = Column(BigInteger, nullable=False)
    create_time = Column(BigInteger, nullable=False)
    perform_time = Column(BigInteger, nullable=True)
    cancel_time = Column(BigInteger, nullable=True)

    state = Column(Integer, default=TransactionState.CREATED.value, nullable=False)
    reason = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_payme_transactions_create_time", "create_time"),
    )

    @property
    def transaction(self) -> str:
        """Merchant-side transaction id reported back to Payme."""
        return str(self.id)
