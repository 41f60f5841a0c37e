"""SQLAlchemy models backing the SQL correlation store."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, relationship


class Base(DeclarativeBase):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PaymentOrder(Base):
    """
    One accepted STK push, keyed by the provider's CheckoutRequestID.

    Created when the push is accepted; settled exactly once when the first
    terminal outcome (callback or poll) is recorded. Later outcomes for the
    same checkout are ignored so provider redelivery is harmless.
    """

    __tablename__ = "payment_orders"

    checkout_request_id = Column(String(100), primary_key=True)
    order_reference = Column(String(50), nullable=False, index=True)
    merchant_request_id = Column(String(100), nullable=True)

    status = Column(String(20), nullable=False, default="pending")
    amount = Column(Float, nullable=True)
    phone_number = Column(String(20), nullable=True)
    mpesa_receipt_number = Column(String(50), nullable=True, unique=True)
    transaction_date = Column(String(20), nullable=True)  # YYYYMMDDHHmmss as sent by the provider
    result_code = Column(Integer, nullable=True)
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
    settled_at = Column(DateTime(timezone=True), nullable=True)

    events = relationship("PaymentEvent", back_populates="order", lazy="raise")


class PaymentEvent(Base):
    """
    Append-only audit trail entry for a checkout.

    Records initiation, each reconciled outcome and ignored duplicates.
    Never modified or deleted.
    """

    __tablename__ = "payment_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    checkout_request_id = Column(
        String(100), ForeignKey("payment_orders.checkout_request_id"), nullable=True, index=True
    )
    action = Column(String(50), nullable=False)
    details = Column(Text, nullable=True)
    timestamp = Column(DateTime(timezone=True), default=_utcnow)

    order = relationship("PaymentOrder", back_populates="events")
