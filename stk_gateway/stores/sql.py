"""
SQLAlchemy-backed correlation store.

Persists CheckoutRequestID -> order reference in payment_orders and writes
every change to the payment_events audit trail. Each call opens its own
session from the injected factory, so the store can be shared across
concurrent requests.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stk_gateway.audit.logger import log_event
from stk_gateway.models.domain import TransactionStatus
from stk_gateway.models.enums import TransactionState
from stk_gateway.models.payment import PaymentOrder
from stk_gateway.stores.base import CorrelationStore

logger = logging.getLogger("stk_gateway.stores.sql")


class SqlCorrelationStore(CorrelationStore):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def put(self, checkout_request_id: str, order_ref: str) -> None:
        async with self._session_factory() as session:
            order = await session.get(PaymentOrder, checkout_request_id)
            if order is None:
                order = PaymentOrder(
                    checkout_request_id=checkout_request_id,
                    order_reference=order_ref,
                    status=TransactionState.PENDING.value,
                )
                session.add(order)
            else:
                order.order_reference = order_ref
            # Flush the order row before its audit entry references it
            await session.flush()

            log_event(session, "push_accepted", checkout_request_id=checkout_request_id, details={
                "order_reference": order_ref,
            })
            await session.commit()

    async def get(self, checkout_request_id: str) -> Optional[str]:
        async with self._session_factory() as session:
            order = await session.get(PaymentOrder, checkout_request_id)
            return order.order_reference if order else None

    async def get_order(self, checkout_request_id: str) -> Optional[PaymentOrder]:
        async with self._session_factory() as session:
            return await session.get(PaymentOrder, checkout_request_id)

    async def record_status(self, status: TransactionStatus) -> bool:
        checkout_id = status.checkout_request_id
        if not checkout_id or not status.status.is_terminal:
            return False

        now = datetime.now(timezone.utc)
        values = {
            "status": status.status.value,
            "merchant_request_id": func.coalesce(PaymentOrder.merchant_request_id, status.transaction_id or None),
            "result_code": status.result_code,
            "error_message": status.error_message,
            "settled_at": now,
            "updated_at": now,
        }
        if status.status is TransactionState.SUCCESS:
            values.update(
                amount=status.amount or PaymentOrder.amount,
                phone_number=status.phone_number or PaymentOrder.phone_number,
                mpesa_receipt_number=status.mpesa_receipt_number or None,
                transaction_date=status.transaction_date or None,
            )

        async with self._session_factory() as session:
            # Only a pending order can settle, so concurrent outcomes race on the row
            result = await session.execute(
                update(PaymentOrder)
                .where(
                    PaymentOrder.checkout_request_id == checkout_id,
                    PaymentOrder.status == TransactionState.PENDING.value,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )

            if result.rowcount == 1:
                log_event(session, "status_recorded", checkout_request_id=checkout_id, details={
                    "status": status.status.value,
                    "result_code": status.result_code,
                    "amount": status.amount,
                    "receipt": status.mpesa_receipt_number,
                    "error": status.error_message,
                })
                await session.commit()
                return True

            order = await session.get(PaymentOrder, checkout_id)
            if order is None:
                # Outcome for a push we never recorded (e.g. initiated elsewhere)
                logger.warning(
                    "Outcome %s for unknown checkout %s result_code=%s",
                    status.status.value,
                    checkout_id,
                    status.result_code,
                )
                return False

            log_event(session, "status_duplicate_ignored", checkout_request_id=checkout_id, details={
                "existing": order.status,
                "incoming": status.status.value,
            })
            await session.commit()
            return False
