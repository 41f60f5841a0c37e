"""In-process correlation store. State is lost on restart."""

import logging
from typing import Optional

from stk_gateway.models.domain import TransactionStatus
from stk_gateway.stores.base import CorrelationStore

logger = logging.getLogger("stk_gateway.stores.memory")


class InMemoryCorrelationStore(CorrelationStore):
    def __init__(self):
        self._orders: dict[str, str] = {}
        self._statuses: dict[str, TransactionStatus] = {}

    async def put(self, checkout_request_id: str, order_ref: str) -> None:
        self._orders[checkout_request_id] = order_ref

    async def get(self, checkout_request_id: str) -> Optional[str]:
        return self._orders.get(checkout_request_id)

    async def record_status(self, status: TransactionStatus) -> bool:
        key = status.checkout_request_id
        if not key or not status.status.is_terminal:
            return False
        if key in self._statuses:
            logger.info("Ignoring repeat outcome for %s (already %s)", key, self._statuses[key].status.value)
            return False
        self._statuses[key] = status
        return True

    def status_for(self, checkout_request_id: str) -> Optional[TransactionStatus]:
        return self._statuses.get(checkout_request_id)
