from stk_gateway.stores.base import CorrelationStore
from stk_gateway.stores.memory import InMemoryCorrelationStore
from stk_gateway.stores.sql import SqlCorrelationStore

__all__ = ["CorrelationStore", "InMemoryCorrelationStore", "SqlCorrelationStore"]
