from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional, Protocol

import aioboto3

from app.models.orders import Order
from app.services.config import OrdersHandlerConfig
from app.services.orders.store import assemble_orders


logger = logging.getLogger(__name__)


class OrdersQueryHandler(Protocol):
    """Capability every backend provides: answer the orders query."""

    backend: str
    field_name: str

    async def list_orders(self) -> Optional[list[Order]]: ...


class BaseOrdersHandler(ABC):
    """Shared boundary for the orders backends.

    ``list_orders`` never raises. A missing table name and a failed read both
    come back as ``None`` with a logged diagnostic, so callers see "no data"
    either way.
    """

    backend: str = ""
    field_name: str = "orders"

    def __init__(self, config: OrdersHandlerConfig, *, session: Optional[Any] = None) -> None:
        self._config = config
        self._session = session or aioboto3.Session()

    @property
    def table_name(self) -> Optional[str]:
        return self._config.table_name

    @abstractmethod
    async def _scan_items(self, table_name: str) -> list[dict[str, Any]]:
        """Return every row of the table as plain Python values."""

    async def list_orders(self) -> Optional[list[Order]]:
        table_name = self._config.table_name
        if not table_name:
            logger.warning("ORDERS_TABLE was not specified; %s backend returns no data", self.backend)
            return None

        logger.info("%s orders handler called on table: %s", self.backend, table_name)
        try:
            items = await self._scan_items(table_name)
            return assemble_orders(items)
        except Exception:
            logger.exception("DynamoDB read failed (backend=%s, table=%s)", self.backend, table_name)
            return None
