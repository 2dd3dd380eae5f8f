"""Orders Query Handler backends.

Exactly one backend is bound per deployment; pick it with
``get_orders_handler`` (or ``ORDERS_HANDLER_BACKEND``):

    from app.services.orders import get_orders_handler

    handler = get_orders_handler(OrdersHandlerConfig.from_env())
"""

from __future__ import annotations

from typing import Any, Optional

from app.services.config import OrdersHandlerConfig
from app.services.orders.base import BaseOrdersHandler, OrdersQueryHandler
from app.services.orders.managed import ManagedOrdersHandler
from app.services.orders.native import NativeOrdersHandler

BACKENDS: dict[str, type[BaseOrdersHandler]] = {
    ManagedOrdersHandler.backend: ManagedOrdersHandler,
    NativeOrdersHandler.backend: NativeOrdersHandler,
}


def get_orders_handler(
    config: OrdersHandlerConfig,
    *,
    backend: Optional[str] = None,
    session: Optional[Any] = None,
) -> BaseOrdersHandler:
    name = (backend or config.backend).strip().lower()
    handler_cls = BACKENDS.get(name)
    if handler_cls is None:
        raise ValueError(f"Unknown orders backend {name!r}; expected one of: {', '.join(sorted(BACKENDS))}")
    return handler_cls(config, session=session)


__all__ = [
    "BACKENDS",
    "BaseOrdersHandler",
    "ManagedOrdersHandler",
    "NativeOrdersHandler",
    "OrdersQueryHandler",
    "get_orders_handler",
]
