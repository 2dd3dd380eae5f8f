from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class OrdersHandlerConfig:
    """Runtime configuration injected into a Query Handler at deploy time.

    `table_name` is deliberately optional: a handler deployed before its table
    is wired reports "no data" instead of failing.
    """

    table_name: Optional[str]
    backend: str = "native"
    region_name: Optional[str] = None
    endpoint_url: Optional[str] = None

    @staticmethod
    def from_env() -> "OrdersHandlerConfig":
        return OrdersHandlerConfig(
            table_name=(os.getenv("ORDERS_TABLE") or "").strip() or None,
            backend=(os.getenv("ORDERS_HANDLER_BACKEND") or "native").strip().lower(),
            region_name=os.getenv("AWS_REGION") or os.getenv("AWS_DEFAULT_REGION"),
            endpoint_url=os.getenv("DYNAMODB_ENDPOINT_URL"),
        )
