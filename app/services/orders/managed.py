"""Managed-runtime orders backend.

Reads through the DynamoDB document interface (resource ``Table.scan``), which
returns plain Python values directly. Convenient for iterating on the query.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional, cast

from app.services.config import OrdersHandlerConfig
from app.services.orders.base import BaseOrdersHandler


class ManagedOrdersHandler(BaseOrdersHandler):
    backend = "managed"
    field_name = "allOrders"

    async def _scan_items(self, table_name: str) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        resource_cm = self._session.resource(
            "dynamodb",
            region_name=self._config.region_name,
            endpoint_url=self._config.endpoint_url,
        )
        async with cast(Any, resource_cm) as dynamodb:
            table = await dynamodb.Table(table_name)
            kwargs: dict[str, Any] = {}
            while True:
                resp = await table.scan(**kwargs)
                items.extend(resp.get("Items", []))
                last_key = resp.get("LastEvaluatedKey")
                if not last_key:
                    break
                kwargs["ExclusiveStartKey"] = last_key
        return items


def handler(event: Any, context: Any) -> Optional[list[dict[str, Any]]]:
    """Lambda-style entry point (resolver event is ignored: the query has no arguments)."""

    orders = asyncio.run(ManagedOrdersHandler(OrdersHandlerConfig.from_env()).list_orders())
    if orders is None:
        return None
    return [order.to_response() for order in orders]
