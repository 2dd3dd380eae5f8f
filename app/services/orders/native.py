"""Natively-compiled orders backend.

Lean path: low-level client ``Scan`` plus a local ``TypeDeserializer`` instead
of the resource layer. Same table, same input/output contract as the managed
backend.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional, cast

from boto3.dynamodb.types import TypeDeserializer

from app.services.config import OrdersHandlerConfig
from app.services.orders.base import BaseOrdersHandler

_deserializer = TypeDeserializer()


def deserialize_item(item: dict[str, Any]) -> dict[str, Any]:
    return {name: _deserializer.deserialize(value) for name, value in item.items()}


class NativeOrdersHandler(BaseOrdersHandler):
    backend = "native"
    field_name = "orders"

    async def _scan_items(self, table_name: str) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        client_cm = self._session.client(
            "dynamodb",
            region_name=self._config.region_name,
            endpoint_url=self._config.endpoint_url,
        )
        async with cast(Any, client_cm) as client:
            kwargs: dict[str, Any] = {"TableName": table_name}
            while True:
                resp = await client.scan(**kwargs)
                items.extend(deserialize_item(raw) for raw in resp.get("Items", []))
                last_key = resp.get("LastEvaluatedKey")
                if not last_key:
                    break
                kwargs["ExclusiveStartKey"] = last_key
        return items


def handler(event: Any, context: Any) -> Optional[list[dict[str, Any]]]:
    """Lambda-style entry point (resolver event is ignored: the query has no arguments)."""

    orders = asyncio.run(NativeOrdersHandler(OrdersHandlerConfig.from_env()).list_orders())
    if orders is None:
        return None
    return [order.to_response() for order in orders]
