from __future__ import annotations

from decimal import Decimal
from typing import Any, Iterable, Optional

from app.models.orders import Customer, Order, Product, ProductQuantity

ORDER_META_SORT_KEY = "META"
CUSTOMER_PREFIX = "CUSTOMER#"
PRODUCT_PREFIX = "PRODUCT#"


def _as_str(value: Any) -> str:
    if isinstance(value, Decimal) and value == value.to_integral_value():
        return str(int(value))
    return str(value)


def _as_float(value: Any, default: float = 0.0) -> float:
    if value is None:
        return default
    return float(value)


def _order_id(item: dict[str, Any], pk: str) -> str:
    raw = item.get("id")
    if raw is not None:
        return _as_str(raw)
    # "ORDER#42" -> "42"
    return pk.split("#", 1)[-1]


def _id_sort_key(order_id: str) -> tuple[int, int, str]:
    # Numeric ids compare as numbers ("2" before "10") and sort ahead of other ids.
    if order_id.isdigit():
        return (0, int(order_id), "")
    return (1, 0, order_id)


def assemble_orders(
    items: Iterable[dict[str, Any]],
    *,
    partition_key: str = "PK",
    sort_key: str = "SK",
) -> list[Order]:
    """Build `Order` objects from the flattened single-table rows.

    Rows sharing a partition key belong to one order: ``META`` holds the order
    itself, ``CUSTOMER#...`` its customer, and each ``PRODUCT#...`` one product
    line. Items must already be plain Python values (not DynamoDB-typed maps).
    """

    metas: dict[str, dict[str, Any]] = {}
    customers: dict[str, Customer] = {}
    products: dict[str, list[ProductQuantity]] = {}

    for item in items:
        pk = item.get(partition_key)
        sk = item.get(sort_key)
        if not isinstance(pk, str) or not isinstance(sk, str):
            continue

        if sk == ORDER_META_SORT_KEY:
            metas[pk] = item
        elif sk.startswith(CUSTOMER_PREFIX):
            customers[pk] = Customer(full_name=str(item["fullName"]), email=str(item["email"]))
        elif sk.startswith(PRODUCT_PREFIX):
            line = ProductQuantity(
                product=Product(name=str(item["name"]), price=_as_float(item["price"])),
                quantity=_as_float(item["quantity"]),
            )
            products.setdefault(pk, []).append(line)

    orders: list[Order] = []
    for pk, meta in metas.items():
        lines: Optional[list[ProductQuantity]] = products.get(pk)
        if lines:
            total = sum(line.product.price * line.quantity for line in lines)
        else:
            total = _as_float(meta.get("totalAmount"))

        orders.append(
            Order(
                id=_order_id(meta, pk),
                date=str(meta.get("date", "")),
                total_amount=total,
                customer=customers.get(pk),
                products=lines,
            )
        )

    return sorted(orders, key=lambda o: (o.date, _id_sort_key(o.id)))
