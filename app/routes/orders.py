from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.responses import JSONResponse
from starlette import status

from app.models.orders import GraphQLRequest
from app.services.dependencies import get_orders_router
from app.services.router_service import OrdersRouter, QueryError, parse_query

router = APIRouter(tags=["orders"])


def require_api_key(
    x_api_key: Optional[str] = Header(default=None),
    orders: OrdersRouter = Depends(get_orders_router),
) -> OrdersRouter:
    if not orders.is_authorized(x_api_key):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired API key")
    return orders


def _serialize(orders: Optional[list[Any]]) -> Optional[list[dict[str, Any]]]:
    if orders is None:
        return None
    return [order.to_response() for order in orders]


@router.post("/graphql")
async def graphql(
    payload: GraphQLRequest,
    orders: OrdersRouter = Depends(require_api_key),
) -> JSONResponse:
    try:
        parsed = parse_query(payload.query)
        result = await orders.resolve(parsed.field_name)
    except QueryError as exc:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"data": None, "errors": [{"message": str(exc)}]},
        )

    return JSONResponse(content={"data": {parsed.response_key: _serialize(result)}})


@router.get("/orders")
async def list_orders(orders: OrdersRouter = Depends(require_api_key)) -> Optional[list[dict[str, Any]]]:
    return _serialize(await orders.handler.list_orders())
