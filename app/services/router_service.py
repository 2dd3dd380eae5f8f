from __future__ import annotations

import logging
import re
import secrets
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from app.models.orders import Order
from app.services.config import ApiKey
from app.services.orders import OrdersQueryHandler


logger = logging.getLogger(__name__)

QUERY_TYPE = "Query"

# `query Name { alias: field { ... } }` or the shorthand `{ field { ... } }`
_TOP_LEVEL_FIELD = re.compile(r"^\s*(?:query\b[^{]*)?\{\s*(?:(?P<alias>\w+)\s*:\s*)?(?P<field>\w+)")


class RouterAssemblyError(RuntimeError):
    pass


class QueryError(ValueError):
    pass


class RouterState(str, Enum):
    NO_API = "no_api"
    SCHEMA = "schema"
    DATA_SOURCE = "data_source"
    READY = "ready"


@dataclass(frozen=True)
class ParsedQuery:
    field_name: str
    response_key: str


def parse_query(query: str) -> ParsedQuery:
    match = _TOP_LEVEL_FIELD.match(query or "")
    if match is None:
        raise QueryError("Unable to find a top-level query field")
    field_name = match.group("field")
    return ParsedQuery(field_name=field_name, response_key=match.group("alias") or field_name)


class OrdersRouter:
    """Runtime side of the Request Router: key check plus resolver dispatch.

    Stateless per request; the only state is what was fixed at assembly time.
    """

    def __init__(self, *, name: str, api_url: str, api_key: Optional[ApiKey], handler: OrdersQueryHandler, fields: frozenset[str]) -> None:
        self.name = name
        self.api_url = api_url
        self.api_key = api_key
        self.handler = handler
        self.fields = fields

    def is_authorized(self, presented_key: Optional[str], *, now: Optional[datetime] = None) -> bool:
        if self.api_key is None or not presented_key:
            return False
        if not secrets.compare_digest(presented_key, self.api_key.value):
            return False
        return self.api_key.is_valid(now=now)

    async def resolve(self, field_name: str) -> Optional[list[Order]]:
        if field_name not in self.fields:
            raise QueryError(f"Cannot query field {field_name!r} on type {QUERY_TYPE!r}")
        return await self.handler.list_orders()


class RequestRouterAssembly:
    """Deployment-time wiring of the orders API.

    States advance strictly: no API -> API with schema -> data source bound to
    one backend -> resolver registered (ready). Further resolvers may be added
    once ready; nothing else changes after that.
    """

    def __init__(self) -> None:
        self.state = RouterState.NO_API
        self._name: Optional[str] = None
        self._api_url: Optional[str] = None
        self._api_key: Optional[ApiKey] = None
        self._handler: Optional[OrdersQueryHandler] = None
        self._fields: set[str] = set()

    def _require(self, *allowed: RouterState) -> None:
        if self.state not in allowed:
            expected = " or ".join(s.value for s in allowed)
            raise RouterAssemblyError(f"Router is in state {self.state.value!r}, expected {expected}")

    @property
    def api_key(self) -> ApiKey:
        if self._api_key is None:
            raise RouterAssemblyError("API has not been created yet")
        return self._api_key

    def create_api(self, *, name: str, api_url: str, api_key: Optional[ApiKey] = None) -> ApiKey:
        self._require(RouterState.NO_API)
        self._name = name
        self._api_url = api_url
        self._api_key = api_key or ApiKey.issue(secrets.token_urlsafe(32))
        self.state = RouterState.SCHEMA
        logger.info("API created: %s (key expires %s)", name, self._api_key.expires_at.isoformat())
        return self._api_key

    def add_data_source(self, handler: OrdersQueryHandler) -> None:
        self._require(RouterState.SCHEMA)
        self._handler = handler
        self.state = RouterState.DATA_SOURCE
        logger.info("Data source bound: %s backend", handler.backend)

    def create_resolver(self, field_name: str) -> None:
        self._require(RouterState.DATA_SOURCE, RouterState.READY)
        self._fields.add(field_name)
        self.state = RouterState.READY
        logger.info("Resolver registered: %s.%s", QUERY_TYPE, field_name)

    def build(self) -> OrdersRouter:
        self._require(RouterState.READY)
        if self._handler is None or self._name is None or self._api_url is None:
            raise RouterAssemblyError("Router is missing its API or data source")
        return OrdersRouter(
            name=self._name,
            api_url=self._api_url,
            api_key=self._api_key,
            handler=self._handler,
            fields=frozenset(self._fields),
        )
