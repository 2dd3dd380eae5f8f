from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import ClassVar, Optional


@dataclass(frozen=True)
class ApiKey:
    """Time-bounded access credential for the orders API."""

    value: str
    expires_at: datetime
    name: str = "OrdersAPI_Key"
    description: str = "OrdersAPI Access Key"
    VALIDITY: ClassVar[timedelta] = timedelta(days=30)

    def is_valid(self, *, now: Optional[datetime] = None) -> bool:
        current = now or datetime.now(timezone.utc)
        return current < self.expires_at

    @staticmethod
    def issue(value: str, *, now: Optional[datetime] = None) -> "ApiKey":
        issued_at = now or datetime.now(timezone.utc)
        return ApiKey(value=value, expires_at=issued_at + ApiKey.VALIDITY)


@dataclass(frozen=True)
class ApiConfig:
    name: str = "OrdersAPI"
    api_url: str = "http://localhost:8000/graphql"
    api_key: Optional[ApiKey] = None

    @staticmethod
    def from_env() -> "ApiConfig":
        api_key: Optional[ApiKey] = None
        key_value = os.getenv("ORDERS_API_KEY")
        if key_value:
            # The expiry is fixed when the key is issued; a key read back without it cannot be checked.
            expires_raw = os.getenv("ORDERS_API_KEY_EXPIRES_AT")
            if not expires_raw:
                raise ValueError("ORDERS_API_KEY requires ORDERS_API_KEY_EXPIRES_AT")
            try:
                expires_at = datetime.fromisoformat(expires_raw)
            except ValueError as exc:
                raise ValueError("Invalid ORDERS_API_KEY_EXPIRES_AT; must be an ISO-8601 timestamp") from exc
            if expires_at.tzinfo is None:
                expires_at = expires_at.replace(tzinfo=timezone.utc)
            api_key = ApiKey(value=key_value, expires_at=expires_at)

        return ApiConfig(
            name=os.getenv("ORDERS_API_NAME", "OrdersAPI"),
            api_url=os.getenv("ORDERS_API_URL", "http://localhost:8000/graphql"),
            api_key=api_key,
        )
