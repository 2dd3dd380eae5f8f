from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Optional


class RemovalPolicy(str, Enum):
    DESTROY = "destroy"
    RETAIN = "retain"


class KeyType(str, Enum):
    STRING = "S"
    NUMBER = "N"
    BINARY = "B"


@dataclass(frozen=True)
class KeyAttribute:
    name: str
    type: KeyType = KeyType.STRING


@dataclass(frozen=True)
class TablePolicies:
    """Non-negotiable policies every seeded table is created with."""

    billing_mode: str = "PAY_PER_REQUEST"
    sse_type: str = "KMS"  # AWS-managed KMS key
    point_in_time_recovery: bool = True
    contributor_insights: bool = True


_PROTECTED_FIELDS = frozenset(f.name for f in fields(TablePolicies)) | {"policies"}


@dataclass(frozen=True)
class SeededTableConfig:
    """Caller-supplied table settings layered on top of the fixed `TablePolicies`.

    Only name, key schema and removal policy are caller-controlled. Attempts to
    override a policy field through `with_overrides` are rejected.
    """

    table_name: str
    partition_key: KeyAttribute
    sort_key: KeyAttribute
    removal_policy: RemovalPolicy = RemovalPolicy.DESTROY
    region_name: Optional[str] = None
    endpoint_url: Optional[str] = None
    policies: TablePolicies = field(default_factory=TablePolicies)

    def with_overrides(self, **overrides: Any) -> "SeededTableConfig":
        protected = sorted(set(overrides) & _PROTECTED_FIELDS)
        if protected:
            raise ValueError(f"Fixed table policies cannot be overridden: {', '.join(protected)}")
        return replace(self, **overrides)

    def key_schema(self) -> list[dict[str, str]]:
        return [
            {"AttributeName": self.partition_key.name, "KeyType": "HASH"},
            {"AttributeName": self.sort_key.name, "KeyType": "RANGE"},
        ]

    def attribute_definitions(self) -> list[dict[str, str]]:
        return [
            {"AttributeName": self.partition_key.name, "AttributeType": self.partition_key.type.value},
            {"AttributeName": self.sort_key.name, "AttributeType": self.sort_key.type.value},
        ]

    def table_creation_parameters(self) -> dict[str, Any]:
        return {
            "TableName": self.table_name,
            "AttributeDefinitions": self.attribute_definitions(),
            "KeySchema": self.key_schema(),
            "BillingMode": self.policies.billing_mode,
            "SSESpecification": {"Enabled": True, "SSEType": self.policies.sse_type},
        }

    @staticmethod
    def from_env() -> "SeededTableConfig":
        removal_raw = os.getenv("TABLE_REMOVAL_POLICY", RemovalPolicy.DESTROY.value).strip().lower()
        try:
            removal_policy = RemovalPolicy(removal_raw)
        except ValueError as exc:
            raise ValueError("Invalid TABLE_REMOVAL_POLICY; must be 'destroy' or 'retain'") from exc

        return SeededTableConfig(
            table_name=os.getenv("TABLE_NAME", "ddb-test-customer-orders"),
            partition_key=KeyAttribute(name=os.getenv("TABLE_PARTITION_KEY", "PK")),
            sort_key=KeyAttribute(name=os.getenv("TABLE_SORT_KEY", "SK")),
            removal_policy=removal_policy,
            region_name=os.getenv("AWS_REGION") or os.getenv("AWS_DEFAULT_REGION"),
            endpoint_url=os.getenv("DYNAMODB_ENDPOINT_URL"),
        )
