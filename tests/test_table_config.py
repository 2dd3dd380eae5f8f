from __future__ import annotations

from datetime import datetime, timezone

import pytest

from app.services.config import ApiConfig, KeyAttribute, KeyType, RemovalPolicy, SeededTableConfig


class TestSeededTableConfig:
    def test_creation_parameters_carry_fixed_policies(self, table_config: SeededTableConfig) -> None:
        params = table_config.table_creation_parameters()

        assert params["TableName"] == "ddb-test-customer-orders"
        assert params["BillingMode"] == "PAY_PER_REQUEST"
        assert params["SSESpecification"] == {"Enabled": True, "SSEType": "KMS"}
        assert params["KeySchema"] == [
            {"AttributeName": "PK", "KeyType": "HASH"},
            {"AttributeName": "SK", "KeyType": "RANGE"},
        ]
        assert params["AttributeDefinitions"] == [
            {"AttributeName": "PK", "AttributeType": "S"},
            {"AttributeName": "SK", "AttributeType": "S"},
        ]

    def test_caller_fields_can_be_overridden(self, table_config: SeededTableConfig) -> None:
        updated = table_config.with_overrides(
            table_name="other-table",
            sort_key=KeyAttribute(name="createdAt", type=KeyType.NUMBER),
            removal_policy=RemovalPolicy.RETAIN,
        )

        assert updated.table_name == "other-table"
        assert updated.sort_key.type is KeyType.NUMBER
        assert updated.removal_policy is RemovalPolicy.RETAIN
        assert updated.policies == table_config.policies

    @pytest.mark.parametrize(
        "field",
        ["billing_mode", "sse_type", "point_in_time_recovery", "contributor_insights", "policies"],
    )
    def test_fixed_policies_cannot_be_overridden(self, table_config: SeededTableConfig, field: str) -> None:
        with pytest.raises(ValueError, match=field):
            table_config.with_overrides(**{field: "anything"})

    def test_from_env_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for name in ("TABLE_NAME", "TABLE_PARTITION_KEY", "TABLE_SORT_KEY", "TABLE_REMOVAL_POLICY"):
            monkeypatch.delenv(name, raising=False)

        config = SeededTableConfig.from_env()

        assert config.table_name == "ddb-test-customer-orders"
        assert config.partition_key.name == "PK"
        assert config.sort_key.name == "SK"
        assert config.removal_policy is RemovalPolicy.DESTROY

    def test_from_env_rejects_unknown_removal_policy(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TABLE_REMOVAL_POLICY", "snapshot")

        with pytest.raises(ValueError, match="TABLE_REMOVAL_POLICY"):
            SeededTableConfig.from_env()


class TestApiConfig:
    def test_key_with_expiry_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ORDERS_API_KEY", "da2-published")
        monkeypatch.setenv("ORDERS_API_KEY_EXPIRES_AT", "2030-01-01T00:00:00")

        api = ApiConfig.from_env()

        assert api.api_key is not None
        assert api.api_key.value == "da2-published"
        assert api.api_key.expires_at == datetime(2030, 1, 1, tzinfo=timezone.utc)

    def test_key_without_expiry_is_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ORDERS_API_KEY", "da2-published")

        with pytest.raises(ValueError, match="ORDERS_API_KEY_EXPIRES_AT"):
            ApiConfig.from_env()

    def test_no_key_configured(self) -> None:
        assert ApiConfig.from_env().api_key is None
