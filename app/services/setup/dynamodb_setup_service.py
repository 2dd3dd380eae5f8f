from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Optional, cast

import aioboto3
from botocore.exceptions import ClientError

from app.services.config import RemovalPolicy, SeededTableConfig


logger = logging.getLogger(__name__)


_PENDING_TABLE_STATUSES = {"CREATING", "UPDATING"}


class TableSetupError(RuntimeError):
    pass


class TableImportError(TableSetupError):
    pass


@dataclass(frozen=True)
class TableHandle:
    table_name: str
    table_arn: str


class DynamoDBSetupService:
    """Provisioning helper for the seeded DynamoDB table.

    The table is created through ``ImportTable`` so its contents come from the
    staging bucket as part of creation. An existing table is never re-imported.

    Notes:
    - ``ImportTable`` always creates a new table; there is no way to import into
      an existing one, which is what makes re-apply safe.
    - Point-in-time recovery and contributor insights cannot be set at import
      time and are enabled once the import completes.
    """

    _DEFAULT_IMPORT_WAIT_SECONDS: float = 1800.0
    _IMPORT_POLL_INTERVAL_SECONDS: float = 10.0

    def __init__(
        self,
        config: SeededTableConfig,
        *,
        session: Optional[Any] = None,
        import_wait_seconds: Optional[float] = None,
        poll_interval_seconds: Optional[float] = None,
    ) -> None:
        self._config = config
        self._session = session or aioboto3.Session()
        self._import_wait_seconds = import_wait_seconds or self._DEFAULT_IMPORT_WAIT_SECONDS
        self._poll_interval_seconds = (
            self._IMPORT_POLL_INTERVAL_SECONDS if poll_interval_seconds is None else poll_interval_seconds
        )

    @property
    def config(self) -> SeededTableConfig:
        return self._config

    def _client(self) -> Any:
        return self._session.client(
            "dynamodb",
            region_name=self._config.region_name,
            endpoint_url=self._config.endpoint_url,
        )

    async def describe_table(self) -> Optional[dict[str, Any]]:
        """Return the table description, or None if the table does not exist."""

        try:
            async with cast(Any, self._client()) as client:
                resp = await client.describe_table(TableName=self._config.table_name)
            return resp.get("Table")
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") == "ResourceNotFoundException":
                return None
            raise TableSetupError(f"Failed describing table: {self._config.table_name}") from exc

    async def table_exists(self) -> bool:
        return await self.describe_table() is not None

    async def ensure_table(self, *, bucket_name: str, key_prefix: str) -> TableHandle:
        """Idempotent entry point: import the table unless it already exists.

        An existing table is only handed out once it is ``ACTIVE``, and the
        fixed policies are re-applied to it so an earlier partial run cannot
        leave them off.
        """

        existing = await self.describe_table()
        if existing is None:
            return await self.create_with_import(bucket_name=bucket_name, key_prefix=key_prefix)

        logger.info(
            "Seeded table already exists, skipping import: %s (status=%s)",
            self._config.table_name,
            existing.get("TableStatus"),
        )
        existing = await self._wait_for_active(existing)
        await self._apply_policies()
        return TableHandle(table_name=existing["TableName"], table_arn=existing["TableArn"])

    async def _wait_for_active(self, description: dict[str, Any]) -> dict[str, Any]:
        table_name = self._config.table_name
        deadline = time.monotonic() + self._import_wait_seconds
        while True:
            status = (description.get("TableStatus") or "").upper()
            if status == "ACTIVE":
                return description
            if status not in _PENDING_TABLE_STATUSES:
                raise TableSetupError(f"Seeded table is not usable: {table_name} (status={status})")
            if time.monotonic() >= deadline:
                raise TableSetupError(f"Timed out waiting for table to become ACTIVE: {table_name} (status={status})")

            await asyncio.sleep(self._poll_interval_seconds)
            refreshed = await self.describe_table()
            if refreshed is None:
                raise TableSetupError(f"Seeded table disappeared while waiting for it: {table_name}")
            description = refreshed

    async def create_with_import(self, *, bucket_name: str, key_prefix: str) -> TableHandle:
        source: dict[str, Any] = {"S3Bucket": bucket_name}
        if key_prefix:
            source["S3KeyPrefix"] = key_prefix

        logger.info(
            "Importing seeded table: %s (source=s3://%s/%s)",
            self._config.table_name,
            bucket_name,
            key_prefix,
        )

        try:
            async with cast(Any, self._client()) as client:
                resp = await client.import_table(
                    S3BucketSource=source,
                    InputFormat="DYNAMODB_JSON",
                    InputCompressionType="NONE",
                    TableCreationParameters=self._config.table_creation_parameters(),
                )
        except Exception as exc:
            raise TableImportError(f"Failed starting table import: {self._config.table_name}") from exc

        import_arn = resp["ImportTableDescription"]["ImportArn"]
        description = await self._wait_for_import(import_arn=import_arn)

        table_arn = description.get("TableArn") or ""
        await self._apply_policies()

        logger.info(
            "Seeded table ready: %s (imported=%s, errors=%s)",
            self._config.table_name,
            description.get("ImportedItemCount"),
            description.get("ErrorCount"),
        )
        return TableHandle(table_name=self._config.table_name, table_arn=table_arn)

    async def _wait_for_import(self, *, import_arn: str) -> dict[str, Any]:
        deadline = time.monotonic() + self._import_wait_seconds
        async with cast(Any, self._client()) as client:
            while time.monotonic() < deadline:
                resp = await client.describe_import(ImportArn=import_arn)
                description = resp.get("ImportTableDescription") or {}
                status = (description.get("ImportStatus") or "").upper()

                if status == "COMPLETED":
                    return description
                if status in {"FAILED", "CANCELLED", "CANCELLING"}:
                    raise TableImportError(
                        "Table import did not complete "
                        f"(table={self._config.table_name}, status={status}, "
                        f"code={description.get('FailureCode')}, message={description.get('FailureMessage')})"
                    )

                await asyncio.sleep(self._poll_interval_seconds)

        raise TableImportError(f"Timed out waiting for table import to complete: {self._config.table_name}")

    async def _apply_policies(self) -> None:
        policies = self._config.policies
        table_name = self._config.table_name
        try:
            async with cast(Any, self._client()) as client:
                if policies.point_in_time_recovery:
                    await client.update_continuous_backups(
                        TableName=table_name,
                        PointInTimeRecoverySpecification={"PointInTimeRecoveryEnabled": True},
                    )
                if policies.contributor_insights:
                    await client.update_contributor_insights(
                        TableName=table_name,
                        ContributorInsightsAction="ENABLE",
                    )
        except Exception as exc:
            raise TableSetupError(f"Failed applying table policies: {table_name}") from exc

    async def remove_table(self) -> bool:
        """Remove the table according to its removal policy.

        Returns:
            True if a delete was issued, False if the table was retained or missing.
        """

        table_name = self._config.table_name
        if self._config.removal_policy is RemovalPolicy.RETAIN:
            logger.info("Retaining seeded table on teardown: %s", table_name)
            return False

        try:
            async with cast(Any, self._client()) as client:
                await client.delete_table(TableName=table_name)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") == "ResourceNotFoundException":
                logger.info("Seeded table already gone: %s", table_name)
                return False
            raise TableSetupError(f"Failed deleting table: {table_name}") from exc

        logger.info("Seeded table deleted: %s", table_name)
        return True
