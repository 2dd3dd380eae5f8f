"""Shared fixtures: an in-memory stand-in for the aioboto3 S3 / DynamoDB APIs.

Only the calls the services make are implemented. Every call is appended to
``FakeAws.calls`` so tests can assert on ordering.
"""
from __future__ import annotations

import hashlib
import json
import shutil
from pathlib import Path
from typing import Any, Optional

import pytest
from boto3.dynamodb.types import TypeDeserializer
from botocore.exceptions import ClientError

from app.services.config import KeyAttribute, RemovalPolicy, S3Config, SeedDataConfig, SeededTableConfig
from app.services.s3_service import S3Service
from app.services.seed_data_service import SeedDataService
from app.services.setup.dynamodb_setup_service import DynamoDBSetupService
from app.services.setup.provisioning_pipeline import ProvisioningPipeline
from app.services.setup.s3_setup_service import S3SetupService


SAMPLE_DATA_DIR = Path(__file__).resolve().parents[1] / "sample-data"
_deserializer = TypeDeserializer()


def _client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class FakeAws:
    def __init__(self) -> None:
        self.buckets: dict[str, dict[str, bytes]] = {}
        self.tables: dict[str, dict[str, Any]] = {}
        self.imports: dict[str, dict[str, Any]] = {}
        self.bucket_configs: dict[str, Optional[dict[str, Any]]] = {}
        self.calls: list[str] = []
        self.fail_scan: bool = False
        self.fail_import: bool = False
        self.backup_failures: int = 0

    def call_index(self, name: str, *, last: bool = False) -> int:
        indexes = [i for i, call in enumerate(self.calls) if call == name]
        if not indexes:
            raise AssertionError(f"{name} was never called: {self.calls}")
        return indexes[-1] if last else indexes[0]


class _AsyncContext:
    def __init__(self, target: Any) -> None:
        self._target = target

    async def __aenter__(self) -> Any:
        return self._target

    async def __aexit__(self, *exc: Any) -> None:
        return None


class FakeS3Client:
    def __init__(self, aws: FakeAws) -> None:
        self._aws = aws

    def _bucket(self, name: str, operation: str) -> dict[str, bytes]:
        bucket = self._aws.buckets.get(name)
        if bucket is None:
            raise _client_error("NoSuchBucket", operation)
        return bucket

    async def head_bucket(self, *, Bucket: str) -> dict[str, Any]:
        self._aws.calls.append("head_bucket")
        if Bucket not in self._aws.buckets:
            raise _client_error("404", "HeadBucket")
        return {}

    async def create_bucket(self, *, Bucket: str, **kwargs: Any) -> dict[str, Any]:
        self._aws.calls.append("create_bucket")
        self._aws.buckets.setdefault(Bucket, {})
        self._aws.bucket_configs[Bucket] = kwargs.get("CreateBucketConfiguration")
        return {}

    async def delete_bucket(self, *, Bucket: str) -> dict[str, Any]:
        self._aws.calls.append("delete_bucket")
        if self._bucket(Bucket, "DeleteBucket"):
            raise _client_error("BucketNotEmpty", "DeleteBucket")
        del self._aws.buckets[Bucket]
        return {}

    async def list_objects_v2(self, *, Bucket: str, Prefix: str = "", **kwargs: Any) -> dict[str, Any]:
        self._aws.calls.append("list_objects_v2")
        bucket = self._bucket(Bucket, "ListObjectsV2")
        contents = [
            {"Key": key, "Size": len(body), "ETag": f'"{hashlib.md5(body).hexdigest()}"'}
            for key, body in sorted(bucket.items())
            if key.startswith(Prefix)
        ]
        return {"Contents": contents, "IsTruncated": False}

    async def put_object(self, *, Bucket: str, Key: str, Body: bytes, **kwargs: Any) -> dict[str, Any]:
        self._aws.calls.append("put_object")
        self._bucket(Bucket, "PutObject")[Key] = Body
        return {}

    async def delete_objects(self, *, Bucket: str, Delete: dict[str, Any]) -> dict[str, Any]:
        self._aws.calls.append("delete_objects")
        bucket = self._bucket(Bucket, "DeleteObjects")
        for obj in Delete["Objects"]:
            bucket.pop(obj["Key"], None)
        return {}


class FakeDynamoDBClient:
    def __init__(self, aws: FakeAws) -> None:
        self._aws = aws

    def _table(self, name: str, operation: str) -> dict[str, Any]:
        table = self._aws.tables.get(name)
        if table is None:
            raise _client_error("ResourceNotFoundException", operation)
        return table

    async def describe_table(self, *, TableName: str) -> dict[str, Any]:
        self._aws.calls.append("describe_table")
        table = self._table(TableName, "DescribeTable")
        status = table.get("status", "ACTIVE")
        if table.get("pending_polls", 0) > 0:
            table["pending_polls"] -= 1
            if table["pending_polls"] == 0:
                table["status"] = "ACTIVE"
        return {"Table": {"TableName": TableName, "TableArn": table["arn"], "TableStatus": status}}

    async def import_table(
        self,
        *,
        S3BucketSource: dict[str, Any],
        InputFormat: str,
        InputCompressionType: str,
        TableCreationParameters: dict[str, Any],
    ) -> dict[str, Any]:
        self._aws.calls.append("import_table")
        params = TableCreationParameters
        table_name = params["TableName"]
        import_arn = f"arn:aws:dynamodb:eu-west-1:123456789012:table/{table_name}/import/{len(self._aws.imports) + 1}"
        description: dict[str, Any] = {
            "ImportArn": import_arn,
            "InputFormat": InputFormat,
            "InputCompressionType": InputCompressionType,
            "TableCreationParameters": params,
        }

        keys = [k["AttributeName"] for k in params["KeySchema"]]
        prefix = S3BucketSource.get("S3KeyPrefix", "")
        bucket = self._aws.buckets.get(S3BucketSource["S3Bucket"], {})

        items: dict[tuple[Any, ...], dict[str, Any]] = {}
        failed = False
        for key, body in sorted(bucket.items()):
            if not key.startswith(prefix):
                continue
            for line in body.decode("utf-8").splitlines():
                if not line.strip():
                    continue
                item = json.loads(line)["Item"]
                item_key = tuple(json.dumps(item[k], sort_keys=True) for k in keys)
                if item_key in items:
                    failed = True
                items[item_key] = item

        if failed or self._aws.fail_import:
            description.update(ImportStatus="FAILED", FailureCode="ItemCollectionSizeLimitExceeded", FailureMessage="duplicate")
        else:
            arn = f"arn:aws:dynamodb:eu-west-1:123456789012:table/{table_name}"
            self._aws.tables[table_name] = {
                "arn": arn,
                "items": list(items.values()),
                "params": params,
                "pitr": False,
                "insights": False,
            }
            description.update(ImportStatus="COMPLETED", TableArn=arn, ImportedItemCount=len(items), ErrorCount=0)

        self._aws.imports[import_arn] = description
        return {"ImportTableDescription": {"ImportArn": import_arn, "ImportStatus": "IN_PROGRESS"}}

    async def describe_import(self, *, ImportArn: str) -> dict[str, Any]:
        self._aws.calls.append("describe_import")
        return {"ImportTableDescription": self._aws.imports[ImportArn]}

    async def update_continuous_backups(self, *, TableName: str, PointInTimeRecoverySpecification: dict[str, Any]) -> dict[str, Any]:
        self._aws.calls.append("update_continuous_backups")
        if self._aws.backup_failures > 0:
            self._aws.backup_failures -= 1
            raise _client_error("ThrottlingException", "UpdateContinuousBackups")
        self._table(TableName, "UpdateContinuousBackups")["pitr"] = PointInTimeRecoverySpecification["PointInTimeRecoveryEnabled"]
        return {}

    async def update_contributor_insights(self, *, TableName: str, ContributorInsightsAction: str) -> dict[str, Any]:
        self._aws.calls.append("update_contributor_insights")
        self._table(TableName, "UpdateContributorInsights")["insights"] = ContributorInsightsAction == "ENABLE"
        return {}

    async def delete_table(self, *, TableName: str) -> dict[str, Any]:
        self._aws.calls.append("delete_table")
        self._table(TableName, "DeleteTable")
        del self._aws.tables[TableName]
        return {}

    async def scan(self, *, TableName: str, ExclusiveStartKey: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        self._aws.calls.append("scan")
        if self._aws.fail_scan:
            raise _client_error("AccessDeniedException", "Scan")
        items = self._table(TableName, "Scan")["items"]
        # Two pages, to exercise pagination.
        half = len(items) // 2
        if ExclusiveStartKey is None and half:
            return {"Items": items[:half], "LastEvaluatedKey": {"page": {"N": "1"}}}
        start = half if ExclusiveStartKey is not None else 0
        return {"Items": items[start:]}


class FakeTable:
    def __init__(self, client: FakeDynamoDBClient, name: str) -> None:
        self._client = client
        self._name = name

    async def scan(self, **kwargs: Any) -> dict[str, Any]:
        resp = await self._client.scan(TableName=self._name, **kwargs)
        resp["Items"] = [{k: _deserializer.deserialize(v) for k, v in item.items()} for item in resp["Items"]]
        return resp


class FakeDynamoDBResource:
    def __init__(self, aws: FakeAws) -> None:
        self._client = FakeDynamoDBClient(aws)

    async def Table(self, name: str) -> FakeTable:
        return FakeTable(self._client, name)


class FakeSession:
    def __init__(self, aws: FakeAws) -> None:
        self._aws = aws

    def client(self, service_name: str, **kwargs: Any) -> _AsyncContext:
        if service_name == "s3":
            return _AsyncContext(FakeS3Client(self._aws))
        if service_name == "dynamodb":
            return _AsyncContext(FakeDynamoDBClient(self._aws))
        raise AssertionError(f"Unexpected client: {service_name}")

    def resource(self, service_name: str, **kwargs: Any) -> _AsyncContext:
        assert service_name == "dynamodb"
        return _AsyncContext(FakeDynamoDBResource(self._aws))


@pytest.fixture(autouse=True)
def outputs_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep deployment outputs and API key settings local to each test."""

    path = tmp_path / "deployment-outputs.json"
    monkeypatch.setenv("DEPLOYMENT_OUTPUTS_PATH", str(path))
    env_names = ("ORDERS_TABLE", "ORDERS_HANDLER_BACKEND", "ORDERS_API_KEY", "ORDERS_API_KEY_EXPIRES_AT", "ORDERS_API_URL")
    for name in env_names:
        monkeypatch.delenv(name, raising=False)
    return path


@pytest.fixture
def fake_aws() -> FakeAws:
    return FakeAws()


@pytest.fixture
def fake_session(fake_aws: FakeAws) -> FakeSession:
    return FakeSession(fake_aws)


@pytest.fixture
def seed_dir(tmp_path: Path) -> Path:
    target = tmp_path / "seed"
    shutil.copytree(SAMPLE_DATA_DIR, target)
    return target


@pytest.fixture
def table_config() -> SeededTableConfig:
    return SeededTableConfig(
        table_name="ddb-test-customer-orders",
        partition_key=KeyAttribute(name="PK"),
        sort_key=KeyAttribute(name="SK"),
        removal_policy=RemovalPolicy.DESTROY,
        region_name="eu-west-1",
    )


@pytest.fixture
def s3_service(fake_session: FakeSession) -> S3Service:
    return S3Service(S3Config(bucket_name="orders-seed-data", region_name="eu-west-1"), session=fake_session)


@pytest.fixture
def seed_data_service(s3_service: S3Service, seed_dir: Path, table_config: SeededTableConfig) -> SeedDataService:
    return SeedDataService(s3=s3_service, config=SeedDataConfig(data_dir=seed_dir, concurrency=2), table=table_config)


def build_pipeline(
    *,
    session: FakeSession,
    s3: S3Service,
    seed_dir: Path,
    table: SeededTableConfig,
) -> ProvisioningPipeline:
    return ProvisioningPipeline(
        staging=S3SetupService(s3=s3),
        seed_data=SeedDataService(s3=s3, config=SeedDataConfig(data_dir=seed_dir), table=table),
        table=DynamoDBSetupService(table, session=session, poll_interval_seconds=0),
        bucket_prefix=s3.prefix,
    )


@pytest.fixture
def pipeline(
    fake_session: FakeSession,
    s3_service: S3Service,
    seed_dir: Path,
    table_config: SeededTableConfig,
) -> ProvisioningPipeline:
    return build_pipeline(session=fake_session, s3=s3_service, seed_dir=seed_dir, table=table_config)
