from __future__ import annotations

import logging
from typing import Any, cast

from botocore.exceptions import ClientError

from app.services.s3_service import S3Service, S3ServiceError


logger = logging.getLogger(__name__)

_MISSING_BUCKET_CODES = {"404", "NoSuchBucket", "NotFound"}


class S3SetupService:
    """Provisioning helper for the Staging Store bucket.

    The bucket is owned by the provisioning pipeline: it is created on deploy
    and always purged and deleted on teardown, whatever happens to the table.
    """

    def __init__(self, *, s3: S3Service) -> None:
        self._s3 = s3

    @property
    def bucket_name(self) -> str:
        return self._s3.bucket_name

    async def bucket_exists(self) -> bool:
        s3_client: Any = self._s3.client()
        try:
            async with cast(Any, s3_client) as client:
                await client.head_bucket(Bucket=self.bucket_name)
            return True
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code in _MISSING_BUCKET_CODES:
                return False
            raise S3ServiceError(f"Failed checking bucket exists: {self.bucket_name}") from exc

    async def ensure_bucket(self) -> bool:
        """Create the staging bucket unless it already exists.

        Returns:
            True if the bucket was created, False if it was already there.
        """

        if await self.bucket_exists():
            logger.info("Staging bucket already exists: %s", self.bucket_name)
            return False

        region_name = self._s3.region_name
        kwargs: dict[str, Any] = {"Bucket": self.bucket_name}
        if region_name and region_name != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": region_name}

        s3_client: Any = self._s3.client()
        try:
            async with cast(Any, s3_client) as client:
                await client.create_bucket(**kwargs)
        except Exception as exc:
            raise S3ServiceError(f"Failed creating staging bucket: {self.bucket_name}") from exc

        logger.info("Staging bucket created: %s", self.bucket_name)
        return True

    async def destroy_bucket(self) -> None:
        """Purge every object and delete the bucket. A missing bucket is a no-op."""

        if not await self.bucket_exists():
            logger.info("Staging bucket already gone: %s", self.bucket_name)
            return

        items = await self._s3.list_files()
        purged = await self._s3.delete_files(keys=[item.key for item in items])

        s3_client: Any = self._s3.client()
        try:
            async with cast(Any, s3_client) as client:
                await client.delete_bucket(Bucket=self.bucket_name)
        except Exception as exc:
            raise S3ServiceError(f"Failed deleting staging bucket: {self.bucket_name}") from exc

        logger.info("Staging bucket deleted: %s (purged %d object(s))", self.bucket_name, purged)
