from __future__ import annotations

import logging
import mimetypes
from pathlib import Path
from typing import Any, Optional

import aioboto3

from app.models.s3 import FileItem
from app.services.config import S3Config


logger = logging.getLogger(__name__)

_DELETE_BATCH_SIZE = 1000


class S3ServiceError(RuntimeError):
    pass


class S3Service:
    """Object-level operations against the Staging Store bucket."""

    def __init__(self, config: S3Config, *, session: Optional[Any] = None) -> None:
        self._config = config
        self._session = session or aioboto3.Session()

    @property
    def bucket_name(self) -> str:
        return self._config.bucket_name

    @property
    def prefix(self) -> str:
        return self._config.prefix

    @property
    def region_name(self) -> Optional[str]:
        return self._config.region_name

    def client(self) -> Any:
        """Open an S3 client context manager for the configured region/endpoint."""

        return self._session.client(
            "s3",
            region_name=self._config.region_name,
            endpoint_url=self._config.endpoint_url,
        )

    async def list_files(self, *, prefix: Optional[str] = None) -> list[FileItem]:
        try:
            kwargs: dict[str, Any] = {"Bucket": self._config.bucket_name}
            if prefix:
                kwargs["Prefix"] = prefix

            items: list[FileItem] = []
            s3_client: Any = self.client()
            async with s3_client as s3:
                while True:
                    response = await s3.list_objects_v2(**kwargs)
                    items.extend(FileItem.from_s3_object(o) for o in response.get("Contents", []))
                    if not response.get("IsTruncated"):
                        break
                    kwargs["ContinuationToken"] = response["NextContinuationToken"]

            return items
        except Exception as exc:
            logger.exception("S3 list_files failed (bucket=%s)", self._config.bucket_name)
            raise S3ServiceError("Failed to list files from S3") from exc

    async def upload_local_file(self, *, path: Path, key: str, content_type: Optional[str] = None) -> str:
        """Upload a local file to the staging bucket.

        Args:
            path: Local file path.
            key: Destination S3 object key.
            content_type: Optional content type override.

        Returns:
            The uploaded object key.
        """

        try:
            if not key:
                raise ValueError("'key' must be provided")
            if not path.exists() or not path.is_file():
                raise FileNotFoundError(str(path))

            body = path.read_bytes()
            effective_content_type = content_type
            if effective_content_type is None:
                guessed, _ = mimetypes.guess_type(str(path))
                effective_content_type = guessed

            extra_args: dict[str, Any] = {}
            if effective_content_type:
                extra_args["ContentType"] = effective_content_type

            s3_client: Any = self.client()
            async with s3_client as s3:
                await s3.put_object(
                    Bucket=self._config.bucket_name,
                    Key=key,
                    Body=body,
                    **extra_args,
                )

            return key
        except Exception as exc:
            logger.exception("S3 upload_local_file failed (key=%s)", key)
            raise S3ServiceError(f"Failed to upload local file to S3 (key={key})") from exc

    async def delete_files(self, *, keys: list[str]) -> int:
        """Delete objects in batches; returns the number of keys requested for deletion."""

        if not keys:
            return 0

        try:
            s3_client: Any = self.client()
            async with s3_client as s3:
                for start in range(0, len(keys), _DELETE_BATCH_SIZE):
                    batch = keys[start : start + _DELETE_BATCH_SIZE]
                    response = await s3.delete_objects(
                        Bucket=self._config.bucket_name,
                        Delete={"Objects": [{"Key": k} for k in batch], "Quiet": True},
                    )
                    errors = response.get("Errors") or []
                    if errors:
                        first = errors[0]
                        raise S3ServiceError(
                            f"S3 refused to delete {len(errors)} object(s), first: {first.get('Key')} ({first.get('Code')})"
                        )
            return len(keys)
        except S3ServiceError:
            raise
        except Exception as exc:
            logger.exception("S3 delete_files failed (bucket=%s)", self._config.bucket_name)
            raise S3ServiceError("Failed to delete files from S3") from exc
