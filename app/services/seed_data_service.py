from __future__ import annotations

import asyncio
import hashlib
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from tqdm import tqdm

from app.services.config import SeedDataConfig, SeededTableConfig
from app.services.s3_service import S3Service, S3ServiceError

logger = logging.getLogger(__name__)


class SeedDataError(RuntimeError):
    pass


@dataclass(frozen=True)
class SeedRecord:
    """One item from a seed file, in DynamoDB-JSON form, with its origin."""

    partition_key: str
    sort_key: str
    item: dict[str, Any]
    source_file: Path
    line_number: int

    @property
    def key(self) -> tuple[str, str]:
        return (self.partition_key, self.sort_key)

    @property
    def location(self) -> str:
        return f"{self.source_file}:{self.line_number}"


@dataclass(frozen=True)
class SeedSyncResult:
    records: int
    uploaded: int
    skipped: int
    pruned: int = 0


class SeedDataService:
    """Bulk Loader: validates local seed files and copies them into the Staging Store.

    Seed files use the DynamoDB import format, one ``{"Item": {...}}`` object per
    line. Every file is validated before anything is uploaded, so a malformed
    record or duplicate key never reaches the table import.
    """

    def __init__(self, *, s3: S3Service, config: SeedDataConfig, table: SeededTableConfig) -> None:
        self._s3 = s3
        self._config = config
        self._table = table

    @property
    def data_dir(self) -> Path:
        return self._config.data_dir

    def list_seed_files(self) -> list[Path]:
        data_dir = self._config.data_dir
        if not data_dir.exists() or not data_dir.is_dir():
            raise SeedDataError(f"Seed data directory not found: {data_dir}")

        files = sorted(p for p in data_dir.rglob("*.json") if p.is_file())
        if not files:
            raise SeedDataError(f"Seed data directory contains no .json files: {data_dir}")
        return files

    def _key_value(self, *, item: dict[str, Any], attribute_name: str, expected_type: str, location: str) -> str:
        typed = item.get(attribute_name)
        if not isinstance(typed, dict) or not typed:
            raise SeedDataError(f"{location}: record is missing key attribute {attribute_name!r}")
        if expected_type not in typed:
            actual = next(iter(typed))
            raise SeedDataError(
                f"{location}: key attribute {attribute_name!r} has type {actual!r}, table expects {expected_type!r}"
            )
        return str(typed[expected_type])

    def parse_file(self, path: Path) -> list[SeedRecord]:
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except (OSError, UnicodeDecodeError) as exc:
            raise SeedDataError(f"Failed reading seed file: {path}") from exc

        records: list[SeedRecord] = []
        for line_number, raw in enumerate(lines, start=1):
            if not raw.strip():
                continue

            location = f"{path}:{line_number}"
            try:
                parsed = json.loads(raw)
            except json.JSONDecodeError as exc:
                raise SeedDataError(f"{location}: invalid JSON ({exc.msg})") from exc

            item = parsed.get("Item") if isinstance(parsed, dict) else None
            if not isinstance(item, dict):
                raise SeedDataError(f"{location}: expected an object with an 'Item' map")

            pk = self._key_value(
                item=item,
                attribute_name=self._table.partition_key.name,
                expected_type=self._table.partition_key.type.value,
                location=location,
            )
            sk = self._key_value(
                item=item,
                attribute_name=self._table.sort_key.name,
                expected_type=self._table.sort_key.type.value,
                location=location,
            )
            records.append(SeedRecord(partition_key=pk, sort_key=sk, item=item, source_file=path, line_number=line_number))

        return records

    def load_records(self) -> list[SeedRecord]:
        """Parse and validate every seed file; raises on the first bad record or duplicate key."""

        seen: dict[tuple[str, str], SeedRecord] = {}
        records: list[SeedRecord] = []
        for path in self.list_seed_files():
            for record in self.parse_file(path):
                previous = seen.get(record.key)
                if previous is not None:
                    raise SeedDataError(
                        f"{record.location}: duplicate key {record.key!r} (first seen at {previous.location})"
                    )
                seen[record.key] = record
                records.append(record)

        if not records:
            raise SeedDataError(f"Seed data directory contains no records: {self._config.data_dir}")
        return records

    @staticmethod
    def _md5(path: Path) -> str:
        return hashlib.md5(path.read_bytes()).hexdigest()

    def _staged_key(self, *, prefix: str, path: Path) -> str:
        rel_key = path.relative_to(self._config.data_dir).as_posix()
        return f"{prefix}{rel_key}" if prefix else rel_key

    def _planned_upload_item(self, *, prefix: str, existing: dict[str, Optional[str]], path: Path) -> Optional[tuple[Path, str]]:
        s3_key = self._staged_key(prefix=prefix, path=path)
        if s3_key in existing and existing[s3_key] == self._md5(path):
            return None
        return (path, s3_key)

    async def sync_to_staging(self) -> SeedSyncResult:
        """Validate the seed set and mirror it into the Staging Store.

        Steps:
        1) Parse and validate every local seed file (fatal on any error).
        2) List existing objects under the staging prefix.
        3) Upload new or changed files in parallel, showing a tqdm progress bar.
        4) Fail the step if any upload failed.
        5) Delete staged objects that no longer have a local file; the table
           import reads everything under the prefix.
        """

        records = self.load_records()
        files = self.list_seed_files()
        prefix = self._s3.prefix

        logger.info("Seed data sync: listing staging objects (bucket=%s, prefix=%r)", self._s3.bucket_name, prefix)
        existing_items = await self._s3.list_files(prefix=prefix)
        existing = {item.key: item.content_md5 for item in existing_items}

        planned = [
            item
            for path in files
            if (item := self._planned_upload_item(prefix=prefix, existing=existing, path=path)) is not None
        ]
        local_keys = {self._staged_key(prefix=prefix, path=path) for path in files}
        stale = sorted(key for key in existing if key not in local_keys)

        skipped = len(files) - len(planned)
        logger.info(
            "Seed data sync: records=%d, files=%d, staged=%d, to_upload=%d, to_prune=%d",
            len(records),
            len(files),
            len(existing_items),
            len(planned),
            len(stale),
        )

        succeeded = 0
        if planned:
            succeeded = await self._upload_planned(planned)
        else:
            logger.info("Seed data sync: nothing to upload")

        pruned = 0
        if stale:
            try:
                pruned = await self._s3.delete_files(keys=stale)
            except S3ServiceError as exc:
                raise SeedDataError(f"Failed to prune {len(stale)} stale staging object(s)") from exc
            logger.info("Seed data sync: pruned stale objects: %s", ", ".join(stale))

        return SeedSyncResult(records=len(records), uploaded=succeeded, skipped=skipped, pruned=pruned)

    async def _upload_planned(self, planned: list[tuple[Path, str]]) -> int:
        semaphore = asyncio.Semaphore(self._config.concurrency)

        async def _upload_one(path: Path, key: str) -> tuple[str, bool, Optional[str]]:
            async with semaphore:
                try:
                    await self._s3.upload_local_file(path=path, key=key, content_type="application/json")
                    return (key, True, None)
                except S3ServiceError as exc:
                    return (key, False, str(exc))

        tasks = [asyncio.create_task(_upload_one(path, key)) for path, key in planned]

        succeeded = 0
        failures: list[str] = []

        for fut in tqdm(
            asyncio.as_completed(tasks),
            total=len(tasks),
            desc="Uploading seed data",
            unit="file",
        ):
            key, ok, err = await fut
            if ok:
                succeeded += 1
            else:
                failures.append(key)
                logger.error("Seed data upload failed (key=%s): %s", key, err)

        logger.info(
            "Seed data sync complete: to_upload=%d, succeeded=%d, failed=%d",
            len(planned),
            succeeded,
            len(failures),
        )

        if failures:
            raise SeedDataError(f"Failed to upload {len(failures)} seed file(s): {', '.join(sorted(failures))}")
        return succeeded
