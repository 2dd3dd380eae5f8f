from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class SeedDataConfig:
    """Bulk Loader wiring: where the seed files live and how to upload them."""

    data_dir: Path
    concurrency: int = 10

    @staticmethod
    def from_env(*, default_dir: Path) -> "SeedDataConfig":
        raw_dir = os.getenv("SEED_DATA_DIR")
        data_dir = Path(raw_dir) if raw_dir else default_dir

        concurrency_raw = os.getenv("SEED_UPLOAD_CONCURRENCY", "10")
        try:
            concurrency = int(concurrency_raw)
        except ValueError as exc:
            raise ValueError("Invalid SEED_UPLOAD_CONCURRENCY; must be an integer") from exc
        if concurrency <= 0:
            concurrency = 10

        return SeedDataConfig(data_dir=data_dir, concurrency=concurrency)
