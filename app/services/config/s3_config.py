from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class S3Config:
    """Staging Store location (the bucket the seed files are copied into)."""

    bucket_name: str
    region_name: Optional[str] = None
    endpoint_url: Optional[str] = None
    prefix: str = "seed-data/"

    @staticmethod
    def from_env(*, default_bucket_name: Optional[str] = None) -> "S3Config":
        bucket_name = os.getenv("STAGING_BUCKET_NAME") or default_bucket_name
        if not bucket_name:
            raise ValueError("Missing required environment variable: STAGING_BUCKET_NAME")

        region_name = os.getenv("AWS_REGION") or os.getenv("AWS_DEFAULT_REGION")
        endpoint_url = os.getenv("S3_ENDPOINT_URL")

        prefix = os.getenv("STAGING_PREFIX", "seed-data/")
        if prefix and not prefix.endswith("/"):
            prefix = prefix + "/"

        return S3Config(bucket_name=bucket_name, region_name=region_name, endpoint_url=endpoint_url, prefix=prefix)
