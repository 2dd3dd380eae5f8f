from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class FileItem(BaseModel):
    key: str = Field(..., description="S3 object key")
    size: Optional[int] = None
    last_modified: Optional[datetime] = None
    etag: Optional[str] = None

    @property
    def content_md5(self) -> Optional[str]:
        # Single-part uploads carry the hex MD5 of the body as a quoted ETag.
        if not self.etag:
            return None
        return self.etag.strip('"')

    @staticmethod
    def from_s3_object(obj: dict[str, Any]) -> "FileItem":
        return FileItem(
            key=str(obj.get("Key")),
            size=obj.get("Size"),
            last_modified=obj.get("LastModified"),
            etag=obj.get("ETag"),
        )
