from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_OUTPUTS_PATH = "deployment-outputs.json"


def outputs_path(path: Optional[Path] = None) -> Path:
    return path or Path(os.getenv("DEPLOYMENT_OUTPUTS_PATH", DEFAULT_OUTPUTS_PATH))


class DeploymentOutputs(BaseModel):
    """Values published after a deploy, for operators and API consumers.

    The same file is read back by the served API, so the published key is the
    key that requests are checked against.
    """

    model_config = ConfigDict(populate_by_name=True)

    api_url: str = Field(..., alias="API_URL")
    api_key: str = Field(..., alias="API_Key")
    api_key_expires_at: datetime = Field(..., alias="API_Key_Expires_At")
    table_name: str = Field(..., alias="TableName")
    table_arn: str = Field(..., alias="TableARN")

    def write(self, path: Optional[Path] = None) -> Path:
        target = outputs_path(path)
        target.write_text(self.model_dump_json(by_alias=True, indent=2) + "\n", encoding="utf-8")
        return target

    @staticmethod
    def read(path: Optional[Path] = None) -> Optional["DeploymentOutputs"]:
        """Load published outputs; None when nothing has been deployed yet."""

        source = outputs_path(path)
        if not source.is_file():
            return None
        return DeploymentOutputs.model_validate_json(source.read_text(encoding="utf-8"))
