"""Deploy / destroy entry points for the orders stack.

Stage 1 provisions the seeded table (staging bucket -> bulk load -> import).
Stage 2 assembles the orders API over the configured backend and publishes
the deployment outputs, which the served app reads its key back from.

    python -m app.stack deploy
    python -m app.stack destroy
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import sys
from pathlib import Path
from typing import Optional

from app.main import _ensure_logging
from app.models.deployment import DeploymentOutputs
from app.services.config import ApiConfig, OrdersHandlerConfig
from app.services.dependencies import assemble_orders_router, get_api_config, get_provisioning_pipeline
from app.services.orders import get_orders_handler
from app.services.router_service import OrdersRouter
from app.services.setup.provisioning_pipeline import ProvisioningPipeline

logger = logging.getLogger(__name__)


async def deploy(
    *,
    pipeline: Optional[ProvisioningPipeline] = None,
    handler_config: Optional[OrdersHandlerConfig] = None,
    api: Optional[ApiConfig] = None,
    outputs_file: Optional[Path] = None,
) -> tuple[OrdersRouter, DeploymentOutputs]:
    pipeline = pipeline or get_provisioning_pipeline()
    table = await pipeline.provision()

    # The backend is bound to the freshly provisioned table, not whatever ORDERS_TABLE says.
    base_config = handler_config or OrdersHandlerConfig.from_env()
    handler = get_orders_handler(dataclasses.replace(base_config, table_name=table.table_name))

    # Re-deploys keep the published key until it expires.
    api = api or get_api_config(outputs_file=outputs_file)
    if api.api_key is not None and not api.api_key.is_valid():
        logger.warning("API key expired at %s; issuing a new one", api.api_key.expires_at.isoformat())
        api = dataclasses.replace(api, api_key=None)
    router = assemble_orders_router(handler=handler, api=api)

    api_key = router.api_key
    if api_key is None:
        raise RuntimeError("Router was assembled without an API key")
    outputs = DeploymentOutputs(
        api_url=router.api_url,
        api_key=api_key.value,
        api_key_expires_at=api_key.expires_at,
        table_name=table.table_name,
        table_arn=table.table_arn,
    )
    path = outputs.write(outputs_file)
    logger.info(
        "Deployment complete: api_url=%s, table=%s, table_arn=%s, backend=%s, outputs=%s",
        outputs.api_url,
        outputs.table_name,
        outputs.table_arn,
        handler.backend,
        path,
    )
    return router, outputs


async def destroy(*, pipeline: Optional[ProvisioningPipeline] = None) -> None:
    pipeline = pipeline or get_provisioning_pipeline()
    await pipeline.teardown()


def main(argv: Optional[list[str]] = None) -> int:
    _ensure_logging()
    args = sys.argv[1:] if argv is None else argv
    command = args[0] if args else "deploy"

    if command == "deploy":
        asyncio.run(deploy())
        return 0
    if command == "destroy":
        asyncio.run(destroy())
        return 0

    logger.error("Unknown command %r; expected 'deploy' or 'destroy'", command)
    return 2


if __name__ == "__main__":
    sys.exit(main())
