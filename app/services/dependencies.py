from __future__ import annotations

import dataclasses
from pathlib import Path
from typing import Any, Optional

from fastapi import FastAPI, Request

from app.models.deployment import DeploymentOutputs
from app.services.config import (
    ApiConfig,
    ApiKey,
    OrdersHandlerConfig,
    S3Config,
    SeedDataConfig,
    SeededTableConfig,
)
from app.services.orders import BaseOrdersHandler, get_orders_handler
from app.services.router_service import OrdersRouter, RequestRouterAssembly, RouterAssemblyError
from app.services.s3_service import S3Service
from app.services.seed_data_service import SeedDataService
from app.services.setup.dynamodb_setup_service import DynamoDBSetupService
from app.services.setup.provisioning_pipeline import ProvisioningPipeline
from app.services.setup.s3_setup_service import S3SetupService

PROJECT_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_SEED_DIR = PROJECT_ROOT / "sample-data"


def get_table_config() -> SeededTableConfig:
    return SeededTableConfig.from_env()


def get_s3_service(table: Optional[SeededTableConfig] = None) -> S3Service:
    """Provider for the Staging Store bucket; its name defaults to one derived from the table."""

    table = table or get_table_config()
    return S3Service(S3Config.from_env(default_bucket_name=f"{table.table_name}-seed-data"))


def get_provisioning_pipeline(table: Optional[SeededTableConfig] = None) -> ProvisioningPipeline:
    table = table or get_table_config()
    s3 = get_s3_service(table)

    return ProvisioningPipeline(
        staging=S3SetupService(s3=s3),
        seed_data=SeedDataService(
            s3=s3,
            config=SeedDataConfig.from_env(default_dir=DEFAULT_SEED_DIR),
            table=table,
        ),
        table=DynamoDBSetupService(table),
        bucket_prefix=s3.prefix,
    )


def assemble_orders_router(
    *,
    handler: BaseOrdersHandler,
    api: Optional[ApiConfig] = None,
) -> OrdersRouter:
    """Walk the router assembly through every state and return the ready router.

    Both field names resolve to the same bound backend, so switching backends
    never changes the schema callers see.
    """

    api = api or ApiConfig.from_env()
    assembly = RequestRouterAssembly()
    assembly.create_api(name=api.name, api_url=api.api_url, api_key=api.api_key)
    assembly.add_data_source(handler)
    assembly.create_resolver("orders")
    assembly.create_resolver("allOrders")
    return assembly.build()


def get_api_config(*, outputs_file: Optional[Path] = None) -> ApiConfig:
    """API settings, with the key taken from the environment or else from the last deploy's outputs."""

    api = ApiConfig.from_env()
    if api.api_key is not None:
        return api

    outputs = DeploymentOutputs.read(outputs_file)
    if outputs is None:
        return api
    return dataclasses.replace(api, api_key=ApiKey(value=outputs.api_key, expires_at=outputs.api_key_expires_at))


def get_served_orders_router(*, session: Optional[Any] = None, outputs_file: Optional[Path] = None) -> OrdersRouter:
    """Assemble the router the running app serves.

    Unlike a deploy, this never issues a key: a fresh key here would not be
    the one published to callers.
    """

    config = OrdersHandlerConfig.from_env()
    if config.table_name is None:
        outputs = DeploymentOutputs.read(outputs_file)
        if outputs is not None:
            config = dataclasses.replace(config, table_name=outputs.table_name)

    api = get_api_config(outputs_file=outputs_file)
    if api.api_key is None:
        raise RouterAssemblyError(
            "No API key configured: deploy first, or set ORDERS_API_KEY and ORDERS_API_KEY_EXPIRES_AT"
        )
    return assemble_orders_router(handler=get_orders_handler(config, session=session), api=api)


def get_orders_router_from_app(app: FastAPI) -> OrdersRouter:
    router = getattr(app.state, "orders_router", None)
    if router is None:
        raise RouterAssemblyError("Orders router not initialized (app.state.orders_router)")
    if not isinstance(router, OrdersRouter):
        raise RuntimeError("Unexpected orders_router type")
    return router


def get_orders_router(request: Request) -> OrdersRouter:
    return get_orders_router_from_app(request.app)
