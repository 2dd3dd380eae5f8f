from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from app.services.seed_data_service import SeedDataService
from app.services.setup.dynamodb_setup_service import DynamoDBSetupService, TableHandle
from app.services.setup.s3_setup_service import S3SetupService


logger = logging.getLogger(__name__)

STAGING_STORE = "staging_store"
BULK_LOAD = "bulk_load"
SEEDED_TABLE = "seeded_table"


class ProvisioningError(RuntimeError):
    pass


class PipelineDefinitionError(ProvisioningError):
    pass


class OrderingViolationError(ProvisioningError):
    pass


class EventPhase(str, Enum):
    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class ProvisioningEvent:
    step: str
    phase: EventPhase
    timestamp: float


@dataclass
class ProvisioningStep:
    name: str
    action: Callable[[], Awaitable[Any]]
    depends_on: set[str] = field(default_factory=set)


class ProvisioningPipeline:
    """Creates the staging bucket, bulk-loads the seed data, then imports the table.

    The edge between the bulk copy and the table import is declared by hand:
    nothing in the table definition references the uploaded objects, so the
    ordering cannot be inferred and must be stated.

    Usage:

        pipeline = ProvisioningPipeline(staging=..., seed_data=..., table=...)
        handle = await pipeline.provision()
        ...
        await pipeline.teardown()
    """

    def __init__(
        self,
        *,
        staging: S3SetupService,
        seed_data: SeedDataService,
        table: DynamoDBSetupService,
        bucket_prefix: str = "",
    ) -> None:
        self._staging = staging
        self._seed_data = seed_data
        self._table_setup = table
        self._bucket_prefix = bucket_prefix
        self._table: Optional[TableHandle] = None
        self._completed: set[str] = set()
        self.events: list[ProvisioningEvent] = []
        self._steps: dict[str, ProvisioningStep] = {}

        self.add_step(ProvisioningStep(name=STAGING_STORE, action=self._staging.ensure_bucket))
        self.add_step(ProvisioningStep(name=BULK_LOAD, action=self._seed_data.sync_to_staging))
        self.add_step(ProvisioningStep(name=SEEDED_TABLE, action=self._create_table))

        self.add_dependency(BULK_LOAD, STAGING_STORE)
        # Import must not start before the copy into staging has finished.
        self.add_dependency(SEEDED_TABLE, BULK_LOAD)

    @property
    def table(self) -> TableHandle:
        if self._table is None:
            raise ProvisioningError("Seeded table is not available until provisioning succeeds")
        return self._table

    def add_step(self, step: ProvisioningStep) -> None:
        if step.name in self._steps:
            raise PipelineDefinitionError(f"Duplicate provisioning step: {step.name}")
        self._steps[step.name] = step

    def add_dependency(self, step_name: str, depends_on: str) -> None:
        for name in (step_name, depends_on):
            if name not in self._steps:
                raise PipelineDefinitionError(f"Unknown provisioning step: {name}")
        step = self._steps[step_name]
        step.depends_on.add(depends_on)
        try:
            self.execution_order()
        except PipelineDefinitionError:
            step.depends_on.discard(depends_on)
            raise

    def execution_order(self) -> list[str]:
        """Steps in dependency order; declaration order breaks ties."""

        order: list[str] = []
        visiting: set[str] = set()

        def _visit(name: str) -> None:
            if name in order:
                return
            if name in visiting:
                raise PipelineDefinitionError(f"Dependency cycle through step: {name}")
            visiting.add(name)
            for dep in sorted(self._steps[name].depends_on):
                _visit(dep)
            visiting.discard(name)
            order.append(name)

        for name in self._steps:
            _visit(name)
        return order

    def _record(self, step: str, phase: EventPhase) -> None:
        self.events.append(ProvisioningEvent(step=step, phase=phase, timestamp=time.monotonic()))

    async def _create_table(self) -> TableHandle:
        self._table = await self._table_setup.ensure_table(
            bucket_name=self._staging.bucket_name,
            key_prefix=self._bucket_prefix,
        )
        return self._table

    async def _run_step(self, step: ProvisioningStep) -> None:
        missing = step.depends_on - self._completed
        if missing:
            raise OrderingViolationError(
                f"Step {step.name!r} cannot start before {', '.join(sorted(missing))} completed"
            )

        logger.info("Provisioning step started: %s", step.name)
        self._record(step.name, EventPhase.STARTED)
        try:
            await step.action()
        except Exception as exc:
            self._record(step.name, EventPhase.FAILED)
            logger.error("Provisioning step failed: %s: %s", step.name, exc)
            raise ProvisioningError(f"Provisioning step {step.name!r} failed: {exc}") from exc

        self._completed.add(step.name)
        self._record(step.name, EventPhase.COMPLETED)
        logger.info("Provisioning step completed: %s", step.name)

    async def provision(self) -> TableHandle:
        """Run every step in order. Any failure aborts the run; nothing is retried."""

        self._completed.clear()
        self._table = None
        for name in self.execution_order():
            await self._run_step(self._steps[name])
        return self.table

    async def teardown(self) -> None:
        """Reverse of provision: table first (per its removal policy), then staging, always."""

        logger.info("Tearing down provisioning pipeline")
        try:
            await self._table_setup.remove_table()
        finally:
            await self._staging.destroy_bucket()
        self._table = None
        self._completed.clear()
