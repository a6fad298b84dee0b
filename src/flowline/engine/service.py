"""Engine facade wiring matcher, spawner, runner and scheduler together."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Mapping

from flowline.config.models import AppConfig
from flowline.engine.interpreter import NodeInterpreter
from flowline.engine.matcher import TriggerMatcher
from flowline.engine.runner import ExecutionRunner
from flowline.engine.scheduler import ResumeScheduler
from flowline.engine.spawner import ExecutionSpawner
from flowline.gateway.base import MessagingGateway
from flowline.gateway.whatsapp import create_gateway
from flowline.observability.tracing import NoOpTracer, TracerProtocol, create_tracer
from flowline.schemas.enums import ExecutionStatus, UnmatchedBranchPolicy
from flowline.schemas.execution_models import Contact, FlowExecution, TriggerEvent
from flowline.schemas.graph_models import Flow
from flowline.storage.base import EngineStore
from flowline.storage.sqlite_store import SQLiteFlowStore
from flowline.storage.transition_store import ExecutionTransitionStore
from flowline.timeutils import Clock, now_millis

LOGGER = logging.getLogger(__name__)


class FlowEngine:
    """Entry point used by the application's routes and cron driver.

    Runs are launched as background tasks; the engine keeps a reference to
    each one until it finishes and ``drain()`` awaits whatever is in flight.
    """

    def __init__(
        self,
        *,
        store: EngineStore,
        transition_store: ExecutionTransitionStore,
        gateway: MessagingGateway,
        tracer: TracerProtocol | None = None,
        clock: Clock = now_millis,
        claim_ttl_seconds: int = 300,
        unmatched_branch: UnmatchedBranchPolicy = UnmatchedBranchPolicy.FIRST_EDGE,
    ) -> None:
        self.store = store
        self.transition_store = transition_store
        self.gateway = gateway
        self.tracer = tracer or NoOpTracer()
        self._tasks: set[asyncio.Task[FlowExecution | None]] = set()
        self.interpreter = NodeInterpreter(gateway, clock=clock)
        self.runner = ExecutionRunner(
            store=store,
            interpreter=self.interpreter,
            transition_store=transition_store,
            tracer=self.tracer,
            clock=clock,
            claim_ttl_seconds=claim_ttl_seconds,
            unmatched_branch=unmatched_branch,
        )
        self.spawner = ExecutionSpawner(store=store, schedule_run=self.schedule_run)
        self.matcher = TriggerMatcher(flows=store, spawner=self.spawner)
        self.scheduler = ResumeScheduler(store=store, runner=self.runner, clock=clock)

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        *,
        env: Mapping[str, str] | None = None,
        gateway: MessagingGateway | None = None,
    ) -> "FlowEngine":
        """Build an engine backed by the configured SQLite database and gateway."""
        active_env = dict(os.environ) if env is None else env
        db_path = Path(config.database.path)
        return cls(
            store=SQLiteFlowStore(db_path),
            transition_store=ExecutionTransitionStore(db_path),
            gateway=gateway or create_gateway(config, active_env),
            tracer=create_tracer(active_env),
            claim_ttl_seconds=config.engine.claim_ttl_seconds,
            unmatched_branch=config.engine.unmatched_branch,
        )

    async def handle_event(self, event: TriggerEvent) -> list[FlowExecution]:
        """Match an inbound event against active flows and spawn executions."""
        return await self.matcher.match(event)

    async def spawn(self, flow: Flow, contact: Contact) -> FlowExecution | None:
        return await self.spawner.spawn(flow, contact)

    async def run(self, execution_id: str) -> FlowExecution | None:
        """Drive an execution in the caller's task."""
        return await self.runner.run(execution_id)

    async def tick(self) -> int:
        return await self.scheduler.tick()

    def schedule_run(self, execution_id: str) -> asyncio.Task[FlowExecution | None]:
        """Launch a runner pass for ``execution_id`` as a background task."""
        task = asyncio.get_running_loop().create_task(
            self.runner.run(execution_id),
            name=f"flowline-execution-{execution_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def cancel(self, execution_id: str) -> bool:
        """Mark an in-progress execution CANCELLED; the runner stops at its next step."""
        cancelled = self.store.cancel_execution(execution_id)
        if cancelled:
            LOGGER.info("Execution %s cancelled", execution_id)
        return cancelled

    def failed_executions(self) -> list[FlowExecution]:
        """Executions that ended FAILED; there is no automatic retry path."""
        return self.store.list_executions(status=ExecutionStatus.FAILED)

    async def drain(self) -> None:
        """Wait until every background run launched so far has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        await self.drain()
        self.tracer.flush()

    def _on_task_done(self, task: asyncio.Task[FlowExecution | None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            LOGGER.error("Background run %s crashed: %s", task.get_name(), error, exc_info=error)
