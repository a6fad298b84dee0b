"""Resume scheduler: periodic sweep that wakes executions whose delay elapsed."""

from __future__ import annotations

import asyncio
import logging

from flowline.constants import resume_at_key
from flowline.engine.runner import ExecutionRunner
from flowline.schemas.enums import ExecutionStatus
from flowline.schemas.execution_models import FlowExecution
from flowline.storage.base import ExecutionRepository
from flowline.timeutils import Clock, now_millis

LOGGER = logging.getLogger(__name__)


class ResumeScheduler:
    """Wakes paused executions; overlapping ticks are skipped, not run in parallel."""

    def __init__(
        self,
        *,
        store: ExecutionRepository,
        runner: ExecutionRunner,
        clock: Clock = now_millis,
    ) -> None:
        self.store = store
        self.runner = runner
        self.is_processing = False
        self._clock = clock

    async def tick(self) -> int:
        """Resume every due execution once; return how many were resumed."""
        if self.is_processing:
            LOGGER.debug("Previous tick still running; skipping")
            return 0
        self.is_processing = True
        try:
            now = self._clock()
            due: list[FlowExecution] = []
            for execution in self.store.list_executions(status=ExecutionStatus.IN_PROGRESS):
                try:
                    if _is_due(execution, now):
                        due.append(execution)
                except (TypeError, ValueError) as exc:
                    LOGGER.warning(
                        "Execution %s has an unreadable resume time; skipping: %s",
                        execution.id,
                        exc,
                    )
            if not due:
                return 0
            results = await asyncio.gather(
                *(self.runner.resume_waiting(execution.id, now_ms=now) for execution in due),
                return_exceptions=True,
            )
            resumed = 0
            for execution, result in zip(due, results):
                if isinstance(result, BaseException):
                    LOGGER.error(
                        "Resuming execution %s failed: %s",
                        execution.id,
                        result,
                        exc_info=result,
                    )
                elif result:
                    resumed += 1
            return resumed
        except Exception:  # noqa: BLE001
            LOGGER.exception("Resume scheduler tick failed")
            return 0
        finally:
            self.is_processing = False

    async def run_forever(
        self,
        *,
        interval_seconds: float,
        stop_event: asyncio.Event | None = None,
    ) -> None:
        """Tick on a fixed interval until ``stop_event`` is set."""
        stop = stop_event or asyncio.Event()
        while not stop.is_set():
            resumed = await self.tick()
            if resumed:
                LOGGER.info("Resumed %d execution(s)", resumed)
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval_seconds)
            except asyncio.TimeoutError:
                continue


def _is_due(execution: FlowExecution, now_ms: int) -> bool:
    node_id = execution.waiting_on_node
    if node_id is None:
        return False
    resume_at = execution.variables.get(resume_at_key(node_id))
    return bool(resume_at) and now_ms >= int(resume_at)
