"""Execution runner: the resumable step loop for one execution."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from flowline.constants import WAITING_ON_NODE_KEY, delay_done_key, resume_at_key
from flowline.engine.branching import resolve_next_node
from flowline.engine.interpreter import NodeInterpreter
from flowline.errors import ContactNotFoundError, FlowNotFoundError
from flowline.observability.tracing import TracerProtocol
from flowline.schemas.enums import (
    ExecutionStatus,
    NodeTransitionState,
    StepAction,
    UnmatchedBranchPolicy,
)
from flowline.schemas.execution_models import FlowExecution
from flowline.security.redaction import redact_text
from flowline.storage.base import EngineStore
from flowline.storage.transition_store import ExecutionTransitionStore
from flowline.timeutils import Clock, now_millis

LOGGER = logging.getLogger(__name__)

_PENDING = "pending"
_TERMINAL_NODE = "-"


@dataclass
class _Lease:
    execution_id: str
    held_since: int


class ExecutionRunner:
    """Drives executions through their flow graph.

    Each pass claims the execution first so that only one driver (a fresh
    spawn or a scheduler resume) walks it at a time. The claim is renewed
    before every node and released only by the driver that stamped it; a
    driver whose renewal fails has been superseded and stops. Progress is
    persisted after every node; a pause persists the merged variables and
    leaves ``current_step`` on the pausing node.
    """

    def __init__(
        self,
        *,
        store: EngineStore,
        interpreter: NodeInterpreter,
        transition_store: ExecutionTransitionStore,
        tracer: TracerProtocol,
        clock: Clock = now_millis,
        claim_ttl_seconds: int = 300,
        unmatched_branch: UnmatchedBranchPolicy = UnmatchedBranchPolicy.FIRST_EDGE,
    ) -> None:
        self.store = store
        self.interpreter = interpreter
        self.transition_store = transition_store
        self.tracer = tracer
        self.claim_ttl_seconds = claim_ttl_seconds
        self.unmatched_branch = unmatched_branch
        self._clock = clock
        self._active: set[str] = set()

    async def run(self, execution_id: str) -> FlowExecution | None:
        """Walk an in-progress execution until it pauses or terminates.

        A no-op when the execution is terminal or another driver holds it.
        """
        lease = self._claim(execution_id)
        if lease is None:
            LOGGER.info("Execution %s is terminal or already running; skipping", execution_id)
            return self.store.get_execution(execution_id)
        try:
            return await self._drive(lease, entry_state=_PENDING)
        finally:
            self._release(lease)

    async def resume_waiting(self, execution_id: str, *, now_ms: int | None = None) -> bool:
        """Continue an execution whose delay has elapsed; True if it was resumed.

        The wait markers are cleared and ``delay_done_<node>`` is set under the
        same claim used to drive the loop, so a resume can never strand an
        execution that another driver is holding.
        """
        lease = self._claim(execution_id)
        if lease is None:
            LOGGER.debug("Execution %s not claimable for resume", execution_id)
            return False
        try:
            execution = self.store.get_execution(execution_id)
            if execution is None or execution.status != ExecutionStatus.IN_PROGRESS:
                return False
            node_id = execution.waiting_on_node
            if node_id is None:
                return False
            resume_at = execution.variables.get(resume_at_key(node_id))
            now = self._clock() if now_ms is None else now_ms
            if not resume_at or now < int(resume_at):
                return False

            variables = dict(execution.variables)
            variables.pop(resume_at_key(node_id), None)
            variables.pop(WAITING_ON_NODE_KEY, None)
            variables[delay_done_key(node_id)] = True
            self.store.update_execution(
                execution_id,
                only_if_status=ExecutionStatus.IN_PROGRESS,
                variables=variables,
            )
            LOGGER.info("Resuming execution %s at node %s", execution_id, node_id)
            await self._drive(lease, entry_state=NodeTransitionState.PAUSED.value)
            return True
        finally:
            self._release(lease)

    def _claim(self, execution_id: str) -> _Lease | None:
        # A driver inside this process is live whatever its stamp says.
        if execution_id in self._active:
            return None
        now = self._clock()
        claimed = self.store.claim_execution(
            execution_id,
            now_ms=now,
            stale_before_ms=now - self.claim_ttl_seconds * 1000,
        )
        if not claimed:
            return None
        self._active.add(execution_id)
        return _Lease(execution_id=execution_id, held_since=now)

    def _renew(self, lease: _Lease) -> bool:
        now = self._clock()
        if not self.store.renew_claim(lease.execution_id, held_since=lease.held_since, now_ms=now):
            return False
        lease.held_since = now
        return True

    def _release(self, lease: _Lease) -> None:
        self._active.discard(lease.execution_id)
        self.store.release_execution(lease.execution_id, held_since=lease.held_since)

    async def _drive(self, lease: _Lease, *, entry_state: str) -> FlowExecution | None:
        execution_id = lease.execution_id
        execution = self.store.get_execution(execution_id)
        if execution is None:
            LOGGER.warning("Execution %s not found", execution_id)
            return None
        self.tracer.start_execution(
            execution_id=execution_id,
            metadata={
                "flow_id": execution.flow_id,
                "contact_id": execution.contact_id,
                "entry_state": entry_state,
            },
        )
        try:
            execution = await self._step_loop(execution, lease=lease, entry_state=entry_state)
        finally:
            self.tracer.finish_execution(
                execution_id=execution_id,
                metadata={"status": execution.status.value if execution else "missing"},
            )
        return execution

    async def _step_loop(
        self,
        execution: FlowExecution,
        *,
        lease: _Lease,
        entry_state: str,
    ) -> FlowExecution | None:
        from_state = entry_state
        while True:
            if not self._renew(lease):
                LOGGER.warning(
                    "Execution %s was taken over by another driver; stopping", execution.id
                )
                return self.store.get_execution(execution.id)
            current = self.store.get_execution(execution.id)
            if current is None:
                return None
            execution = current
            if execution.status != ExecutionStatus.IN_PROGRESS:
                return execution

            flow = self.store.get_flow(execution.flow_id)
            if flow is None:
                return self._fail(
                    execution,
                    node_id=execution.current_step or _TERMINAL_NODE,
                    error=FlowNotFoundError(f"Flow {execution.flow_id} not found"),
                )
            node = flow.content.get_node(execution.current_step) if execution.current_step else None
            if node is None:
                return self._complete(
                    execution,
                    node_id=execution.current_step or _TERMINAL_NODE,
                    reason="Current step is not in the flow graph",
                )
            contact = self.store.get_contact(execution.contact_id)
            if contact is None:
                return self._fail(
                    execution,
                    node_id=node.id,
                    error=ContactNotFoundError(f"Contact {execution.contact_id} not found"),
                )

            self._record(
                execution.id,
                node.id,
                from_state=from_state,
                to_state=NodeTransitionState.RUNNING,
                reason=f"Executing {node.type.value} node",
            )
            try:
                result = await self.interpreter.execute(node, contact, dict(execution.variables))
                next_node_id = None
                if result.action == StepAction.CONTINUE:
                    next_node_id = resolve_next_node(
                        node,
                        flow.content.edges,
                        result.outcome,
                        policy=self.unmatched_branch,
                    )
            except Exception as exc:  # noqa: BLE001
                return self._fail(execution, node_id=node.id, error=exc)

            if result.action == StepAction.PAUSE:
                merged = {**execution.variables, **result.variables}
                paused = self.store.update_execution(
                    execution.id,
                    only_if_status=ExecutionStatus.IN_PROGRESS,
                    variables=merged,
                )
                self._record(
                    execution.id,
                    node.id,
                    from_state=NodeTransitionState.RUNNING.value,
                    to_state=NodeTransitionState.PAUSED,
                    reason=f"Paused until {result.variables.get(resume_at_key(node.id))}",
                )
                return paused

            self._record(
                execution.id,
                node.id,
                from_state=NodeTransitionState.RUNNING.value,
                to_state=NodeTransitionState.COMPLETED,
                reason=f"Outcome {result.outcome}" if result.outcome else "Node completed",
            )
            if next_node_id is None:
                return self._complete(execution, node_id=node.id, reason="Graph exhausted")
            self.store.update_execution(
                execution.id,
                only_if_status=ExecutionStatus.IN_PROGRESS,
                current_step=next_node_id,
            )
            from_state = _PENDING

    def _complete(
        self,
        execution: FlowExecution,
        *,
        node_id: str,
        reason: str,
    ) -> FlowExecution | None:
        LOGGER.info("Execution %s completed at %s (%s)", execution.id, node_id, reason)
        return self.store.update_execution(
            execution.id,
            only_if_status=ExecutionStatus.IN_PROGRESS,
            status=ExecutionStatus.COMPLETED,
            current_step=None,
        )

    def _fail(
        self,
        execution: FlowExecution,
        *,
        node_id: str,
        error: BaseException,
    ) -> FlowExecution | None:
        message = redact_text(f"{type(error).__name__}: {error}")
        LOGGER.warning(
            "Execution %s failed at node %s: %s",
            execution.id,
            node_id,
            message,
            exc_info=error,
        )
        self._record(
            execution.id,
            node_id,
            from_state=NodeTransitionState.RUNNING.value,
            to_state=NodeTransitionState.FAILED,
            reason=message,
        )
        return self.store.update_execution(
            execution.id,
            only_if_status=ExecutionStatus.IN_PROGRESS,
            status=ExecutionStatus.FAILED,
            current_step=None,
            last_error=message,
        )

    def _record(
        self,
        execution_id: str,
        node_id: str,
        *,
        from_state: str,
        to_state: NodeTransitionState,
        reason: str,
    ) -> None:
        self.transition_store.record_transition(
            execution_id=execution_id,
            node_id=node_id,
            from_state=from_state,
            to_state=to_state,
            reason=reason,
        )
        self.tracer.record_step(
            execution_id=execution_id,
            node_id=node_id,
            metadata={"status": to_state.value, "reason": reason},
        )
