"""Execution spawner: anchors a new execution downstream of a flow's trigger."""

from __future__ import annotations

import logging
from typing import Callable

from flowline.errors import NoTriggerNodeError
from flowline.schemas.enums import ExecutionStatus
from flowline.schemas.execution_models import Contact, FlowExecution
from flowline.schemas.graph_models import Flow
from flowline.storage.base import ExecutionRepository

LOGGER = logging.getLogger(__name__)

ScheduleRun = Callable[[str], object]


class ExecutionSpawner:
    """Creates executions and hands them to the runner without waiting on them."""

    def __init__(self, *, store: ExecutionRepository, schedule_run: ScheduleRun) -> None:
        self.store = store
        self._schedule_run = schedule_run

    async def spawn(self, flow: Flow, contact: Contact) -> FlowExecution | None:
        """Create an IN_PROGRESS execution at the node wired to the trigger.

        Raises ``NoTriggerNodeError`` for a flow without a trigger node and
        returns None when the trigger is not connected to anything.
        """
        trigger = flow.content.trigger_node()
        if trigger is None:
            raise NoTriggerNodeError(flow.id)

        first_edge = next(
            (edge for edge in flow.content.edges if edge.source == trigger.id),
            None,
        )
        if first_edge is None:
            LOGGER.info("Flow %s trigger has no connection; nothing to run", flow.id)
            return None

        execution = self.store.create_execution(
            FlowExecution(
                flow_id=flow.id,
                contact_id=contact.id,
                status=ExecutionStatus.IN_PROGRESS,
                current_step=first_edge.target,
                variables={},
            )
        )
        LOGGER.info(
            "Started execution %s for flow %s (contact %s)",
            execution.id,
            flow.id,
            contact.id,
        )
        self._schedule_run(execution.id)
        return execution
