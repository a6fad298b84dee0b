"""Trigger matcher: fan an external event out to the flows it starts."""

from __future__ import annotations

import logging

from flowline.engine.spawner import ExecutionSpawner
from flowline.schemas.enums import TriggerType
from flowline.schemas.execution_models import FlowExecution, TriggerEvent
from flowline.schemas.graph_models import Flow
from flowline.storage.base import FlowRepository

LOGGER = logging.getLogger(__name__)


def keyword_matches(flow: Flow, message_body: str) -> bool:
    """Case-insensitive substring test; a KEYWORD flow without a keyword matches anything."""
    if not flow.trigger_keyword:
        return True
    return flow.trigger_keyword.lower() in message_body.lower()


class TriggerMatcher:
    """Finds active flows for an event and spawns one execution per match."""

    def __init__(self, *, flows: FlowRepository, spawner: ExecutionSpawner) -> None:
        self.flows = flows
        self.spawner = spawner

    async def match(self, event: TriggerEvent) -> list[FlowExecution]:
        """Spawn executions for every matching flow; per-flow failures are logged and skipped."""
        LOGGER.info("Checking triggers for %s", event.trigger_type.value)
        candidates = self.flows.list_active_flows(event.trigger_type)
        spawned: list[FlowExecution] = []
        for flow in candidates:
            try:
                if event.trigger_type == TriggerType.KEYWORD and not keyword_matches(
                    flow, event.message_body
                ):
                    continue
                execution = await self.spawner.spawn(flow, event.contact)
            except Exception:  # noqa: BLE001
                LOGGER.exception(
                    "Flow %s could not be started for contact %s",
                    flow.id,
                    event.contact.id,
                )
                continue
            if execution is not None:
                spawned.append(execution)
        return spawned
