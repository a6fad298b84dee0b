"""Trigger matcher tests with in-memory collaborators."""

from __future__ import annotations

import asyncio

from flowline.engine.matcher import TriggerMatcher, keyword_matches
from flowline.engine.spawner import ExecutionSpawner
from flowline.schemas.enums import TriggerType
from flowline.schemas.execution_models import Contact, FlowExecution, TriggerEvent
from flowline.schemas.graph_models import Flow


def _flow(flow_id: str, *, keyword: str | None = None, with_trigger: bool = True) -> Flow:
    nodes = [{"id": "m1", "type": "message", "data": {"message": "hi"}}]
    if with_trigger:
        nodes.insert(0, {"id": "t1", "type": "trigger"})
    return Flow.model_validate(
        {
            "id": flow_id,
            "triggerType": "KEYWORD",
            "triggerKeyword": keyword,
            "content": {"nodes": nodes, "edges": [{"source": "t1", "target": "m1"}]},
        }
    )


class _Flows:
    def __init__(self, flows: list[Flow]) -> None:
        self.flows = flows
        self.queried: list[TriggerType] = []

    def get_flow(self, flow_id: str) -> Flow | None:
        return next((flow for flow in self.flows if flow.id == flow_id), None)

    def list_active_flows(self, trigger_type: TriggerType) -> list[Flow]:
        self.queried.append(trigger_type)
        return [flow for flow in self.flows if flow.trigger_type == trigger_type]


class _Executions:
    def __init__(self) -> None:
        self.created: list[FlowExecution] = []

    def create_execution(self, execution: FlowExecution) -> FlowExecution:
        self.created.append(execution)
        return execution


def _event(body: str) -> TriggerEvent:
    return TriggerEvent(
        trigger_type="KEYWORD",
        contact=Contact(id="c-1", name="Ana"),
        message={"body": body},
    )


def test_keyword_matches_is_case_insensitive_substring() -> None:
    flow = _flow("f1", keyword="Pricing")
    assert keyword_matches(flow, "what's your pricing?")
    assert keyword_matches(flow, "PRICING")
    assert not keyword_matches(flow, "no match here")
    assert keyword_matches(_flow("f2"), "anything at all")


def test_matcher_spawns_matching_flows_and_isolates_failures() -> None:
    flows = _Flows(
        [
            _flow("broken", keyword="pricing", with_trigger=False),
            _flow("pricing", keyword="Pricing"),
            _flow("support", keyword="help"),
        ]
    )
    executions = _Executions()
    scheduled: list[str] = []
    matcher = TriggerMatcher(
        flows=flows,
        spawner=ExecutionSpawner(store=executions, schedule_run=scheduled.append),
    )

    spawned = asyncio.run(matcher.match(_event("Pricing please")))

    assert [execution.flow_id for execution in spawned] == ["pricing"]
    assert [execution.current_step for execution in spawned] == ["m1"]
    assert scheduled == [spawned[0].id]
    assert flows.queried == [TriggerType.KEYWORD]
    assert len(executions.created) == 1
