"""Schema contract tests for editor-exported flows and engine payloads."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from flowline.schemas.enums import ExecutionStatus, NodeType, TriggerType
from flowline.schemas.execution_models import FlowExecution, StepResult, TriggerEvent
from flowline.schemas.graph_models import Flow


def _editor_payload() -> dict[str, object]:
    return {
        "id": "flow-1",
        "ownerId": "owner-1",
        "name": "Welcome",
        "triggerType": "new_contact",
        "isActive": True,
        "content": {
            "nodes": [
                {
                    "id": "t1",
                    "type": "trigger",
                    "position": {"x": 10, "y": 20},
                    "data": {"label": "Start"},
                },
                {"id": "m1", "type": "message", "data": {"message": "Hi {{name}}"}},
                {"id": "q1", "type": "collectInput", "data": None},
            ],
            "edges": [
                {"id": "e1", "source": "t1", "target": "m1", "animated": True},
                {"id": "e2", "source": "m1", "target": "q1", "sourceHandle": None},
            ],
        },
    }


def test_editor_flow_payload_is_accepted() -> None:
    """Editor-only keys are ignored and legacy trigger labels normalised."""
    flow = Flow.model_validate(_editor_payload())

    assert flow.trigger_type == TriggerType.NEW_CONTACT
    assert flow.content.trigger_node() is not None
    assert flow.content.get_node("q1").type == NodeType.COLLECT_INPUT
    assert flow.content.get_node("q1").data == {}
    assert [edge.target for edge in flow.content.outgoing_edges("t1")] == ["m1"]


def test_flow_round_trips_through_aliases() -> None:
    flow = Flow.model_validate(_editor_payload())
    dumped = flow.model_dump(mode="json", by_alias=True)

    assert dumped["triggerType"] == "NEW_CONTACT"
    assert Flow.model_validate(dumped) == flow


def test_duplicate_node_ids_are_rejected() -> None:
    payload = _editor_payload()
    payload["content"]["nodes"].append({"id": "m1", "type": "delay"})  # type: ignore[index]
    with pytest.raises(ValidationError):
        Flow.model_validate(payload)


def test_second_trigger_node_is_rejected() -> None:
    payload = _editor_payload()
    payload["content"]["nodes"].append({"id": "t2", "type": "trigger"})  # type: ignore[index]
    with pytest.raises(ValidationError, match="more than one trigger"):
        Flow.model_validate(payload)


def test_unknown_node_type_is_rejected() -> None:
    payload = _editor_payload()
    payload["content"]["nodes"].append({"id": "x1", "type": "teleport"})  # type: ignore[index]
    with pytest.raises(ValidationError):
        Flow.model_validate(payload)


def test_unknown_trigger_type_is_rejected() -> None:
    payload = _editor_payload()
    payload["triggerType"] = "ON_BIRTHDAY"
    with pytest.raises(ValidationError):
        Flow.model_validate(payload)


def test_trigger_event_payload() -> None:
    event = TriggerEvent.model_validate(
        {
            "triggerType": "KEYWORD",
            "contact": {"id": "c-1", "name": "Ana", "phone": "+15550001111"},
            "message": {"body": "What's your PRICING?"},
        }
    )
    assert event.trigger_type == TriggerType.KEYWORD
    assert event.message_body == "What's your PRICING?"

    silent = TriggerEvent.model_validate(
        {"triggerType": "NEW_CONTACT", "contact": {"id": "c-2", "name": None}}
    )
    assert silent.message_body == ""
    assert silent.contact.name == ""


def test_execution_defaults() -> None:
    execution = FlowExecution(flow_id="flow-1", contact_id="c-1", current_step="m1")

    assert execution.id
    assert execution.status == ExecutionStatus.IN_PROGRESS
    assert execution.status.is_terminal is False
    assert ExecutionStatus.CANCELLED.is_terminal is True
    assert execution.waiting_on_node is None


def test_step_result_rejects_unknown_fields() -> None:
    assert StepResult.proceed("yes").outcome == "yes"
    with pytest.raises(ValidationError):
        StepResult.model_validate({"action": "CONTINUE", "next": "m2"})
