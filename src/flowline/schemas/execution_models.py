"""Execution-side contracts: contacts, trigger events, executions, step results."""

from __future__ import annotations

from typing import Any
from uuid import uuid4

from pydantic import Field, field_validator

from flowline.schemas.base import StrictSchemaModel, WireSchemaModel
from flowline.schemas.enums import (
    ExecutionStatus,
    NodeTransitionState,
    StepAction,
    TriggerType,
    normalize_trigger_type,
)


class Contact(WireSchemaModel):
    """Contact record as read from the contact store."""

    id: str = Field(min_length=1)
    name: str = ""
    phone: str = ""
    tags: list[str] = Field(default_factory=list)
    attributes: dict[str, Any] = Field(default_factory=dict)

    @field_validator("name", "phone", mode="before")
    @classmethod
    def default_blank(cls, value: Any) -> Any:
        return "" if value is None else value


class InboundMessage(WireSchemaModel):
    """Inbound message carried by KEYWORD events."""

    body: str = ""

    @field_validator("body", mode="before")
    @classmethod
    def default_body(cls, value: Any) -> Any:
        return "" if value is None else value


class TriggerEvent(WireSchemaModel):
    """External event consumed by the trigger matcher."""

    trigger_type: TriggerType = Field(alias="triggerType")
    contact: Contact
    message: InboundMessage | None = None
    payload: dict[str, Any] = Field(default_factory=dict)

    @field_validator("trigger_type", mode="before")
    @classmethod
    def normalize_trigger(cls, value: str | TriggerType) -> TriggerType:
        return normalize_trigger_type(value)

    @property
    def message_body(self) -> str:
        return self.message.body if self.message is not None else ""


class FlowExecution(WireSchemaModel):
    """One contact's run through one flow."""

    id: str = Field(default_factory=lambda: str(uuid4()), min_length=1)
    flow_id: str = Field(min_length=1, alias="flowId")
    contact_id: str = Field(min_length=1, alias="contactId")
    status: ExecutionStatus = ExecutionStatus.IN_PROGRESS
    current_step: str | None = Field(default=None, alias="currentStep")
    variables: dict[str, Any] = Field(default_factory=dict)
    running_since: int | None = Field(default=None, alias="runningSince")
    last_error: str | None = Field(default=None, alias="lastError")
    created_at: int = Field(default=0, alias="createdAt")
    updated_at: int = Field(default=0, alias="updatedAt")

    @property
    def waiting_on_node(self) -> str | None:
        waiting = self.variables.get("waiting_on_node")
        return str(waiting) if waiting else None


class StepResult(StrictSchemaModel):
    """Outcome reported by the node interpreter for one node."""

    action: StepAction
    outcome: str | None = None
    variables: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def proceed(cls, outcome: str | None = None) -> "StepResult":
        return cls(action=StepAction.CONTINUE, outcome=outcome)

    @classmethod
    def pause(cls, variables: dict[str, Any]) -> "StepResult":
        return cls(action=StepAction.PAUSE, variables=variables)


class NodeTransition(StrictSchemaModel):
    """One state change of one node within an execution."""

    execution_id: str
    node_id: str
    from_state: str
    to_state: NodeTransitionState
    at_ms: int
    reason: str
