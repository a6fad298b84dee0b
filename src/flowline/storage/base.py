"""Persistence contracts the engine depends on."""

from __future__ import annotations

from typing import Any, Protocol

from flowline.schemas.enums import ExecutionStatus, TriggerType
from flowline.schemas.execution_models import Contact, FlowExecution
from flowline.schemas.graph_models import Flow


class ContactStore(Protocol):
    """Read-only contact lookup."""

    def get_contact(self, contact_id: str) -> Contact | None:
        """Return a contact by id, or None."""


class FlowRepository(Protocol):
    """Read access to stored flow definitions."""

    def get_flow(self, flow_id: str) -> Flow | None:
        """Return a flow by id, or None."""

    def list_active_flows(self, trigger_type: TriggerType) -> list[Flow]:
        """Return active flows for a trigger type in creation order."""


class ExecutionRepository(Protocol):
    """Keyed CRUD plus single-row claim for flow executions."""

    def create_execution(self, execution: FlowExecution) -> FlowExecution:
        """Insert a new execution row."""

    def get_execution(self, execution_id: str) -> FlowExecution | None:
        """Return an execution by id, or None."""

    def update_execution(
        self,
        execution_id: str,
        *,
        only_if_status: ExecutionStatus | None = None,
        **changes: Any,
    ) -> FlowExecution | None:
        """Apply column changes to one execution and return the updated row."""

    def list_executions(
        self,
        *,
        status: ExecutionStatus | None = None,
        flow_id: str | None = None,
    ) -> list[FlowExecution]:
        """Return executions, optionally filtered."""

    def claim_execution(self, execution_id: str, *, now_ms: int, stale_before_ms: int) -> bool:
        """Atomically mark an in-progress execution as driven; False if already claimed."""

    def renew_claim(self, execution_id: str, *, held_since: int, now_ms: int) -> bool:
        """Refresh a claim stamped at ``held_since``; False once another driver owns it."""

    def release_execution(self, execution_id: str, *, held_since: int) -> None:
        """Clear the driver claim if it is still the one stamped at ``held_since``."""

    def cancel_execution(self, execution_id: str) -> bool:
        """Move an in-progress execution to CANCELLED; False if already terminal."""


class EngineStore(ContactStore, FlowRepository, ExecutionRepository, Protocol):
    """Everything the engine reads and writes."""
