"""Engine error hierarchy."""

from __future__ import annotations


class FlowlineError(Exception):
    """Base class for engine errors."""


class NoTriggerNodeError(FlowlineError):
    """Raised when a flow has no trigger node to anchor an execution."""

    def __init__(self, flow_id: str) -> None:
        super().__init__(f"Flow {flow_id} has no trigger node")
        self.flow_id = flow_id


class FlowNotFoundError(FlowlineError):
    """Raised when an execution references a flow that no longer exists."""


class ContactNotFoundError(FlowlineError):
    """Raised when an execution references a contact the store cannot supply."""


class NodeConfigurationError(FlowlineError):
    """Raised when a node's data cannot be interpreted."""


class UnmatchedBranchError(FlowlineError):
    """Raised when strict branching finds no edge for an outcome tag."""


class GatewayError(FlowlineError):
    """Raised when the outbound messaging gateway rejects a send."""


class GatewayUnavailableError(GatewayError):
    """Raised for throttling or provider-side failures that may succeed on retry."""
