"""Schema contract exports."""

from flowline.schemas.enums import (
    DelayUnit,
    ExecutionStatus,
    GatewayProvider,
    NodeTransitionState,
    NodeType,
    StepAction,
    TriggerType,
    UnmatchedBranchPolicy,
)
from flowline.schemas.execution_models import (
    Contact,
    FlowExecution,
    InboundMessage,
    StepResult,
    TriggerEvent,
)
from flowline.schemas.graph_models import Edge, Flow, FlowGraph, Node

__all__ = [
    "Contact",
    "DelayUnit",
    "Edge",
    "ExecutionStatus",
    "Flow",
    "FlowExecution",
    "FlowGraph",
    "GatewayProvider",
    "InboundMessage",
    "Node",
    "NodeTransitionState",
    "NodeType",
    "StepAction",
    "StepResult",
    "TriggerEvent",
    "TriggerType",
    "UnmatchedBranchPolicy",
]
