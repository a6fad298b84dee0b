"""Flow graph contracts: flows, nodes and edges as stored by the editor."""

from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator, model_validator

from flowline.schemas.base import WireSchemaModel
from flowline.schemas.enums import NodeType, TriggerType, normalize_trigger_type


class Node(WireSchemaModel):
    """One step in a flow graph."""

    id: str = Field(min_length=1)
    type: NodeType
    data: dict[str, Any] = Field(default_factory=dict)

    @field_validator("data", mode="before")
    @classmethod
    def default_data(cls, value: Any) -> Any:
        return {} if value is None else value


class Edge(WireSchemaModel):
    """Directed connection between two nodes, optionally branch-tagged."""

    id: str | None = None
    source: str = Field(min_length=1)
    target: str = Field(min_length=1)
    source_handle: str | None = Field(default=None, alias="sourceHandle")
    label: str | None = None

    @field_validator("label", mode="before")
    @classmethod
    def coerce_label(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)


class FlowGraph(WireSchemaModel):
    """Nodes and edges of a flow, in the order the editor saved them."""

    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_unique_node_ids(self) -> "FlowGraph":
        seen: set[str] = set()
        for node in self.nodes:
            if node.id in seen:
                raise ValueError(f"Duplicate node id in flow graph: {node.id}")
            seen.add(node.id)
        triggers = [node.id for node in self.nodes if node.type == NodeType.TRIGGER]
        if len(triggers) > 1:
            raise ValueError(f"Flow graph has more than one trigger node: {', '.join(triggers)}")
        return self

    def get_node(self, node_id: str) -> Node | None:
        return next((node for node in self.nodes if node.id == node_id), None)

    def trigger_node(self) -> Node | None:
        return next((node for node in self.nodes if node.type == NodeType.TRIGGER), None)

    def outgoing_edges(self, node_id: str) -> list[Edge]:
        return [edge for edge in self.edges if edge.source == node_id]


class Flow(WireSchemaModel):
    """A stored automation definition."""

    id: str = Field(min_length=1)
    owner_id: str = Field(default="", alias="ownerId")
    name: str = ""
    description: str | None = None
    trigger_type: TriggerType = Field(alias="triggerType")
    trigger_keyword: str | None = Field(default=None, alias="triggerKeyword")
    content: FlowGraph = Field(default_factory=FlowGraph)
    is_active: bool = Field(default=True, alias="isActive")

    @field_validator("trigger_type", mode="before")
    @classmethod
    def normalize_trigger(cls, value: str | TriggerType) -> TriggerType:
        return normalize_trigger_type(value)

    @field_validator("content", mode="before")
    @classmethod
    def default_content(cls, value: Any) -> Any:
        return {} if value is None else value
