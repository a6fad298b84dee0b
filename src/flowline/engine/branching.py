"""Branch resolution: pick the next node from a node's outgoing edges."""

from __future__ import annotations

import logging

from flowline.errors import UnmatchedBranchError
from flowline.schemas.enums import UnmatchedBranchPolicy
from flowline.schemas.graph_models import Edge, Node

LOGGER = logging.getLogger(__name__)

# Condition nodes report yes/no; the editor's condition handles are true/false.
OUTCOME_ALIASES: dict[str, frozenset[str]] = {
    "yes": frozenset({"yes", "true"}),
    "true": frozenset({"yes", "true"}),
    "no": frozenset({"no", "false"}),
    "false": frozenset({"no", "false"}),
}


def resolve_next_node(
    node: Node,
    edges: list[Edge],
    outcome: str | None,
    *,
    policy: UnmatchedBranchPolicy = UnmatchedBranchPolicy.FIRST_EDGE,
) -> str | None:
    """Return the id of the node to visit after ``node``, or None when the path ends.

    With several outgoing edges, the edge whose ``source_handle`` or ``label``
    equals ``outcome`` wins regardless of its position; aliases are tried only
    when nothing matches exactly. An unmatched outcome falls back to the first
    outgoing edge unless ``policy`` is ``fail``.
    """
    outgoing = [edge for edge in edges if edge.source == node.id]
    if not outgoing:
        return None
    if len(outgoing) == 1:
        return outgoing[0].target
    if outcome is None:
        return outgoing[0].target

    exact = next((edge for edge in outgoing if _edge_tags(edge) & {outcome}), None)
    if exact is not None:
        return exact.target

    aliases = OUTCOME_ALIASES.get(outcome.strip().lower(), frozenset({outcome.strip().lower()}))
    aliased = next(
        (edge for edge in outgoing if {tag.strip().lower() for tag in _edge_tags(edge)} & aliases),
        None,
    )
    if aliased is not None:
        return aliased.target

    if policy == UnmatchedBranchPolicy.FAIL:
        raise UnmatchedBranchError(
            f"No outgoing edge of node {node.id} is tagged {outcome!r}"
        )
    LOGGER.warning(
        "No edge of node %s matches outcome %r; falling back to first edge -> %s",
        node.id,
        outcome,
        outgoing[0].target,
    )
    return outgoing[0].target


def _edge_tags(edge: Edge) -> set[str]:
    return {tag for tag in (edge.source_handle, edge.label) if tag}
