"""Branch resolution tests."""

from __future__ import annotations

import pytest

from flowline.engine.branching import resolve_next_node
from flowline.errors import UnmatchedBranchError
from flowline.schemas.enums import NodeType, UnmatchedBranchPolicy
from flowline.schemas.graph_models import Edge, Node


def _condition() -> Node:
    return Node(id="c1", type=NodeType.CONDITION, data={"field": "contact.name"})


def test_no_outgoing_edges_ends_the_path() -> None:
    """A node without outgoing edges resolves to None."""
    edges = [Edge(source="other", target="x")]
    assert resolve_next_node(_condition(), edges, "yes") is None


def test_single_edge_is_followed_whatever_the_outcome() -> None:
    edges = [Edge(source="c1", target="m1", sourceHandle="no")]
    assert resolve_next_node(_condition(), edges, "yes") == "m1"


def test_tagged_edge_wins_regardless_of_order() -> None:
    """The 'yes' edge is chosen even when it is not the first edge."""
    edges = [
        Edge(source="c1", target="m_no", sourceHandle="no"),
        Edge(source="c1", target="m_yes", sourceHandle="yes"),
    ]
    assert resolve_next_node(_condition(), edges, "yes") == "m_yes"
    assert resolve_next_node(_condition(), edges, "no") == "m_no"


def test_label_is_matched_when_handle_is_absent() -> None:
    edges = [
        Edge(source="c1", target="a", label="gold"),
        Edge(source="c1", target="b", label="silver"),
    ]
    assert resolve_next_node(_condition(), edges, "silver") == "b"


def test_editor_true_false_handles_alias_yes_no() -> None:
    """Condition outcomes route to the editor's true/false handles."""
    edges = [
        Edge(source="c1", target="m_false", sourceHandle="false"),
        Edge(source="c1", target="m_true", sourceHandle="true"),
    ]
    assert resolve_next_node(_condition(), edges, "yes") == "m_true"
    assert resolve_next_node(_condition(), edges, "no") == "m_false"


def test_missing_outcome_takes_first_edge() -> None:
    edges = [
        Edge(source="c1", target="first"),
        Edge(source="c1", target="second"),
    ]
    assert resolve_next_node(_condition(), edges, None) == "first"


def test_unmatched_outcome_falls_back_to_first_edge() -> None:
    edges = [
        Edge(source="c1", target="first", sourceHandle="maybe"),
        Edge(source="c1", target="second", sourceHandle="yes"),
    ]
    assert resolve_next_node(_condition(), edges, "no") == "first"


def test_unmatched_outcome_raises_with_fail_policy() -> None:
    edges = [
        Edge(source="c1", target="first", sourceHandle="maybe"),
        Edge(source="c1", target="second", sourceHandle="yes"),
    ]
    with pytest.raises(UnmatchedBranchError):
        resolve_next_node(
            _condition(),
            edges,
            "no",
            policy=UnmatchedBranchPolicy.FAIL,
        )
