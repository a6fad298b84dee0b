"""Execution transition log tests."""

from __future__ import annotations

from pathlib import Path

from flowline.schemas.enums import NodeTransitionState
from flowline.storage.transition_store import ExecutionTransitionStore

NOW_MS = 1_700_000_000_000


def test_transitions_are_listed_in_insertion_order(tmp_path: Path) -> None:
    ticks = iter([NOW_MS, NOW_MS + 5, NOW_MS + 9])
    store = ExecutionTransitionStore(tmp_path / "engine.db", clock=lambda: next(ticks))
    store.record_transition(
        execution_id="ex-1",
        node_id="m1",
        from_state="pending",
        to_state=NodeTransitionState.RUNNING,
        reason="Executing message node",
    )
    store.record_transition(
        execution_id="ex-2",
        node_id="d1",
        from_state="pending",
        to_state=NodeTransitionState.RUNNING,
        reason="Executing delay node",
    )
    store.record_transition(
        execution_id="ex-1",
        node_id="m1",
        from_state="running",
        to_state=NodeTransitionState.COMPLETED,
        reason="Node completed",
    )

    transitions = store.list_transitions("ex-1")

    assert [(t.node_id, t.from_state, t.to_state) for t in transitions] == [
        ("m1", "pending", NodeTransitionState.RUNNING),
        ("m1", "running", NodeTransitionState.COMPLETED),
    ]
    assert [t.at_ms for t in transitions] == [NOW_MS, NOW_MS + 9]
    assert transitions[1].reason == "Node completed"
    assert store.list_transitions("missing") == []


def test_last_transition_is_the_most_recent_row(tmp_path: Path) -> None:
    store = ExecutionTransitionStore(tmp_path / "engine.db", clock=lambda: NOW_MS)
    assert store.last_transition("ex-1") is None

    store.record_transition(
        execution_id="ex-1",
        node_id="d1",
        from_state="pending",
        to_state=NodeTransitionState.RUNNING,
        reason="Executing delay node",
    )
    recorded = store.record_transition(
        execution_id="ex-1",
        node_id="d1",
        from_state="running",
        to_state=NodeTransitionState.PAUSED,
        reason="Paused until 1700000060000",
    )

    assert store.last_transition("ex-1") == recorded
