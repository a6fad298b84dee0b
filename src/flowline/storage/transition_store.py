"""Per-execution history of node state changes."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from flowline.schemas.enums import NodeTransitionState
from flowline.schemas.execution_models import NodeTransition
from flowline.timeutils import Clock, now_millis

_COLUMNS = "execution_id, node_id, from_state, to_state, at_ms, reason"


class ExecutionTransitionStore:
    """Append-only log the runner writes as each node starts, pauses or ends.

    Rows are stamped with the engine clock, so a paused execution's history
    lines up with its ``resume_at_<node>`` variables.
    """

    def __init__(self, db_path: Path, *, clock: Clock = now_millis) -> None:
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._clock = clock
        self._init_schema()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path)
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS node_transitions (
                    execution_id TEXT NOT NULL,
                    node_id TEXT NOT NULL,
                    from_state TEXT NOT NULL,
                    to_state TEXT NOT NULL,
                    at_ms INTEGER NOT NULL,
                    reason TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_node_transitions_execution
                    ON node_transitions (execution_id);
                """
            )

    def record_transition(
        self,
        *,
        execution_id: str,
        node_id: str,
        from_state: str,
        to_state: NodeTransitionState,
        reason: str,
    ) -> NodeTransition:
        transition = NodeTransition(
            execution_id=execution_id,
            node_id=node_id,
            from_state=from_state,
            to_state=to_state,
            at_ms=self._clock(),
            reason=reason,
        )
        with self._connect() as conn:
            conn.execute(
                f"INSERT INTO node_transitions ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
                (
                    transition.execution_id,
                    transition.node_id,
                    transition.from_state,
                    transition.to_state.value,
                    transition.at_ms,
                    transition.reason,
                ),
            )
        return transition

    def list_transitions(self, execution_id: str) -> list[NodeTransition]:
        """Return an execution's transitions, oldest first."""
        with self._connect() as conn:
            rows = conn.execute(
                f"""
                SELECT {_COLUMNS} FROM node_transitions
                WHERE execution_id = ?
                ORDER BY rowid ASC
                """,
                (execution_id,),
            ).fetchall()
        return [_row_to_transition(row) for row in rows]

    def last_transition(self, execution_id: str) -> NodeTransition | None:
        with self._connect() as conn:
            row = conn.execute(
                f"""
                SELECT {_COLUMNS} FROM node_transitions
                WHERE execution_id = ?
                ORDER BY rowid DESC
                LIMIT 1
                """,
                (execution_id,),
            ).fetchone()
        return _row_to_transition(row) if row else None


def _row_to_transition(row: tuple[object, ...]) -> NodeTransition:
    return NodeTransition(
        execution_id=row[0],
        node_id=row[1],
        from_state=row[2],
        to_state=NodeTransitionState(row[3]),
        at_ms=row[4],
        reason=row[5],
    )
