"""SQLite persistence for flows, contacts and flow executions."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import orjson

from flowline.schemas.enums import ExecutionStatus, TriggerType
from flowline.schemas.execution_models import Contact, FlowExecution
from flowline.schemas.graph_models import Flow
from flowline.timeutils import Clock, now_millis

_EXECUTION_COLUMNS = (
    "id",
    "flow_id",
    "contact_id",
    "status",
    "current_step",
    "variables_json",
    "running_since",
    "last_error",
    "created_at",
    "updated_at",
)
_UPDATABLE_FIELDS = frozenset({"status", "current_step", "variables", "last_error"})


class SQLiteFlowStore:
    """SQLite-backed store for the engine's flows, contacts and executions.

    Every method opens its own connection, so each call is one atomic
    statement (or one transaction) with last-write-wins semantics.
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
                CREATE TABLE IF NOT EXISTS flows (
                    id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    trigger_type TEXT NOT NULL,
                    is_active INTEGER NOT NULL,
                    payload_json TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS contacts (
                    id TEXT PRIMARY KEY,
                    payload_json TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS flow_executions (
                    id TEXT PRIMARY KEY,
                    flow_id TEXT NOT NULL,
                    contact_id TEXT NOT NULL,
                    status TEXT NOT NULL,
                    current_step TEXT,
                    variables_json TEXT NOT NULL,
                    running_since INTEGER,
                    last_error TEXT,
                    created_at INTEGER NOT NULL,
                    updated_at INTEGER NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_flows_trigger
                    ON flows (trigger_type, is_active);
                CREATE INDEX IF NOT EXISTS idx_flow_executions_status
                    ON flow_executions (status);
                """
            )

    # Flows

    def save_flow(self, flow: Flow) -> None:
        """Insert or replace a flow definition."""
        payload_json = orjson.dumps(flow.model_dump(mode="json", by_alias=True)).decode("utf-8")
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO flows (id, owner_id, trigger_type, is_active, payload_json)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    owner_id=excluded.owner_id,
                    trigger_type=excluded.trigger_type,
                    is_active=excluded.is_active,
                    payload_json=excluded.payload_json
                """,
                (
                    flow.id,
                    flow.owner_id,
                    flow.trigger_type.value,
                    int(flow.is_active),
                    payload_json,
                ),
            )

    def get_flow(self, flow_id: str) -> Flow | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT payload_json FROM flows WHERE id = ?",
                (flow_id,),
            ).fetchone()
        if row is None:
            return None
        return Flow.model_validate_json(row[0])

    def list_active_flows(self, trigger_type: TriggerType) -> list[Flow]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT payload_json FROM flows
                WHERE is_active = 1 AND trigger_type = ?
                ORDER BY rowid ASC
                """,
                (trigger_type.value,),
            ).fetchall()
        return [Flow.model_validate_json(row[0]) for row in rows]

    # Contacts

    def upsert_contact(self, contact: Contact) -> None:
        """Mirror a contact record; written by the surrounding application only."""
        payload_json = orjson.dumps(contact.model_dump(mode="json")).decode("utf-8")
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO contacts (id, payload_json) VALUES (?, ?)
                ON CONFLICT(id) DO UPDATE SET payload_json=excluded.payload_json
                """,
                (contact.id, payload_json),
            )

    def get_contact(self, contact_id: str) -> Contact | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT payload_json FROM contacts WHERE id = ?",
                (contact_id,),
            ).fetchone()
        if row is None:
            return None
        return Contact.model_validate_json(row[0])

    # Executions

    def create_execution(self, execution: FlowExecution) -> FlowExecution:
        now = self._clock()
        created = execution.model_copy(update={"created_at": now, "updated_at": now})
        with self._connect() as conn:
            conn.execute(
                f"""
                INSERT INTO flow_executions ({", ".join(_EXECUTION_COLUMNS)})
                VALUES ({", ".join("?" for _ in _EXECUTION_COLUMNS)})
                """,
                (
                    created.id,
                    created.flow_id,
                    created.contact_id,
                    created.status.value,
                    created.current_step,
                    _dump_variables(created.variables),
                    created.running_since,
                    created.last_error,
                    created.created_at,
                    created.updated_at,
                ),
            )
        return created

    def get_execution(self, execution_id: str) -> FlowExecution | None:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {', '.join(_EXECUTION_COLUMNS)} FROM flow_executions WHERE id = ?",
                (execution_id,),
            ).fetchone()
        if row is None:
            return None
        return _row_to_execution(row)

    def update_execution(
        self,
        execution_id: str,
        *,
        only_if_status: ExecutionStatus | None = None,
        **changes: Any,
    ) -> FlowExecution | None:
        """Update status/current_step/variables/last_error in one statement.

        With ``only_if_status`` the row is left alone unless it still has that
        status; the current row is returned either way.
        """
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unsupported execution fields: {sorted(unknown)}")
        assignments: list[str] = []
        params: list[Any] = []
        for field_name, value in changes.items():
            if field_name == "variables":
                assignments.append("variables_json = ?")
                params.append(_dump_variables(value))
            elif field_name == "status":
                assignments.append("status = ?")
                params.append(ExecutionStatus(value).value)
            else:
                assignments.append(f"{field_name} = ?")
                params.append(value)
        assignments.append("updated_at = ?")
        params.append(self._clock())
        params.append(execution_id)
        where = "id = ?"
        if only_if_status is not None:
            where += " AND status = ?"
            params.append(only_if_status.value)
        with self._connect() as conn:
            conn.execute(
                f"UPDATE flow_executions SET {', '.join(assignments)} WHERE {where}",
                params,
            )
        return self.get_execution(execution_id)

    def list_executions(
        self,
        *,
        status: ExecutionStatus | None = None,
        flow_id: str | None = None,
    ) -> list[FlowExecution]:
        clauses: list[str] = []
        params: list[Any] = []
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        if flow_id is not None:
            clauses.append("flow_id = ?")
            params.append(flow_id)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._connect() as conn:
            rows = conn.execute(
                f"""
                SELECT {', '.join(_EXECUTION_COLUMNS)} FROM flow_executions
                {where}
                ORDER BY created_at ASC, rowid ASC
                """,
                params,
            ).fetchall()
        return [_row_to_execution(row) for row in rows]

    def claim_execution(self, execution_id: str, *, now_ms: int, stale_before_ms: int) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                """
                UPDATE flow_executions
                SET running_since = ?
                WHERE id = ?
                  AND status = ?
                  AND (running_since IS NULL OR running_since < ?)
                """,
                (now_ms, execution_id, ExecutionStatus.IN_PROGRESS.value, stale_before_ms),
            )
        return cursor.rowcount == 1

    def renew_claim(self, execution_id: str, *, held_since: int, now_ms: int) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                """
                UPDATE flow_executions
                SET running_since = ?
                WHERE id = ? AND running_since = ?
                """,
                (now_ms, execution_id, held_since),
            )
        return cursor.rowcount == 1

    def release_execution(self, execution_id: str, *, held_since: int) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                UPDATE flow_executions
                SET running_since = NULL
                WHERE id = ? AND running_since = ?
                """,
                (execution_id, held_since),
            )

    def cancel_execution(self, execution_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                """
                UPDATE flow_executions
                SET status = ?, current_step = NULL, updated_at = ?
                WHERE id = ? AND status = ?
                """,
                (
                    ExecutionStatus.CANCELLED.value,
                    self._clock(),
                    execution_id,
                    ExecutionStatus.IN_PROGRESS.value,
                ),
            )
        return cursor.rowcount == 1


def _dump_variables(variables: dict[str, Any]) -> str:
    return orjson.dumps(variables).decode("utf-8")


def _row_to_execution(row: tuple[Any, ...]) -> FlowExecution:
    return FlowExecution(
        id=row[0],
        flow_id=row[1],
        contact_id=row[2],
        status=ExecutionStatus(row[3]),
        current_step=row[4],
        variables=orjson.loads(row[5]),
        running_since=row[6],
        last_error=row[7],
        created_at=row[8],
        updated_at=row[9],
    )
