"""SQLite store tests: flows, contacts, executions and claims."""

from __future__ import annotations

from pathlib import Path

import pytest

from flowline.schemas.enums import ExecutionStatus, TriggerType
from flowline.schemas.execution_models import Contact, FlowExecution
from flowline.schemas.graph_models import Flow
from flowline.storage.sqlite_store import SQLiteFlowStore

NOW_MS = 1_700_000_000_000


def _store(tmp_path: Path) -> SQLiteFlowStore:
    return SQLiteFlowStore(tmp_path / "engine.db", clock=lambda: NOW_MS)


def _flow(flow_id: str, *, trigger_type: str = "NEW_CONTACT", active: bool = True) -> Flow:
    return Flow.model_validate(
        {
            "id": flow_id,
            "ownerId": "owner-1",
            "name": f"Flow {flow_id}",
            "triggerType": trigger_type,
            "isActive": active,
            "content": {
                "nodes": [
                    {"id": "t1", "type": "trigger", "position": {"x": 0, "y": 0}},
                    {"id": "m1", "type": "message", "data": {"message": "Hi {{name}}"}},
                ],
                "edges": [{"id": "e1", "source": "t1", "target": "m1"}],
            },
        }
    )


def _execution(store: SQLiteFlowStore) -> FlowExecution:
    return store.create_execution(
        FlowExecution(flow_id="f1", contact_id="c-1", current_step="m1")
    )


def test_flow_round_trip_and_active_listing(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.save_flow(_flow("f1"))
    store.save_flow(_flow("f2", active=False))
    store.save_flow(_flow("f3", trigger_type="KEYWORD"))
    store.save_flow(_flow("f4"))

    loaded = store.get_flow("f1")
    assert loaded is not None
    assert loaded.owner_id == "owner-1"
    assert loaded.content.outgoing_edges("t1")[0].target == "m1"
    assert [flow.id for flow in store.list_active_flows(TriggerType.NEW_CONTACT)] == ["f1", "f4"]
    assert [flow.id for flow in store.list_active_flows(TriggerType.KEYWORD)] == ["f3"]
    assert store.get_flow("missing") is None


def test_save_flow_replaces_existing_definition(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.save_flow(_flow("f1"))
    store.save_flow(_flow("f1", active=False))

    assert store.list_active_flows(TriggerType.NEW_CONTACT) == []


def test_contact_upsert_and_lookup(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.upsert_contact(Contact(id="c-1", name="Ana", phone="+15550001111"))
    store.upsert_contact(Contact(id="c-1", name="Ana Maria", phone="+15550001111"))

    contact = store.get_contact("c-1")
    assert contact is not None
    assert contact.name == "Ana Maria"
    assert store.get_contact("c-2") is None


def test_create_execution_sets_timestamps(tmp_path: Path) -> None:
    store = _store(tmp_path)
    created = _execution(store)

    loaded = store.get_execution(created.id)
    assert loaded == created
    assert loaded.status == ExecutionStatus.IN_PROGRESS
    assert loaded.created_at == NOW_MS
    assert loaded.updated_at == NOW_MS
    assert loaded.variables == {}


def test_update_execution_persists_variables_and_status(tmp_path: Path) -> None:
    store = _store(tmp_path)
    created = _execution(store)

    updated = store.update_execution(
        created.id,
        variables={"resume_at_d1": NOW_MS + 1000, "waiting_on_node": "d1"},
        current_step="d1",
    )

    assert updated is not None
    assert updated.current_step == "d1"
    assert updated.waiting_on_node == "d1"
    assert updated.variables["resume_at_d1"] == NOW_MS + 1000


def test_guarded_update_leaves_other_statuses_alone(tmp_path: Path) -> None:
    store = _store(tmp_path)
    created = _execution(store)
    store.update_execution(created.id, status=ExecutionStatus.CANCELLED)

    current = store.update_execution(
        created.id,
        only_if_status=ExecutionStatus.IN_PROGRESS,
        status=ExecutionStatus.COMPLETED,
    )

    assert current is not None
    assert current.status == ExecutionStatus.CANCELLED


def test_update_execution_rejects_unknown_fields(tmp_path: Path) -> None:
    store = _store(tmp_path)
    created = _execution(store)

    with pytest.raises(ValueError):
        store.update_execution(created.id, flow_id="other")


def test_list_executions_filters(tmp_path: Path) -> None:
    store = _store(tmp_path)
    first = _execution(store)
    second = _execution(store)
    store.update_execution(second.id, status=ExecutionStatus.FAILED, last_error="boom")

    assert [e.id for e in store.list_executions()] == [first.id, second.id]
    failed = store.list_executions(status=ExecutionStatus.FAILED)
    assert [e.id for e in failed] == [second.id]
    assert failed[0].last_error == "boom"
    assert store.list_executions(flow_id="other") == []


def test_claim_is_exclusive_until_released(tmp_path: Path) -> None:
    store = _store(tmp_path)
    created = _execution(store)
    stale_before = NOW_MS - 300_000

    assert store.claim_execution(created.id, now_ms=NOW_MS, stale_before_ms=stale_before)
    assert not store.claim_execution(created.id, now_ms=NOW_MS, stale_before_ms=stale_before)

    store.release_execution(created.id, held_since=NOW_MS)
    assert store.claim_execution(created.id, now_ms=NOW_MS, stale_before_ms=stale_before)


def test_stale_claim_can_be_taken_over(tmp_path: Path) -> None:
    store = _store(tmp_path)
    created = _execution(store)
    store.claim_execution(created.id, now_ms=NOW_MS - 400_000, stale_before_ms=0)

    assert store.claim_execution(
        created.id,
        now_ms=NOW_MS,
        stale_before_ms=NOW_MS - 300_000,
    )


def test_release_only_clears_the_callers_own_claim(tmp_path: Path) -> None:
    store = _store(tmp_path)
    created = _execution(store)
    first = NOW_MS - 400_000
    store.claim_execution(created.id, now_ms=first, stale_before_ms=0)
    store.claim_execution(created.id, now_ms=NOW_MS, stale_before_ms=NOW_MS - 300_000)

    store.release_execution(created.id, held_since=first)

    assert store.get_execution(created.id).running_since == NOW_MS
    assert not store.claim_execution(created.id, now_ms=NOW_MS, stale_before_ms=NOW_MS - 300_000)


def test_renew_claim_requires_the_current_stamp(tmp_path: Path) -> None:
    store = _store(tmp_path)
    created = _execution(store)
    store.claim_execution(created.id, now_ms=NOW_MS, stale_before_ms=0)

    assert not store.renew_claim(created.id, held_since=NOW_MS - 1, now_ms=NOW_MS + 5)
    assert store.renew_claim(created.id, held_since=NOW_MS, now_ms=NOW_MS + 5)
    assert store.get_execution(created.id).running_since == NOW_MS + 5


def test_terminal_executions_cannot_be_claimed(tmp_path: Path) -> None:
    store = _store(tmp_path)
    created = _execution(store)
    store.update_execution(created.id, status=ExecutionStatus.COMPLETED, current_step=None)

    assert not store.claim_execution(created.id, now_ms=NOW_MS, stale_before_ms=NOW_MS)


def test_cancel_execution_only_affects_in_progress(tmp_path: Path) -> None:
    store = _store(tmp_path)
    created = _execution(store)

    assert store.cancel_execution(created.id) is True
    cancelled = store.get_execution(created.id)
    assert cancelled is not None
    assert cancelled.status == ExecutionStatus.CANCELLED
    assert cancelled.current_step is None
    assert store.cancel_execution(created.id) is False
    assert store.cancel_execution("missing") is False
