"""CLI for Flowline."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from flowline.config import load_app_config
from flowline.config.models import AppConfig
from flowline.constants import PACKAGE_VERSION
from flowline.engine import FlowEngine
from flowline.schemas.execution_models import Contact, FlowExecution, InboundMessage, TriggerEvent
from flowline.schemas.graph_models import Flow
from flowline.security.redaction import redact_text
from flowline.storage.sqlite_store import SQLiteFlowStore

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Flowline workflow automation execution engine.",
)
console = Console()


@app.command()
def version() -> None:
    """Print the Flowline version."""
    typer.echo(PACKAGE_VERSION)


@app.command("validate-config")
def validate_config(
    config: Path | None = typer.Option(
        None, "--config", help="Path to settings.yaml override."
    ),
) -> None:
    """Validate configuration and print the resolved settings."""
    try:
        config_model = load_app_config(config)
    except Exception as exc:  # noqa: BLE001
        console.print(f"[red]Configuration validation failed:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    table = Table(title="Flowline Settings")
    table.add_column("Setting")
    table.add_column("Value")
    table.add_row("database.path", config_model.database.path)
    table.add_row("engine.claim_ttl_seconds", str(config_model.engine.claim_ttl_seconds))
    table.add_row("engine.unmatched_branch", config_model.engine.unmatched_branch.value)
    table.add_row("scheduler.interval_seconds", str(config_model.scheduler.interval_seconds))
    table.add_row("gateway.provider", config_model.gateway.provider.value)
    table.add_row("gateway.api_url", config_model.gateway.api_url)
    table.add_row("gateway.phone_number_id", config_model.gateway.phone_number_id or "-")
    table.add_row("retries.max_attempts", str(config_model.retries.max_attempts))
    console.print(table)


@app.command("healthcheck")
def healthcheck(
    config: Path | None = typer.Option(None, "--config", help="Path to settings.yaml override."),
    db_path: Path | None = typer.Option(None, "--db-path", help="SQLite path for engine state."),
    quiet: bool = typer.Option(False, "--quiet", help="Suppress success output."),
) -> None:
    """Validate runtime readiness for deployment health probes."""
    try:
        cfg = _load_config(config, db_path=db_path)
        SQLiteFlowStore(Path(cfg.database.path))
        if not quiet:
            console.print(
                f"[green]OK[/green] gateway={cfg.gateway.provider.value} db={cfg.database.path}"
            )
    except Exception as exc:  # noqa: BLE001
        console.print(f"[red]Healthcheck failed:[/red] {redact_text(str(exc))}")
        raise typer.Exit(code=1) from exc


@app.command("import-flow")
def import_flow(
    file: Path = typer.Option(..., "--file", help="Flow definition JSON file."),
    config: Path | None = typer.Option(None, "--config", help="Path to settings.yaml override."),
    db_path: Path | None = typer.Option(None, "--db-path", help="SQLite path for engine state."),
) -> None:
    """Store or replace a flow definition exported by the editor."""
    try:
        cfg = _load_config(config, db_path=db_path)
        flow = Flow.model_validate_json(file.read_text(encoding="utf-8"))
        SQLiteFlowStore(Path(cfg.database.path)).save_flow(flow)
    except Exception as exc:  # noqa: BLE001
        console.print(f"[red]Import failed:[/red] {redact_text(str(exc))}")
        raise typer.Exit(code=1) from exc
    state = "active" if flow.is_active else "inactive"
    console.print(
        f"[green]Imported[/green] flow {flow.id} ({flow.trigger_type.value}, {state})"
    )


@app.command("trigger")
def trigger(
    trigger_type: str = typer.Option(
        ..., "--trigger-type", help="Trigger type, e.g. NEW_CONTACT or KEYWORD."
    ),
    contact_id: str = typer.Option(..., "--contact-id", help="Contact identifier."),
    contact_name: str | None = typer.Option(
        None, "--contact-name", help="Record or refresh the contact's name."
    ),
    contact_phone: str | None = typer.Option(
        None, "--contact-phone", help="Record or refresh the contact's phone."
    ),
    message: str | None = typer.Option(None, "--message", help="Inbound message body."),
    gateway: str | None = typer.Option(
        None, "--gateway", help="Gateway provider override: whatsapp or mock."
    ),
    config: Path | None = typer.Option(None, "--config", help="Path to settings.yaml override."),
    db_path: Path | None = typer.Option(None, "--db-path", help="SQLite path for engine state."),
) -> None:
    """Fire a trigger event and run every execution it spawns."""
    try:
        cfg = _load_config(config, db_path=db_path, gateway_provider=gateway)
        store = SQLiteFlowStore(Path(cfg.database.path))
        contact = _resolve_contact(
            store,
            contact_id=contact_id,
            name=contact_name,
            phone=contact_phone,
        )
        event = TriggerEvent(
            trigger_type=trigger_type,
            contact=contact,
            message=InboundMessage(body=message) if message is not None else None,
        )
        engine = FlowEngine.from_config(cfg)
        spawned = asyncio.run(_fire(engine, event))
    except typer.Exit:
        raise
    except Exception as exc:  # noqa: BLE001
        console.print(f"[red]Trigger failed:[/red] {redact_text(str(exc))}")
        raise typer.Exit(code=1) from exc

    if not spawned:
        console.print("[yellow]No matching active flows.[/yellow]")
        return
    _render_executions("Spawned Executions", spawned)


@app.command("tick")
def tick(
    config: Path | None = typer.Option(None, "--config", help="Path to settings.yaml override."),
    db_path: Path | None = typer.Option(None, "--db-path", help="SQLite path for engine state."),
) -> None:
    """Run one resume sweep over waiting executions."""
    try:
        engine = FlowEngine.from_config(_load_config(config, db_path=db_path))
        resumed = asyncio.run(_tick(engine))
    except Exception as exc:  # noqa: BLE001
        console.print(f"[red]Tick failed:[/red] {redact_text(str(exc))}")
        raise typer.Exit(code=1) from exc
    console.print(f"Resumed {resumed} execution(s).")


@app.command("worker")
def worker(
    interval: float | None = typer.Option(
        None, "--interval", help="Seconds between resume sweeps."
    ),
    config: Path | None = typer.Option(None, "--config", help="Path to settings.yaml override."),
    db_path: Path | None = typer.Option(None, "--db-path", help="SQLite path for engine state."),
) -> None:
    """Run the resume scheduler until interrupted."""
    try:
        cfg = _load_config(config, db_path=db_path, interval_seconds=interval)
        engine = FlowEngine.from_config(cfg)
    except Exception as exc:  # noqa: BLE001
        console.print(f"[red]Worker failed to start:[/red] {redact_text(str(exc))}")
        raise typer.Exit(code=1) from exc

    console.print(
        f"[green]Worker started[/green] interval={cfg.scheduler.interval_seconds}s "
        f"db={cfg.database.path}"
    )
    try:
        asyncio.run(_work(engine, cfg.scheduler.interval_seconds))
    except KeyboardInterrupt:
        console.print("Worker stopped.")


@app.command("cancel")
def cancel(
    execution_id: str = typer.Option(..., "--execution-id", help="Execution to cancel."),
    config: Path | None = typer.Option(None, "--config", help="Path to settings.yaml override."),
    db_path: Path | None = typer.Option(None, "--db-path", help="SQLite path for engine state."),
) -> None:
    """Cancel an in-progress execution."""
    cfg = _load_config(config, db_path=db_path)
    store = SQLiteFlowStore(Path(cfg.database.path))
    if not store.cancel_execution(execution_id):
        console.print(f"[red]Execution {execution_id} is not in progress.[/red]")
        raise typer.Exit(code=1)
    console.print(f"[green]Cancelled[/green] execution {execution_id}")


@app.command("inspect")
def inspect(
    execution_id: str = typer.Option(..., "--execution-id", help="Execution to inspect."),
    config: Path | None = typer.Option(None, "--config", help="Path to settings.yaml override."),
    db_path: Path | None = typer.Option(None, "--db-path", help="SQLite path for engine state."),
) -> None:
    """Show an execution and its node transition history."""
    cfg = _load_config(config, db_path=db_path)
    engine = FlowEngine.from_config(cfg)
    execution = engine.store.get_execution(execution_id)
    if execution is None:
        console.print(f"[red]Execution {execution_id} not found.[/red]")
        raise typer.Exit(code=1)

    console.print(
        Panel.fit(
            "\n".join(
                [
                    f"flow: [bold]{execution.flow_id}[/bold]",
                    f"contact: [bold]{execution.contact_id}[/bold]",
                    f"status: [bold]{execution.status.value}[/bold]",
                    f"current step: {execution.current_step or '-'}",
                    f"waiting on: {execution.waiting_on_node or '-'}",
                    f"last error: {execution.last_error or '-'}",
                ]
            ),
            title=f"Execution {execution.id}",
        )
    )
    table = Table(title="Transitions")
    table.add_column("Node")
    table.add_column("From")
    table.add_column("To")
    table.add_column("At")
    table.add_column("Reason")
    for transition in engine.transition_store.list_transitions(execution_id):
        at = datetime.fromtimestamp(transition.at_ms / 1000, UTC).isoformat(timespec="seconds")
        table.add_row(
            transition.node_id,
            transition.from_state,
            transition.to_state.value,
            at,
            transition.reason,
        )
    console.print(table)


@app.command("failures")
def failures(
    flow_id: str | None = typer.Option(None, "--flow-id", help="Only this flow's executions."),
    config: Path | None = typer.Option(None, "--config", help="Path to settings.yaml override."),
    db_path: Path | None = typer.Option(None, "--db-path", help="SQLite path for engine state."),
) -> None:
    """List executions that ended FAILED."""
    cfg = _load_config(config, db_path=db_path)
    engine = FlowEngine.from_config(cfg)
    failed = [
        execution
        for execution in engine.failed_executions()
        if flow_id is None or execution.flow_id == flow_id
    ]
    if not failed:
        console.print("[green]No failed executions.[/green]")
        return
    table = Table(title="Failed Executions")
    table.add_column("Execution")
    table.add_column("Flow")
    table.add_column("Contact")
    table.add_column("Error")
    for execution in failed:
        table.add_row(
            execution.id,
            execution.flow_id,
            execution.contact_id,
            execution.last_error or "-",
        )
    console.print(table)


def _load_config(
    config: Path | None,
    *,
    db_path: Path | None = None,
    interval_seconds: float | None = None,
    gateway_provider: str | None = None,
) -> AppConfig:
    overrides: dict[str, Any] = {
        "db_path": db_path,
        "interval_seconds": interval_seconds,
        "gateway_provider": gateway_provider,
    }
    return load_app_config(config, cli_overrides=overrides)


def _resolve_contact(
    store: SQLiteFlowStore,
    *,
    contact_id: str,
    name: str | None,
    phone: str | None,
) -> Contact:
    existing = store.get_contact(contact_id)
    if name is None and phone is None:
        if existing is None:
            raise typer.BadParameter(
                f"Unknown contact {contact_id}; pass --contact-name/--contact-phone to record it."
            )
        return existing
    contact = Contact(
        id=contact_id,
        name=name if name is not None else (existing.name if existing else ""),
        phone=phone if phone is not None else (existing.phone if existing else ""),
        tags=existing.tags if existing else [],
        attributes=existing.attributes if existing else {},
    )
    store.upsert_contact(contact)
    return contact


async def _fire(engine: FlowEngine, event: TriggerEvent) -> list[FlowExecution]:
    spawned = await engine.handle_event(event)
    await engine.aclose()
    refreshed: list[FlowExecution] = []
    for execution in spawned:
        current = engine.store.get_execution(execution.id)
        refreshed.append(current or execution)
    return refreshed


async def _tick(engine: FlowEngine) -> int:
    resumed = await engine.tick()
    await engine.aclose()
    return resumed


async def _work(engine: FlowEngine, interval_seconds: float) -> None:
    try:
        await engine.scheduler.run_forever(interval_seconds=interval_seconds)
    finally:
        await engine.aclose()


def _render_executions(title: str, executions: list[FlowExecution]) -> None:
    table = Table(title=title)
    table.add_column("Execution")
    table.add_column("Flow")
    table.add_column("Status")
    table.add_column("Current Step")
    for execution in executions:
        table.add_row(
            execution.id,
            execution.flow_id,
            execution.status.value,
            execution.current_step or "-",
        )
    console.print(table)
