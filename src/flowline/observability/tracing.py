"""Langfuse tracing of execution runs with a no-op fallback."""

from __future__ import annotations

import hashlib
import logging
from typing import Any, Mapping, Protocol

from flowline.security.redaction import redact_mapping

LOGGER = logging.getLogger(__name__)


class TracerProtocol(Protocol):
    """Tracer contract used by the execution runner."""

    def start_execution(
        self,
        *,
        execution_id: str,
        metadata: dict[str, Any],
    ) -> None:
        """Open the trace for one runner pass over an execution."""

    def record_step(
        self,
        *,
        execution_id: str,
        node_id: str,
        metadata: dict[str, Any],
        output_payload: Any | None = None,
    ) -> None:
        """Record a node step; ``metadata["status"] == "running"`` opens a span."""

    def finish_execution(
        self,
        *,
        execution_id: str,
        metadata: dict[str, Any],
    ) -> None:
        """Close the trace for the current runner pass."""

    def flush(self) -> None:
        """Flush/close tracing resources."""


class NoOpTracer:
    """No-op tracer implementation."""

    def start_execution(self, *, execution_id: str, metadata: dict[str, Any]) -> None:
        del execution_id, metadata

    def record_step(
        self,
        *,
        execution_id: str,
        node_id: str,
        metadata: dict[str, Any],
        output_payload: Any | None = None,
    ) -> None:
        del execution_id, node_id, metadata, output_payload

    def finish_execution(self, *, execution_id: str, metadata: dict[str, Any]) -> None:
        del execution_id, metadata

    def flush(self) -> None:
        return


class LangfuseTracer:
    """Langfuse-backed tracer.

    An execution that pauses and is later resumed produces one root span per
    runner pass, all under the same trace id derived from the execution id.
    """

    def __init__(self, env: Mapping[str, str]) -> None:
        self._client: Any | None = None
        self._root_by_execution: dict[str, Any] = {}
        self._step_by_key: dict[tuple[str, str], Any] = {}
        public_key = env.get("LANGFUSE_PUBLIC_KEY")
        secret_key = env.get("LANGFUSE_SECRET_KEY")
        host = env.get("LANGFUSE_BASE_URL") or env.get("LANGFUSE_HOST")
        if not public_key or not secret_key:
            return

        try:
            from langfuse import Langfuse
        except ImportError:
            LOGGER.debug("langfuse package not installed; tracing disabled.")
            return

        kwargs: dict[str, Any] = {
            "public_key": public_key,
            "secret_key": secret_key,
        }
        if host:
            kwargs["host"] = host.rstrip("/")
        try:
            self._client = Langfuse(**kwargs)
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Failed to initialize Langfuse client: %s", exc)
            self._client = None

    @property
    def enabled(self) -> bool:
        """Return whether Langfuse tracing is active."""
        return self._client is not None

    def start_execution(self, *, execution_id: str, metadata: dict[str, Any]) -> None:
        if self._client is None:
            return
        try:
            previous = self._root_by_execution.pop(execution_id, None)
            if previous is not None:
                previous.end()
            self._root_by_execution[execution_id] = self._client.start_span(
                trace_context={"trace_id": _trace_id(execution_id)},
                name="flowline-execution",
                metadata=redact_mapping(metadata),
            )
        except Exception as exc:  # noqa: BLE001
            LOGGER.debug("Langfuse start_execution failed: %s", exc)

    def record_step(
        self,
        *,
        execution_id: str,
        node_id: str,
        metadata: dict[str, Any],
        output_payload: Any | None = None,
    ) -> None:
        if self._client is None:
            return
        trace_context = {"trace_id": _trace_id(execution_id)}
        root = self._root_by_execution.get(execution_id)
        root_id = getattr(root, "id", None)
        if isinstance(root_id, str):
            trace_context["parent_span_id"] = root_id
        step_key = (execution_id, node_id)
        redacted_metadata = redact_mapping(metadata)
        redacted_output = (
            redact_mapping(output_payload) if output_payload is not None else None
        )
        try:
            if str(metadata.get("status", "")).lower() == "running":
                self._step_by_key[step_key] = self._client.start_span(
                    trace_context=trace_context,
                    name=f"step:{node_id}",
                    metadata=redacted_metadata,
                )
                return
            step = self._step_by_key.pop(step_key, None)
            if step is None:
                with self._client.start_as_current_observation(
                    trace_context=trace_context,
                    name=f"step:{node_id}",
                    as_type="span",
                    output=redacted_output,
                    metadata=redacted_metadata,
                ):
                    pass
                return
            step.update(output=redacted_output, metadata=redacted_metadata)
            step.end()
        except Exception as exc:  # noqa: BLE001
            LOGGER.debug("Langfuse record_step failed: %s", exc)

    def finish_execution(self, *, execution_id: str, metadata: dict[str, Any]) -> None:
        if self._client is None:
            return
        try:
            root = self._root_by_execution.pop(execution_id, None)
            if root is not None:
                root.update(metadata=redact_mapping(metadata))
                root.end()
            for step_key, step in list(self._step_by_key.items()):
                if step_key[0] != execution_id:
                    continue
                step.end()
                del self._step_by_key[step_key]
        except Exception as exc:  # noqa: BLE001
            LOGGER.debug("Langfuse finish_execution failed: %s", exc)

    def flush(self) -> None:
        if self._client is None:
            return
        try:
            self._client.flush()
        except Exception as exc:  # noqa: BLE001
            LOGGER.debug("Langfuse flush failed: %s", exc)


def create_tracer(env: Mapping[str, str]) -> TracerProtocol:
    """Create Langfuse tracer if configured, else no-op tracer."""
    tracer = LangfuseTracer(env)
    if not tracer.enabled:
        return NoOpTracer()
    return tracer


def _trace_id(execution_id: str) -> str:
    """Derive deterministic 32-char trace IDs from execution IDs."""
    return hashlib.sha256(execution_id.encode("utf-8")).hexdigest()[:32]
