"""Observability exports."""

from flowline.observability.tracing import (
    LangfuseTracer,
    NoOpTracer,
    TracerProtocol,
    create_tracer,
)

__all__ = [
    "LangfuseTracer",
    "NoOpTracer",
    "TracerProtocol",
    "create_tracer",
]
