"""Per-task correlation fields carried into every log record."""

from __future__ import annotations

from contextvars import ContextVar
from uuid import uuid4


trace_context: ContextVar[dict | None] = ContextVar("trace_context", default=None)


def generate_trace_id() -> str:
    return uuid4().hex


def generate_span_id() -> str:
    return uuid4().hex[:16]


def _merge(**fields: object) -> None:
    trace_context.set({**(trace_context.get() or {}), **fields})


def get_trace_context() -> dict:
    """Return the active correlation fields, starting a fresh trace if none is bound."""
    current = trace_context.get()
    if not current or not current.get("trace_id"):
        current = {"trace_id": generate_trace_id(), "span_id": generate_span_id()}
        trace_context.set(current)
    return current


def set_trace_context(trace_id: str, span_id: str, **extra: object) -> None:
    """Replace the correlation fields for the current task."""
    trace_context.set({"trace_id": trace_id, "span_id": span_id, **extra})


def update_span_id(span_id: str) -> None:
    _merge(span_id=span_id)


def bind_docs_version(docs_version: str) -> None:
    """Tag later log records with the documentation version being served or built."""
    _merge(docs_version=docs_version)
