"""Log setup for the CLI and library: JSON lines on stderr, tagged with trace ids."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from pathlib import Path
import sys
from typing import Any

import orjson

from docs_quicksearch.observability.context import get_trace_context


# Attributes every LogRecord carries; anything else was passed through ``extra=``
_STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}

PLAIN_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _clipped(text: str, limit: int) -> str:
    return text if len(text) <= limit else f"{text[:limit]}..."


class JsonFormatter(logging.Formatter):
    """Render records as one JSON object per line."""

    MAX_MESSAGE_LEN = 2000
    MAX_EXTRA_LEN = 500

    def format(self, record: logging.LogRecord) -> str:
        correlation = get_trace_context()
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": _clipped(record.getMessage(), self.MAX_MESSAGE_LEN),
            "trace_id": correlation.get("trace_id", ""),
            "span_id": correlation.get("span_id", ""),
        }

        _, dot, component = record.name.rpartition(".")
        if dot:
            payload["component"] = component
        if correlation.get("docs_version"):
            payload["docs_version"] = correlation["docs_version"]
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        payload.update(self._extra_fields(record))
        return orjson.dumps(payload, default=self._json_default).decode("utf-8")

    def _extra_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        extras = {}
        for key, value in vars(record).items():
            if key in _STANDARD_ATTRS or key.startswith("_"):
                continue
            extras[key] = _clipped(value, self.MAX_EXTRA_LEN) if isinstance(value, str) else value
        return extras

    def _json_default(self, value: Any) -> Any:
        if isinstance(value, (bytes, bytearray)):
            return value.decode("utf-8", errors="replace")
        if isinstance(value, (Path, Exception)):
            return str(value)
        if not isinstance(value, (set, frozenset)):
            return repr(value)
        try:
            return sorted(value)
        except TypeError:
            return list(value)


def _level(name: str) -> int:
    resolved = getattr(logging, name.upper(), None)
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
    *,
    logger_levels: dict[str, str] | None = None,
) -> None:
    """Install a single stderr handler on the root logger.

    Args:
        level: Root level name, case-insensitive; unknown names fall back to INFO
        json_output: Use ``JsonFormatter`` instead of the plain text format
        logger_levels: Level overrides keyed by logger name
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter() if json_output else logging.Formatter(PLAIN_FORMAT))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(_level(level))

    # Exporter internals are chatty at INFO
    logging.getLogger("opentelemetry").setLevel(logging.WARNING)

    for name, override in (logger_levels or {}).items():
        logging.getLogger(name).setLevel(_level(override))
