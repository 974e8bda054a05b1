"""
JSONL event logger.

- Write one JSON object per line
- Output to stdout
- No buffering, no batching
- No side effects beyond logging
"""

from __future__ import annotations

import json
import sys
import time
from typing import Any, Mapping, Callable


# ------------------------------------------------------------------
# Explicit output sink (patchable in tests)
# ------------------------------------------------------------------

def _stdout_print(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()

_print: Callable[[str], None] = _stdout_print


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def log_event(event: Mapping[str, Any]) -> None:
    """
    Write a single JSONL event to stdout.

    The caller is responsible for supplying a fully-formed event dict.

    This function:
    - Serializes to JSON
    - Writes exactly one line
    - Flushes immediately (no buffering)
    - Never raises
    """
    try:
        line = json.dumps(event, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        # Logging must never crash the session
        fallback: dict[str, Any] = {
            "ts_ms": event.get("ts_ms"),
            "event_type": "LOGGER_SERIALIZATION_ERROR",
            "error": str(e),
            "original_event_repr": repr(event),
        }
        line = json.dumps(fallback, ensure_ascii=False, separators=(",", ":"))

    _print(line)


class EventLogger:
    """
    Context-bound front end for log_event().

    Every record gets ts_ms, the component name and whatever context was
    bound (session id, provider, ...). Later fields override bound ones.
    """

    def __init__(self, component: str, **context: Any) -> None:
        self._component = component
        self._context: dict[str, Any] = dict(context)

    def bind(self, **context: Any) -> None:
        """Add or replace bound context fields in place."""
        self._context.update(context)

    def log(self, event_type: str, **fields: Any) -> None:
        """Emit one record through log_event()."""
        log_event({
            "ts_ms": _now_ms(),
            "component": self._component,
            "event_type": event_type,
            **self._context,
            **fields,
        })
