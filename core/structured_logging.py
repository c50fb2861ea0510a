"""Shared structured JSON logging helpers."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any, Callable

EventLogger = Callable[[str, dict[str, Any]], None]


def emit_json_event(
    event_type: str,
    *,
    level: str = "info",
    component: str | None = None,
    **payload: Any,
) -> str:
    """Emit one JSON event line to stdout and return the rendered line."""
    event: dict[str, Any] = {
        "event_type": event_type,
        "level": level,
        "timestamp": datetime.now(UTC).isoformat(),
    }
    if component:
        event["component"] = component
    event.update(payload)
    line = json.dumps(event, ensure_ascii=True, sort_keys=True, default=str)
    print(line)
    return line


def component_logger(component: str) -> EventLogger:
    """Build an (event_type, payload) sink that tags every line with a component."""

    def _log(event_type: str, payload: dict[str, Any]) -> None:
        emit_json_event(event_type, component=component, **payload)

    return _log
