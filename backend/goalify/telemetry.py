"""In-process telemetry fan-out for gateway, reconciler and pool events."""

from __future__ import annotations

import json
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import RLock
from typing import Any, Callable, Deque, Dict, List, Optional

logger = logging.getLogger("goalify.telemetry")

HISTORY_SIZE = 200


@dataclass(frozen=True)
class TelemetryEvent:
    name: str
    payload: Dict[str, Any]
    emitted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


_listeners: List[Callable[[TelemetryEvent], None]] = []
_history: Deque[TelemetryEvent] = deque(maxlen=HISTORY_SIZE)
_lock = RLock()


def register_listener(listener: Callable[[TelemetryEvent], None]) -> None:
    """Register an in-process listener (used in tests)."""
    with _lock:
        _listeners.append(listener)


def clear_listeners() -> None:
    with _lock:
        _listeners.clear()
        _history.clear()


def recent_events(name: Optional[str] = None, limit: int = 50) -> List[TelemetryEvent]:
    """Most recent events first, optionally filtered by event name."""
    with _lock:
        events = [event for event in reversed(_history) if name is None or event.name == name]
    return events[:limit]


def emit_event(name: str, **fields: Any) -> None:
    """Emit a structured telemetry event and fan it out to listeners."""
    event = TelemetryEvent(name=name, payload=_sanitize(fields))

    with _lock:
        _history.append(event)
        listeners = list(_listeners)

    for listener in listeners:
        try:
            listener(event)
        except Exception:  # noqa: BLE001
            logger.exception("Telemetry listener failed for %s", name)

    structured = {"event": name, **event.payload}
    logger.info("TELEMETRY %s", json.dumps(structured, default=_json_default))


def _sanitize(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value.isoformat() if isinstance(value, datetime) else value for key, value in fields.items()}


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


__all__ = [
    "TelemetryEvent",
    "clear_listeners",
    "emit_event",
    "recent_events",
    "register_listener",
]
