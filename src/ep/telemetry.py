"""Structured stage-transition events, one JSON object per log line."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

__all__ = ["TELEMETRY_LOGGER", "log_event"]

TELEMETRY_LOGGER = logging.getLogger("ep.telemetry")


def _serialise_event_value(value: Any) -> Any:
    """Convert event payload values into JSON-friendly representations."""
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, Path):
        return value.as_posix()
    if isinstance(value, (list, tuple, set)):
        return [_serialise_event_value(item) for item in value]
    if isinstance(value, Mapping):
        return {str(key): _serialise_event_value(child) for key, child in value.items()}
    return str(value)


def log_event(event: str, *, request_id: str | None = None, level: int = logging.INFO, **fields: Any) -> str:
    """Emit ``event`` with its fields and return the rendered line."""
    payload: dict[str, Any] = {
        "event": event,
        "request_id": request_id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    for key, value in fields.items():
        payload[key] = _serialise_event_value(value)
    message = json.dumps(payload, separators=(",", ":"), ensure_ascii=True, sort_keys=False)
    TELEMETRY_LOGGER.log(level, message)
    return message
