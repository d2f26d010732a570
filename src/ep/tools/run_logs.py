"""Persist and reload per-request pipeline run logs."""

from __future__ import annotations

import hashlib
import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

__all__ = ["RunLogEntry", "load_run_log", "run_log_filename", "write_run_log"]

LOGGER = logging.getLogger(__name__)

_SLUG_PATTERN = re.compile(r"[^a-z0-9_.-]+")
_HYPHEN_COLLAPSE = re.compile(r"-{2,}")


def _slugify(value: str | None, *, fallback: str = "request", max_length: int = 80) -> str:
    slug = _SLUG_PATTERN.sub("-", (value or "").strip().lower())
    slug = _HYPHEN_COLLAPSE.sub("-", slug).strip("-") or fallback
    if len(slug) <= max_length:
        return slug
    digest = hashlib.sha256(slug.encode("utf-8")).hexdigest()[:8]
    prefix = slug[: max(max_length - len(digest) - 1, 1)].rstrip("-")
    return f"{prefix}-{digest}"


def run_log_filename(request_id: str | None, timestamp: str) -> str:
    return f"{_slugify(request_id)}__{timestamp}.json"


@dataclass(slots=True)
class RunLogEntry:
    """In-memory representation of a stored run log."""

    path: Path
    request_id: str
    payload: Mapping[str, Any]

    @property
    def attempts(self) -> list[Mapping[str, Any]]:
        value = self.payload.get("attempts")
        if isinstance(value, list):
            return [item for item in value if isinstance(item, Mapping)]
        return []

    @property
    def metadata(self) -> Mapping[str, Any]:
        value = self.payload.get("metadata")
        if isinstance(value, Mapping):
            return value
        return {}

    @property
    def success(self) -> bool | None:
        value = self.payload.get("success")
        return value if isinstance(value, bool) else None


def write_run_log(logs_dir: Path | str, request_id: str | None, payload: Mapping[str, Any]) -> Path | None:
    """Write ``payload`` under ``logs_dir``; returns ``None`` when the write failed."""
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    try:
        directory = Path(logs_dir)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / run_log_filename(request_id, timestamp)
        document = {"request_id": request_id, "timestamp": timestamp, **payload}
        with path.open("w", encoding="utf-8") as handle:
            json.dump(document, handle, indent=2, sort_keys=True, default=str)
    except (OSError, TypeError, ValueError) as error:
        LOGGER.warning("Failed to write run log for %s: %s", request_id, error)
        return None
    return path


def load_run_log(path: Path | str) -> RunLogEntry:
    """Load a run log written by :func:`write_run_log`."""
    log_path = Path(path).resolve()
    with log_path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    request_id = str(payload.get("request_id") or "").strip()
    return RunLogEntry(path=log_path, request_id=request_id, payload=payload)
