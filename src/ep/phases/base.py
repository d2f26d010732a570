"""Shared helper for calling the backend once per stage attempt."""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, is_dataclass
from pathlib import Path
from typing import Any, Optional

from ..models.backend import BackendError, CompletionBackend, parse_json_payload


class StageError(RuntimeError):
    """A stage produced no usable payload."""

    stage = "stage"


class SkeletonStageError(StageError):
    """Skeleton generation failed; fatal for the whole request."""

    stage = "skeleton"


class ExpandStageError(StageError):
    """One expand attempt failed; the pipeline decides whether to retry."""

    stage = "expand"


@dataclass(slots=True)
class StageAttempt:
    """Diagnostic record of one backend call."""

    stage: str
    attempt: int
    temperature: float
    raw: Optional[str] = None
    parsed: Any = None
    error: Optional[str] = None
    duration_ms: int = 0
    average_completeness: Optional[float] = None


def invoke_stage(
    stage: str,
    backend: CompletionBackend,
    *,
    system_prompt: str,
    user_prompt: str,
    temperature: float,
    max_output_tokens: int,
    error_type: type[StageError],
    attempt: int = 1,
    attempts: list[StageAttempt] | None = None,
) -> Any:
    """Call ``backend`` once and return the repaired JSON payload.

    Backend failures (timeouts, rate limits, unusable text) are re-raised as
    ``error_type`` so callers handle a timeout exactly like malformed output.
    """
    record = StageAttempt(stage=stage, attempt=attempt, temperature=temperature)
    if attempts is not None:
        attempts.append(record)
    started = time.monotonic()
    try:
        raw = backend.complete(
            system_prompt,
            user_prompt,
            temperature=temperature,
            max_output_tokens=max_output_tokens,
        )
        record.raw = raw
        parsed = parse_json_payload(raw)
        record.parsed = json_safe(parsed)
        return parsed
    except (BackendError, TimeoutError) as error:
        record.error = f"{type(error).__name__}: {error}"
        raise error_type(f"{stage} stage failed: {error}") from error
    finally:
        record.duration_ms = int((time.monotonic() - started) * 1000)


def json_safe(value: Any) -> Any:
    """Coerce complex objects into JSON-serialisable representations."""
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Path):
        return value.as_posix()
    if is_dataclass(value) and not isinstance(value, type):
        return json_safe(asdict(value))
    if hasattr(value, "model_dump"):
        try:
            return json_safe(value.model_dump(mode="json", by_alias=True))
        except TypeError:
            pass
    if isinstance(value, dict):
        return {str(key): json_safe(val) for key, val in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [json_safe(item) for item in value]
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="ignore")
    return str(value)
