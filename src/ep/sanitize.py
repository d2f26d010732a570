"""Input scrubbing applied to untrusted text before it reaches prompts or cache keys."""

from __future__ import annotations

import re
from typing import Any, Mapping

__all__ = ["MAX_PROMPT_INPUT_LENGTH", "sanitize_answers", "sanitize_prompt_input"]

MAX_PROMPT_INPUT_LENGTH = 5000

_ANGLE_BRACKETS = re.compile(r"[<>]")
_BRACES = re.compile(r"[{}]")
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def sanitize_prompt_input(text: str | None, *, max_length: int = MAX_PROMPT_INPUT_LENGTH) -> str:
    """Strip characters that break prompt framing and cap the length."""
    if text is None:
        return ""
    if not isinstance(text, str):
        text = str(text)
    cleaned = _ANGLE_BRACKETS.sub("", text)
    cleaned = _BRACES.sub("", cleaned)
    cleaned = _CONTROL_CHARS.sub("", cleaned)
    return cleaned[:max_length].strip()


def sanitize_answers(answers: Mapping[str, Any] | None) -> dict[str, Any]:
    """Return a copy of ``answers`` with every string key and value sanitised."""
    if not answers:
        return {}
    return {sanitize_prompt_input(str(key)): _sanitize_value(value) for key, value in answers.items()}


def _sanitize_value(value: Any) -> Any:
    if isinstance(value, str):
        return sanitize_prompt_input(value)
    if isinstance(value, Mapping):
        return sanitize_answers(value)
    if isinstance(value, (set, frozenset)):
        return sorted((_sanitize_value(item) for item in value), key=str)
    if isinstance(value, (list, tuple)):
        return [_sanitize_value(item) for item in value]
    if value is None or isinstance(value, (bool, int, float)):
        return value
    return sanitize_prompt_input(str(value))
