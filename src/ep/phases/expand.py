"""Expand stage: enrich skeleton activities into a full preset candidate."""

from __future__ import annotations

import json
from typing import Any, Mapping, Sequence

from ..models.backend import CompletionBackend
from ..prompts import EXPAND_SYSTEM_PROMPT, render_expand_prompt
from . import StageName
from .base import ExpandStageError, StageAttempt, invoke_stage

PRESET_DEFAULTS: dict[str, Any] = {
    "name": "Generated Preset",
    "description": "AI-generated technology preset",
    "techCategory": "MULTI",
    "driverValues": {"complexity": "5", "quality": "6", "team": "5"},
    "riskCodes": [],
    "reasoning": "AI-generated preset based on project description",
    "confidence": 0.75,
}

_UPPERCASE_ENUMS = ("group",)
_LOWERCASE_ENUMS = ("priority",)
_STRING_LIST_FIELDS = ("acceptanceCriteria",)
_DETAIL_LIST_FIELDS = ("suggestedFiles", "suggestedCommands", "suggestedTests", "dependencies")


def expand_skeleton(
    backend: CompletionBackend,
    skeleton_activities: Sequence[Mapping[str, Any]],
    enriched_prompt: str,
    *,
    temperature: float = 0.6,
    max_output_tokens: int = 8192,
    attempt: int = 1,
    attempts: list[StageAttempt] | None = None,
    stage: str = StageName.EXPAND.value,
) -> dict[str, Any]:
    """Run one expand call and return a remediated, not yet validated, preset mapping.

    Raises:
        ExpandStageError: the backend failed, the JSON was unusable, or the
            payload did not report ``success: true``.
    """
    payload = invoke_stage(
        stage,
        backend,
        system_prompt=EXPAND_SYSTEM_PROMPT,
        user_prompt=render_expand_prompt(enriched_prompt, skeleton_activities),
        temperature=temperature,
        max_output_tokens=max_output_tokens,
        error_type=ExpandStageError,
        attempt=attempt,
        attempts=attempts,
    )
    if not isinstance(payload, Mapping):
        raise ExpandStageError("Invalid expand response structure: expected a JSON object")
    if payload.get("success") is not True:
        raise ExpandStageError("Invalid expand response structure: success flag missing or false")
    if not isinstance(payload.get("activities"), list):
        raise ExpandStageError("Invalid expand response structure: activities missing")
    return normalise_preset_candidate(payload)


def normalise_preset_candidate(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Fill defaults and repair the value shapes models commonly get wrong."""
    candidate: dict[str, Any] = {}
    for key, default in PRESET_DEFAULTS.items():
        value = payload.get(key)
        candidate[key] = value if value not in (None, "") else json.loads(json.dumps(default))

    detailed = payload.get("detailedDescription")
    candidate["detailedDescription"] = detailed or candidate["description"]

    category = candidate.get("techCategory")
    if isinstance(category, str):
        candidate["techCategory"] = category.strip().upper()
    candidate["confidence"] = _coerce_number(candidate["confidence"])

    drivers = candidate.get("driverValues")
    if isinstance(drivers, Mapping):
        candidate["driverValues"] = {str(key): _stringify(value) for key, value in drivers.items()}

    risks = candidate.get("riskCodes")
    if isinstance(risks, list):
        candidate["riskCodes"] = [str(code) for code in risks if code not in (None, "")]

    candidate["activities"] = [
        normalise_activity(item) for item in payload.get("activities") or [] if isinstance(item, Mapping)
    ]
    return candidate


def normalise_activity(activity: Mapping[str, Any]) -> dict[str, Any]:
    """Repair enum casing, numeric strings and list shapes of a single activity."""
    result = dict(activity)
    for key in _UPPERCASE_ENUMS:
        if isinstance(result.get(key), str):
            result[key] = result[key].strip().upper()
    for key in _LOWERCASE_ENUMS:
        if isinstance(result.get(key), str):
            result[key] = result[key].strip().lower()
    for key in ("estimatedHours", "confidence"):
        if key in result:
            result[key] = _coerce_number(result[key])
    for key in _STRING_LIST_FIELDS:
        if key in result:
            result[key] = _coerce_string_list(result[key])
    details = result.get("technicalDetails")
    if isinstance(details, Mapping):
        repaired = dict(details)
        for key in _DETAIL_LIST_FIELDS:
            if key in repaired:
                repaired[key] = _coerce_string_list(repaired[key])
        result["technicalDetails"] = repaired
    return result


def _coerce_number(value: Any) -> Any:
    if isinstance(value, str):
        text = value.strip().rstrip("hH").strip()
        try:
            number = float(text)
        except ValueError:
            return value
        return int(number) if number.is_integer() else number
    return value


def _coerce_string_list(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, list):
        return [item if isinstance(item, str) else json.dumps(item) for item in value if item is not None]
    return value


def _stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
