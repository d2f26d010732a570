"""Decompose oversized activities into sub-activities that fit the hour ceiling."""

from __future__ import annotations

import copy
import math
from typing import Any, Iterable, Mapping

from .schema import MAX_ACTIVITY_HOURS, MAX_TITLE_LENGTH

__all__ = [
    "DEFAULT_HOUR_CEILING",
    "SPLIT_CONFIDENCE_FACTOR",
    "distribute_hours",
    "labelled_title",
    "phase_label",
    "split_activities",
    "split_activity",
]

DEFAULT_HOUR_CEILING = 8
SPLIT_CONFIDENCE_FACTOR = 0.9

_PHASE_LABELS: dict[str, tuple[str, ...]] = {
    "ANALYSIS": ("Discovery", "Specification", "Review"),
    "DEV": ("Setup", "Core Implementation", "Integration", "Refinement"),
    "TEST": ("Test Planning", "Test Implementation", "Test Execution", "Test Reporting"),
    "OPS": ("Configuration", "Deployment", "Verification"),
    "GOVERNANCE": ("Planning", "Documentation", "Review"),
}


def phase_label(group: Any, index: int) -> str:
    """Return the label of the ``index``-th (1-based) part for ``group``."""
    labels = _PHASE_LABELS.get(str(group).upper(), ())
    if 1 <= index <= len(labels):
        return labels[index - 1]
    return f"Part {index}"


def labelled_title(title: str, label: str) -> str:
    """Append ``label`` to ``title``, shortening the title so the result fits."""
    suffix = f" - {label}"
    room = MAX_TITLE_LENGTH - len(suffix)
    if len(title) > room:
        title = title[:room].rstrip()
    return f"{title}{suffix}"


def distribute_hours(hours: float, ceiling: float) -> list[float]:
    """Split ``hours`` into parts of at most ``ceiling`` whose sum is exactly ``hours``.

    The first parts receive ``floor(hours / n)`` and the last part takes the
    remainder. ``n`` starts at ``ceil(hours / ceiling)`` and grows while the
    remainder would still exceed the ceiling.
    """
    if ceiling <= 0:
        raise ValueError("ceiling must be positive")
    if hours <= ceiling:
        return [hours]

    parts = math.ceil(hours / ceiling)
    while True:
        base = math.floor(hours / parts)
        last = hours - base * (parts - 1)
        if base > 0 and last <= ceiling:
            return [base] * (parts - 1) + [_tidy(last)]
        if base <= 0:
            # Fractional totals below the part count: fall back to even shares.
            share = hours / parts
            return [share] * parts
        parts += 1


def split_activity(activity: Mapping[str, Any], ceiling: float = DEFAULT_HOUR_CEILING) -> list[dict[str, Any]]:
    """Return ``activity`` unchanged or as sub-activities that each fit under ``ceiling``.

    Hours above ``MAX_ACTIVITY_HOURS`` (or not finite) are returned unsplit.
    """
    if ceiling <= 0:
        raise ValueError("ceiling must be positive")

    hours = activity.get("estimatedHours")
    if isinstance(hours, bool) or not isinstance(hours, (int, float)) or hours <= ceiling:
        return [dict(activity)]
    if not math.isfinite(hours) or hours > MAX_ACTIVITY_HOURS:
        # Left for validation to reject.
        return [dict(activity)]

    shares = distribute_hours(hours, ceiling)
    total = len(shares)
    title = str(activity.get("title") or "Activity")
    group = activity.get("group")
    description = activity.get("description")
    confidence = activity.get("confidence")

    parts: list[dict[str, Any]] = []
    for index, share in enumerate(shares, start=1):
        part = copy.deepcopy(dict(activity))
        part["title"] = labelled_title(title, phase_label(group, index))
        part["estimatedHours"] = share
        if isinstance(description, str) and description:
            part["description"] = f"{description}\n\n[Split {index}/{total} of an original {_tidy(hours)}h activity]"
        if isinstance(confidence, (int, float)) and not isinstance(confidence, bool):
            part["confidence"] = round(confidence * SPLIT_CONFIDENCE_FACTOR, 4)
        parts.append(part)
    return parts


def split_activities(
    activities: Iterable[Mapping[str, Any]],
    ceiling: float = DEFAULT_HOUR_CEILING,
) -> list[dict[str, Any]]:
    """Apply :func:`split_activity` to every activity, preserving order."""
    result: list[dict[str, Any]] = []
    for activity in activities:
        result.extend(split_activity(activity, ceiling))
    return result


def _tidy(value: float) -> float | int:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value
