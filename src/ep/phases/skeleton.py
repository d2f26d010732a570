"""Skeleton stage: a deterministic first pass that fixes the activity structure."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from ..models.backend import CompletionBackend
from ..prompts import SKELETON_SYSTEM_PROMPT
from . import StageName
from .base import SkeletonStageError, StageAttempt, invoke_stage

SKELETON_TEMPERATURE = 0.0
SKELETON_FIELDS = ("title", "group", "estimatedHours", "priority")


@dataclass(slots=True)
class Skeleton:
    """Minimal activities (title, group, estimatedHours, priority)."""

    activities: list[dict[str, Any]] = field(default_factory=list)


def generate_skeleton(
    backend: CompletionBackend,
    enriched_prompt: str,
    *,
    max_output_tokens: int = 2048,
    attempts: list[StageAttempt] | None = None,
) -> Skeleton:
    """Run the skeleton stage at temperature 0.

    Raises:
        SkeletonStageError: the backend failed or the payload lacks
            ``success: true`` and an ``activities`` list. Not retried.
    """
    payload = invoke_stage(
        StageName.SKELETON.value,
        backend,
        system_prompt=SKELETON_SYSTEM_PROMPT,
        user_prompt=enriched_prompt,
        temperature=SKELETON_TEMPERATURE,
        max_output_tokens=max_output_tokens,
        error_type=SkeletonStageError,
        attempts=attempts,
    )
    if not isinstance(payload, Mapping):
        raise SkeletonStageError("Invalid skeleton response structure: expected a JSON object")
    if payload.get("success") is not True:
        raise SkeletonStageError("Invalid skeleton response structure: success flag missing or false")
    activities = payload.get("activities")
    if not isinstance(activities, list):
        raise SkeletonStageError("Invalid skeleton response structure: activities missing")

    minimal = [
        {key: item[key] for key in SKELETON_FIELDS if key in item}
        for item in activities
        if isinstance(item, Mapping)
    ]
    return Skeleton(activities=minimal)
