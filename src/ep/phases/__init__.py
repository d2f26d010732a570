"""Generation stages and their labels."""

from __future__ import annotations

from enum import Enum


class StageName(str, Enum):
    """Enumeration of the backend-calling stages."""

    SKELETON = "skeleton"
    EXPAND = "expand"
    DIRECT = "direct"


def expand_pass_label(temperature: float) -> str:
    """Label recorded in ``model_passes`` for an expand call, e.g. ``expand_temp0.6``."""
    return f"expand_temp{temperature:g}"


__all__ = ["StageName", "expand_pass_label"]
