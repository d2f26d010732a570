from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Sequence

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import redis  # noqa: E402

from ep.cache import PresetCache  # noqa: E402
from ep.config import PipelineConfig  # noqa: E402
from ep.metrics import MetricsRegistry  # noqa: E402
from ep.models.backend import CompletionBackend  # noqa: E402

PASSWORD_RESET_DESCRIPTION = (
    "Implement a password reset flow: users request a reset link by email, receive a "
    "time-limited token and choose a new password. Include rate limiting and audit logging."
)

_GROUPS = ("ANALYSIS", "DEV", "DEV", "TEST", "OPS", "GOVERNANCE")


class ScriptedBackend(CompletionBackend):
    """Backend stub replaying canned responses in order.

    Each script entry is either the completion text or an exception to raise.
    """

    def __init__(self, responses: Sequence[Any], *, model: str = "scripted-model") -> None:
        super().__init__(model=model)
        self._responses: List[Any] = list(responses)
        self.calls: List[Dict[str, Any]] = []

    @property
    def temperatures(self) -> List[float]:
        return [call["temperature"] for call in self.calls]

    def _raw_complete(self, payload: Dict[str, Any]) -> str:
        self.calls.append(payload)
        if not self._responses:
            raise AssertionError("ScriptedBackend ran out of responses")
        response = self._responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        if isinstance(response, (dict, list)):
            return json.dumps(response)
        return response


class FakeRedis:
    """In-memory stand-in for the subset of redis-py the cache uses."""

    def __init__(self) -> None:
        self.store: Dict[str, bytes] = {}
        self.expiries: Dict[str, int] = {}
        self.get_calls = 0
        self.set_calls = 0

    def get(self, name: str) -> bytes | None:
        self.get_calls += 1
        return self.store.get(name)

    def set(self, name: str, value: Any, ex: Any = None) -> bool:
        self.set_calls += 1
        self.store[name] = value if isinstance(value, bytes) else str(value).encode("utf-8")
        self.expiries[name] = ex
        return True


class BrokenRedis:
    """Every operation fails as if the server were unreachable."""

    def get(self, name: str) -> bytes | None:
        raise redis.exceptions.ConnectionError("connection refused")

    def set(self, name: str, value: Any, ex: Any = None) -> bool:
        raise redis.exceptions.TimeoutError("timed out")


def skeleton_payload(count: int = 6, *, hours: int = 4) -> Dict[str, Any]:
    return {
        "success": True,
        "activities": [
            {
                "title": f"Skeleton activity number {index}",
                "group": _GROUPS[index % len(_GROUPS)],
                "estimatedHours": hours,
                "priority": "core",
            }
            for index in range(1, count + 1)
        ],
    }


def detailed_activity(index: int, project: str, *, hours: float = 4, group: str | None = None) -> Dict[str, Any]:
    """An activity that echoes the project text, has bullets, details and criteria."""
    return {
        "title": f"Password reset work package {index}",
        "description": (
            f"{project}\n"
            "- Build the reset token service\n"
            "- Send the reset email with the link\n"
            "- Validate the new password policy\n"
            "- Record audit logging entries"
        ),
        "group": group or _GROUPS[index % len(_GROUPS)],
        "estimatedHours": hours,
        "priority": "core",
        "confidence": 0.8,
        "acceptanceCriteria": [
            "Reset links expire after the configured window",
            "Rate limiting rejects repeated requests",
            "Audit log records every reset",
        ],
        "technicalDetails": {
            "suggestedFiles": ["app/auth/reset.py", "app/auth/tokens.py"],
            "suggestedCommands": ["pytest tests/auth", "alembic upgrade head"],
            "suggestedTests": ["token expiry test"],
            "dependencies": ["itsdangerous", "flask-limiter"],
        },
    }


def shallow_activity(index: int) -> Dict[str, Any]:
    """An activity that scores zero completeness."""
    return {
        "title": f"Generic placeholder item {index}",
        "description": "Miscellaneous placeholder",
        "group": "DEV",
        "estimatedHours": 4,
        "priority": "optional",
    }


def expand_payload(activities: List[Dict[str, Any]], **overrides: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "success": True,
        "name": "Password Reset Preset",
        "description": "Preset for a password reset flow with emailed tokens",
        "detailedDescription": (
            "Covers the full password reset lifecycle: requesting a link, issuing a time-limited token, "
            "choosing a new password, rate limiting abusive callers and recording an audit trail."
        ),
        "techCategory": "BACKEND",
        "activities": activities,
        "driverValues": {"complexity": 5, "quality": "6"},
        "riskCodes": ["SECURITY"],
        "reasoning": "Activities mirror the reset flow from token issuance through auditing and deployment.",
        "confidence": 0.8,
    }
    payload.update(overrides)
    return payload


def high_quality_payload(count: int = 6, *, project: str = PASSWORD_RESET_DESCRIPTION, hours: float = 4) -> Dict[str, Any]:
    return expand_payload([detailed_activity(index, project, hours=hours) for index in range(1, count + 1)])


def low_quality_payload(count: int = 6) -> Dict[str, Any]:
    return expand_payload([shallow_activity(index) for index in range(1, count + 1)])


@pytest.fixture()
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture()
def preset_cache(fake_redis: FakeRedis) -> PresetCache:
    return PresetCache(client=fake_redis)


@pytest.fixture()
def metrics() -> MetricsRegistry:
    return MetricsRegistry()


@pytest.fixture()
def pipeline_config() -> PipelineConfig:
    return PipelineConfig()
