from __future__ import annotations

import copy

import pytest

from ep.schema import (
    FALLBACK_PRESET,
    FALLBACK_PRESET_VERSION,
    PipelineActivity,
    PresetOutput,
    fallback_preset,
    preset_payload,
    validate_preset,
)


def _valid_candidate() -> dict:
    return copy.deepcopy(preset_payload(FALLBACK_PRESET))


def test_fallback_preset_is_valid() -> None:
    result = validate_preset(preset_payload(FALLBACK_PRESET))

    assert result.ok, result.errors
    assert isinstance(result.preset, PresetOutput)
    assert FALLBACK_PRESET_VERSION == "1.0.0"
    assert len(FALLBACK_PRESET.activities) == 11
    assert all(activity.estimated_hours <= 8 for activity in FALLBACK_PRESET.activities)


def test_fallback_preset_returns_independent_copies() -> None:
    first = fallback_preset()
    first.activities[0].title = "Mutated activity title"
    first.driver_values["complexity"] = "9"

    second = fallback_preset()

    assert second.activities[0].title == "Requirements Analysis and Documentation"
    assert second.driver_values["complexity"] == "5"
    assert FALLBACK_PRESET.activities[0].title == "Requirements Analysis and Documentation"


def test_validator_rejects_too_few_activities() -> None:
    candidate = _valid_candidate()
    candidate["activities"] = candidate["activities"][:3]

    result = validate_preset(candidate)

    assert not result.ok
    assert result.preset is None
    assert any(error.startswith("/activities") and "fewer than 5" in error for error in result.errors)


def test_validator_rejects_activity_over_320_hours() -> None:
    candidate = _valid_candidate()
    candidate["activities"][0]["estimatedHours"] = 500

    result = validate_preset(candidate)

    assert not result.ok
    assert any(error.startswith("/activities/0/estimatedHours") for error in result.errors)


def test_validator_reports_every_violation() -> None:
    candidate = _valid_candidate()
    candidate["name"] = "abc"
    candidate["activities"][1]["group"] = "MARKETING"
    candidate["activities"][2]["priority"] = "urgent"
    candidate["confidence"] = 1.5

    result = validate_preset(candidate)

    locations = {error.split(":", 1)[0] for error in result.errors}
    assert {"/name", "/activities/1/group", "/activities/2/priority", "/confidence"} <= locations


def test_validator_rejects_too_many_activities() -> None:
    candidate = _valid_candidate()
    candidate["activities"] = candidate["activities"] * 2

    result = validate_preset(candidate, max_activities=20)

    assert not result.ok
    assert any("more than 20" in error for error in result.errors)


def test_validator_handles_non_mapping_input() -> None:
    result = validate_preset(["not", "a", "preset"])

    assert not result.ok
    assert result.errors


def test_activity_serialises_whole_hours_as_int() -> None:
    activity = PipelineActivity.model_validate(
        {"title": "Configure CI pipeline", "group": "OPS", "estimatedHours": 6.0, "priority": "core"}
    )
    fractional = activity.model_copy(update={"estimated_hours": 2.5})

    assert activity.model_dump(by_alias=True)["estimatedHours"] == 6
    assert isinstance(activity.model_dump(by_alias=True)["estimatedHours"], int)
    assert fractional.model_dump(by_alias=True)["estimatedHours"] == 2.5


def test_payload_uses_camel_case_and_drops_empty_fields() -> None:
    payload = preset_payload(FALLBACK_PRESET)

    assert "detailedDescription" in payload
    assert "techCategory" in payload
    assert payload["techCategory"] == "MULTI"
    assert "technicalDetails" not in payload["activities"][2]
    assert payload["driverValues"] == {"complexity": "5", "quality": "6", "team": "5", "urgency": "5"}


@pytest.mark.parametrize("title", ["too short", "x" * 151])
def test_activity_title_bounds(title: str) -> None:
    candidate = _valid_candidate()
    candidate["activities"][0]["title"] = title

    assert not validate_preset(candidate).ok
