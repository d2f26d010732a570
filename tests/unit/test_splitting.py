from __future__ import annotations

import pytest

from ep.schema import MAX_TITLE_LENGTH
from ep.splitting import distribute_hours, labelled_title, phase_label, split_activities, split_activity


def _activity(hours: float, *, group: str = "DEV", **extra: object) -> dict:
    activity = {
        "title": "Build order service",
        "description": "Implement the order service.",
        "group": group,
        "estimatedHours": hours,
        "priority": "core",
        "confidence": 0.8,
        "acceptanceCriteria": ["Orders persist"],
    }
    activity.update(extra)
    return activity


@pytest.mark.parametrize(
    ("hours", "expected"),
    [
        (20, [6, 6, 8]),
        (16, [8, 8]),
        (23, [5, 5, 5, 8]),
        (10.5, [5, 5.5]),
        (8, [8]),
    ],
)
def test_distribute_hours(hours: float, expected: list[float]) -> None:
    assert distribute_hours(hours, 8) == expected


@pytest.mark.parametrize("hours", [9, 17, 23, 31, 57, 100, 319, 12.75])
def test_split_preserves_total_and_respects_ceiling(hours: float) -> None:
    parts = split_activity(_activity(hours), 8)

    assert sum(part["estimatedHours"] for part in parts) == pytest.approx(hours)
    assert all(part["estimatedHours"] <= 8 for part in parts)
    assert all(part["estimatedHours"] > 0 for part in parts)
    assert len(parts) >= 2


def test_split_copies_fields_and_marks_parts() -> None:
    parts = split_activity(_activity(20), 8)

    assert [part["title"] for part in parts] == [
        "Build order service - Setup",
        "Build order service - Core Implementation",
        "Build order service - Integration",
    ]
    assert parts[0]["description"].endswith("[Split 1/3 of an original 20h activity]")
    assert all(part["confidence"] == pytest.approx(0.72) for part in parts)
    assert all(part["priority"] == "core" and part["group"] == "DEV" for part in parts)
    assert all(part["acceptanceCriteria"] == ["Orders persist"] for part in parts)

    parts[0]["acceptanceCriteria"].append("mutated")
    assert parts[1]["acceptanceCriteria"] == ["Orders persist"]


def test_split_test_group_labels_mention_testing() -> None:
    parts = split_activity(_activity(24, group="TEST"), 8)

    assert len(parts) == 3
    assert all("test" in part["title"].lower().split(" - ", 1)[1] for part in parts)


def test_activity_exactly_at_ceiling_is_unchanged() -> None:
    original = _activity(8)
    parts = split_activity(original, 8)

    assert parts == [original]
    assert parts[0] is not original


def test_non_numeric_hours_pass_through() -> None:
    activity = _activity(8)
    activity["estimatedHours"] = "lots"
    assert split_activity(activity, 8) == [activity]


def test_labels_fall_back_to_part_numbers() -> None:
    parts = split_activity(_activity(40, group="OPS"), 8)

    assert len(parts) == 5
    assert parts[2]["title"].endswith("Verification")
    assert parts[3]["title"].endswith("Part 4")
    assert phase_label("unknown", 1) == "Part 1"


def test_split_without_description_or_confidence() -> None:
    activity = {"title": "Provision cluster", "group": "OPS", "estimatedHours": 12, "priority": "core"}
    parts = split_activity(activity, 8)

    assert all("description" not in part and "confidence" not in part for part in parts)


def test_split_activities_preserves_order() -> None:
    activities = [_activity(4, title="First activity"), _activity(12, title="Second activity")]
    result = split_activities(activities, 8)

    assert [item["title"] for item in result] == [
        "First activity",
        "Second activity - Setup",
        "Second activity - Core Implementation",
    ]


def test_non_positive_ceiling_is_rejected() -> None:
    with pytest.raises(ValueError):
        split_activity(_activity(12), 0)
    with pytest.raises(ValueError):
        distribute_hours(12, -1)


@pytest.mark.parametrize("hours", [321, 4_000_000, 1e9, float("inf")])
def test_hours_beyond_the_schema_limit_are_not_split(hours: float) -> None:
    activity = _activity(hours)

    parts = split_activity(activity, 8)

    assert parts == [activity]
    assert parts[0] is not activity


def test_split_titles_stay_within_the_title_limit() -> None:
    long_title = "Implement " + "x" * (MAX_TITLE_LENGTH - len("Implement "))
    parts = split_activity(_activity(20, title=long_title), 8)

    assert all(len(part["title"]) <= MAX_TITLE_LENGTH for part in parts)
    assert parts[1]["title"].endswith(" - Core Implementation")
    assert labelled_title("Short title", "Setup") == "Short title - Setup"
