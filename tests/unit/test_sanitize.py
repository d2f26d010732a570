from __future__ import annotations

from ep.sanitize import MAX_PROMPT_INPUT_LENGTH, sanitize_answers, sanitize_prompt_input


def test_sanitize_strips_framing_characters() -> None:
    assert sanitize_prompt_input("<b>Build {an} app</b>") == "bBuild an app/b"


def test_sanitize_removes_control_characters_and_trims() -> None:
    assert sanitize_prompt_input("  line one\nline\ttwo\x00\x7f  ") == "line onelinetwo"


def test_sanitize_truncates_before_stripping() -> None:
    text = "x" * (MAX_PROMPT_INPUT_LENGTH - 1) + "  tail"
    cleaned = sanitize_prompt_input(text)
    assert len(cleaned) == MAX_PROMPT_INPUT_LENGTH - 1
    assert set(cleaned) == {"x"}


def test_sanitize_handles_none_and_non_strings() -> None:
    assert sanitize_prompt_input(None) == ""
    assert sanitize_prompt_input(42) == "42"  # type: ignore[arg-type]


def test_sanitize_answers_recurses_and_orders_sets() -> None:
    answers = {
        "<stack>": {"frontend": "React {18}", "flags": {"b", "a"}},
        "team": ["<lead>", 3, None],
        "deadline": True,
    }

    cleaned = sanitize_answers(answers)

    assert cleaned == {
        "stack": {"frontend": "React 18", "flags": ["a", "b"]},
        "team": ["lead", 3, None],
        "deadline": True,
    }


def test_sanitize_answers_empty() -> None:
    assert sanitize_answers(None) == {}
    assert sanitize_answers({}) == {}
