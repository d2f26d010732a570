from __future__ import annotations

import logging

import pytest

from ep.genericness import check_genericness, log_genericness_summary, summarize_genericness


def test_reusable_activity_scores_full_marks() -> None:
    result = check_genericness(
        {"title": "Implement custom CRUD service", "description": "Reusable template for a generic entity."}
    )

    assert result.score == 100
    assert result.is_generic
    assert result.issues == []


def test_plain_activity_without_qualifier_gets_a_suggestion() -> None:
    result = check_genericness({"title": "Configure CI pipeline", "description": "Automate builds."})

    assert result.score == 100
    assert result.is_generic
    assert any("qualifier" in suggestion for suggestion in result.suggestions)


def test_business_entities_and_features_are_penalised() -> None:
    result = check_genericness(
        {"title": "Customer login dashboard", "description": "Shows orders for each customer."}
    )

    # customer (30) + orders (30) + login (25) + dashboard (25)
    assert result.score == 0
    assert not result.is_generic
    assert any("business entity" in issue for issue in result.issues)
    assert any("feature name" in issue for issue in result.issues)


def test_specific_fields_only_count_in_title() -> None:
    in_title = check_genericness({"title": "Validate email field format", "description": "Form checks."})
    in_description = check_genericness({"title": "Validate form field formats", "description": "Checks email."})

    assert in_title.score == 80
    assert in_description.score == 100


def test_endpoints_long_titles_and_conjunctions() -> None:
    result = check_genericness(
        {
            "title": "Wire caching and retries and metrics and tracing into the gateway layer for every service",
            "description": "Routes under /admin/ are excluded.",
        }
    )

    # endpoint (20) + long title (10) + conjunctions (15)
    assert result.score == 55
    assert len(result.issues) == 3


def test_parenthetical_specifics_are_penalised() -> None:
    result = check_genericness({"title": "Form validation (nome, cognome)", "description": ""})

    # nome (20) + cognome shares the same field pattern + parenthetical (20)
    assert result.score == 60
    assert not result.is_generic


def test_summary_counts_and_logging(caplog: pytest.LogCaptureFixture) -> None:
    activities = [
        {"title": "Implement custom CRUD service", "description": "Generic entity."},
        {"title": "Customer login dashboard", "description": ""},
        {"title": "Form validation (nome)", "description": ""},
    ]

    summary = summarize_genericness(activities)

    assert (summary.passed, summary.failed, summary.warnings) == (1, 2, 1)
    assert summary.all_generic is False
    assert summary.average_score == pytest.approx((100 + 20 + 60) / 3)

    with caplog.at_level(logging.DEBUG, logger="ep.genericness"):
        log_genericness_summary(summary, request_id="req-1", tech_category="BACKEND")

    assert "req-1" in caplog.text
    assert "Customer login dashboard" in caplog.text


def test_empty_summary() -> None:
    summary = summarize_genericness([])
    assert summary.all_generic
    assert summary.to_dict()["average_score"] == 0.0
