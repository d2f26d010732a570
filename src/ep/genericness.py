"""Advisory check that generated activities read as reusable, not project-specific.

Scores run from 0 to 100 (higher is more generic). The result never decides
whether a preset is accepted; the pipeline only logs the summary.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Pattern

__all__ = [
    "GENERIC_THRESHOLD",
    "GenericnessResult",
    "GenericnessSummary",
    "check_genericness",
    "log_genericness_summary",
    "summarize_genericness",
]

LOGGER = logging.getLogger(__name__)

GENERIC_THRESHOLD = 70
WARNING_FLOOR = 60
LONG_TITLE_CHARS = 80
MAX_TITLE_CONJUNCTIONS = 2

BUSINESS_ENTITY_PENALTY = 30
SPECIFIC_FEATURE_PENALTY = 25
SPECIFIC_FIELD_PENALTY = 20
SPECIFIC_ENDPOINT_PENALTY = 20
LONG_TITLE_PENALTY = 10
CONJUNCTION_PENALTY = 15
PARENTHETICAL_PENALTY = 20
GENERIC_BONUS = 10


def _compile(*patterns: str) -> tuple[Pattern[str], ...]:
    return tuple(re.compile(pattern, re.IGNORECASE) for pattern in patterns)


# Italian and English vocabulary, matching the languages presets are written in.
_BUSINESS_ENTITIES = _compile(
    r"\b(dipendent[ei]|employee)\b",
    r"\b(utent[ei]|users?)\b",
    r"\b(client[ei]|customers?)\b",
    r"\b(prodott[oi]|products?)\b",
    r"\b(ordin[ei]|orders?)\b",
    r"\b(fattur[ae]|invoices?)\b",
    r"\b(dipartiment[oi]|departments?)\b",
    r"\b(progett[oi]|projects?)\b",
    r"\b(attivit[àa]|tasks?)\b",
    r"\b(contratt[oi]|contracts?)\b",
    r"\b(document[oi]|documents?)\b",
)
_SPECIFIC_FEATURES = _compile(
    r"\b(login|signin|sign-in)\b",
    r"\b(registra(tion|zione))\b",
    r"\b(checkout|payment|pagamento)\b",
    r"\b(onboarding)\b",
    r"\b(dashboard|homepage|profile)\b",
    r"\b(admin panel|pannello admin)\b",
    r"\b(settings|impostazioni)\b",
)
_SPECIFIC_FIELDS = _compile(
    r"\b(nome|cognome|firstname|lastname)\b",
    r"\b(email|e-mail|mail)\b",
    r"\b(telefono|phone|cellulare)\b",
    r"\b(indirizzo|address)\b",
    r"\b(prezzo|price|costo|cost)\b",
    r"\b(quantit[àa]|quantity|qty)\b",
    r"\b(data|date)\b",
    r"\b(codice|code|id)\b",
    r"\b(matricola|badge)\b",
    r"\b(reparto|department)\b",
)
_SPECIFIC_ENDPOINTS = _compile(
    r"/auth/(login|register|logout)",
    r"/api/(users|products|orders)",
    r"/admin/",
    r"/(checkout|payment|cart)",
)
_GENERIC_INDICATORS = _compile(
    r"\bcustom\b",
    r"\bgeneric[oa]?\b",
    r"\btemplate\b",
    r"\briusabile\b",
    r"\bpattern\b",
    r"\bentit[àa] (custom|generica)",
    r"\bcomponente (riusabile|generico)",
    r"\bservizio (generico|custom)",
)
_CONJUNCTION = re.compile(r"\b(e|and|con)\b")
_PARENTHETICAL = re.compile(r"\([^)]*(?:nome|email|employee|user|product)[^)]*\)", re.IGNORECASE)


@dataclass(slots=True)
class GenericnessResult:
    title: str
    score: int
    is_generic: bool
    issues: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)


@dataclass(slots=True)
class GenericnessSummary:
    """Aggregate over a preset's activities."""

    results: list[GenericnessResult] = field(default_factory=list)
    average_score: float = 0.0
    passed: int = 0
    failed: int = 0
    warnings: int = 0

    @property
    def all_generic(self) -> bool:
        return self.failed == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "all_generic": self.all_generic,
            "average_score": round(self.average_score, 1),
            "passed": self.passed,
            "failed": self.failed,
            "warnings": self.warnings,
        }


def check_genericness(activity: Mapping[str, Any]) -> GenericnessResult:
    """Score how reusable ``activity`` reads."""
    title = str(activity.get("title") or "")
    description = str(activity.get("description") or "")
    title_lower = title.lower()
    combined = f"{title_lower} {description.lower()}"

    issues: list[str] = []
    suggestions: list[str] = []
    score = 100

    for pattern in _BUSINESS_ENTITIES:
        match = pattern.search(combined)
        if match:
            issues.append(f'Contains specific business entity: "{match.group(0)}"')
            suggestions.append('Replace with a generic term (e.g. "custom entity", "master data")')
            score -= BUSINESS_ENTITY_PENALTY

    for pattern in _SPECIFIC_FEATURES:
        match = pattern.search(combined)
        if match:
            issues.append(f'Contains specific feature name: "{match.group(0)}"')
            suggestions.append('Replace with a generic pattern (e.g. "authentication form", "user interface")')
            score -= SPECIFIC_FEATURE_PENALTY

    # Fields only count in the title; descriptions may legitimately name them.
    for pattern in _SPECIFIC_FIELDS:
        match = pattern.search(title_lower)
        if match:
            issues.append(f'Title contains specific field: "{match.group(0)}"')
            suggestions.append('Replace with "custom fields" or "standard fields"')
            score -= SPECIFIC_FIELD_PENALTY

    for pattern in _SPECIFIC_ENDPOINTS:
        match = pattern.search(combined)
        if match:
            issues.append(f'Contains specific endpoint path: "{match.group(0)}"')
            suggestions.append('Replace with "REST endpoint" or "API endpoint"')
            score -= SPECIFIC_ENDPOINT_PENALTY

    if len(title) > LONG_TITLE_CHARS:
        issues.append("Title too long (likely too specific)")
        suggestions.append("Shorten to the essential technical pattern (40-70 chars)")
        score -= LONG_TITLE_PENALTY

    if len(_CONJUNCTION.findall(title_lower)) > MAX_TITLE_CONJUNCTIONS:
        issues.append("Title lists too many specific items")
        suggestions.append("Focus on one generic pattern per activity")
        score -= CONJUNCTION_PENALTY

    if any(pattern.search(combined) for pattern in _GENERIC_INDICATORS):
        score = min(100, score + GENERIC_BONUS)
    elif score > GENERIC_THRESHOLD:
        suggestions.append('Consider adding a generic qualifier (e.g. "custom", "reusable", "generic")')

    if _PARENTHETICAL.search(title):
        issues.append("Title contains specific examples in parentheses")
        suggestions.append("Remove specific examples from the title and keep only the generic pattern")
        score -= PARENTHETICAL_PENALTY

    return GenericnessResult(
        title=title,
        score=max(0, score),
        is_generic=score >= GENERIC_THRESHOLD,
        issues=issues,
        suggestions=suggestions,
    )


def summarize_genericness(activities: Iterable[Mapping[str, Any]]) -> GenericnessSummary:
    results = [check_genericness(activity) for activity in activities if isinstance(activity, Mapping)]
    if not results:
        return GenericnessSummary()
    return GenericnessSummary(
        results=results,
        average_score=sum(result.score for result in results) / len(results),
        passed=sum(1 for result in results if result.is_generic),
        failed=sum(1 for result in results if not result.is_generic),
        warnings=sum(1 for result in results if WARNING_FLOOR <= result.score < GENERIC_THRESHOLD),
    )


def log_genericness_summary(
    summary: GenericnessSummary,
    *,
    request_id: str | None = None,
    tech_category: str | None = None,
) -> None:
    LOGGER.info(
        "Activity genericness for %s (%s): %s",
        request_id or "-",
        tech_category or "-",
        summary.to_dict(),
    )
    for index, result in enumerate((item for item in summary.results if not item.is_generic), start=1):
        LOGGER.debug(
            "Non-generic activity #%d %r score=%d issues=%s",
            index,
            result.title[:60],
            result.score,
            result.issues,
        )
