"""Heuristic completeness scoring of expanded activities.

The coherence term is a bag-of-words cosine similarity, not an embedding
model. Callers depend on :class:`CompletenessScorer`, so a real
embedding-based scorer can replace :class:`BagOfWordsScorer` without touching
the pipeline.
"""

from __future__ import annotations

import math
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol, Sequence

__all__ = [
    "BagOfWordsScorer",
    "CompletenessScore",
    "CompletenessScorer",
    "PresetScore",
    "cosine_similarity",
    "score_activity",
    "score_preset",
    "word_frequencies",
]

TOP_WORDS = 100
COHERENCE_WEIGHT = 0.5
DEPTH_WEIGHT = 0.3
ACTIONABLE_WEIGHT = 0.2
MIN_ACCEPTANCE_CRITERIA = 3
BULLET_WEIGHT = 0.1
BULLET_CAP = 0.4
DETAIL_BONUS = 0.2

_WORD_RE = re.compile(r"[a-z0-9]+")
_BULLET_RE = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s+")

_STOPWORDS = frozenset(
    {
        "a",
        "an",
        "and",
        "are",
        "as",
        "at",
        "be",
        "by",
        "for",
        "from",
        "has",
        "have",
        "in",
        "into",
        "is",
        "it",
        "its",
        "of",
        "on",
        "or",
        "that",
        "the",
        "their",
        "this",
        "to",
        "was",
        "were",
        "will",
        "with",
    }
)


@dataclass(slots=True, frozen=True)
class CompletenessScore:
    """Per-activity quality signals, each in ``[0, 1]``."""

    coherence: float
    depth: float
    actionable: float
    completeness: float


@dataclass(slots=True)
class PresetScore:
    """Scores for every activity plus their arithmetic mean."""

    activities: list[CompletenessScore] = field(default_factory=list)
    average_completeness: float = 0.0


class CompletenessScorer(Protocol):
    def score(self, activities: Sequence[Mapping[str, Any]], project_text: str) -> PresetScore: ...


class BagOfWordsScorer:
    """Default scorer backed by :func:`score_preset`."""

    def score(self, activities: Sequence[Mapping[str, Any]], project_text: str) -> PresetScore:
        return score_preset(activities, project_text)


def word_frequencies(text: str, *, top: int = TOP_WORDS) -> Counter[str]:
    """Return the ``top`` most frequent content words in ``text``."""
    tokens = [
        token
        for token in _WORD_RE.findall((text or "").lower())
        if len(token) > 1 and token not in _STOPWORDS
    ]
    counts = Counter(tokens)
    # most_common breaks ties by first occurrence, which keeps the cut deterministic.
    return Counter(dict(counts.most_common(top)))


def cosine_similarity(left: Counter[str], right: Counter[str]) -> float:
    if not left or not right:
        return 0.0
    dot = sum(count * right[word] for word, count in left.items() if word in right)
    left_norm = math.sqrt(sum(count * count for count in left.values()))
    right_norm = math.sqrt(sum(count * count for count in right.values()))
    if not left_norm or not right_norm:
        return 0.0
    return min(1.0, dot / (left_norm * right_norm))


def score_activity(
    activity: Mapping[str, Any],
    project_text: str,
    *,
    project_vector: Counter[str] | None = None,
) -> CompletenessScore:
    """Score one activity for coherence, depth and actionability."""
    description = _text(activity.get("description"))
    activity_text = description or _text(activity.get("title"))
    if project_vector is None:
        project_vector = word_frequencies(project_text)
    coherence = cosine_similarity(word_frequencies(activity_text), project_vector)

    bullets = sum(1 for line in description.splitlines() if _BULLET_RE.match(line))
    depth = min(bullets * BULLET_WEIGHT, BULLET_CAP)
    details = activity.get("technicalDetails")
    if isinstance(details, Mapping):
        for key in ("suggestedFiles", "suggestedCommands", "dependencies"):
            if _non_empty_list(details.get(key)):
                depth += DETAIL_BONUS
    depth = min(depth, 1.0)

    criteria = activity.get("acceptanceCriteria")
    actionable = 1.0 if _non_empty_list(criteria) and len(criteria) >= MIN_ACCEPTANCE_CRITERIA else 0.0

    completeness = COHERENCE_WEIGHT * coherence + DEPTH_WEIGHT * depth + ACTIONABLE_WEIGHT * actionable
    return CompletenessScore(
        coherence=coherence,
        depth=depth,
        actionable=actionable,
        completeness=min(1.0, completeness),
    )


def score_preset(activities: Sequence[Mapping[str, Any]], project_text: str) -> PresetScore:
    """Score every activity and average their completeness (0 for an empty list)."""
    project_vector = word_frequencies(project_text)
    scores = [
        score_activity(activity, project_text, project_vector=project_vector)
        for activity in activities
        if isinstance(activity, Mapping)
    ]
    if not scores:
        return PresetScore(activities=[], average_completeness=0.0)
    average = sum(score.completeness for score in scores) / len(scores)
    return PresetScore(activities=scores, average_completeness=average)


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _non_empty_list(value: Any) -> bool:
    return isinstance(value, list) and len(value) > 0
