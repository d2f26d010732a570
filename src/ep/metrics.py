"""In-process counters for pipeline outcomes."""

from __future__ import annotations

import threading
from collections import Counter
from dataclasses import dataclass, field

__all__ = [
    "ATTEMPTS_TOTAL",
    "CACHE_HITS_TOTAL",
    "FALLBACK_TOTAL",
    "MetricsRegistry",
    "SUCCESS_TOTAL",
]

ATTEMPTS_TOTAL = "preset_generation_attempts_total"
SUCCESS_TOTAL = "preset_generation_success_total"
FALLBACK_TOTAL = "preset_generation_fallback_total"
CACHE_HITS_TOTAL = "preset_cache_hits_total"


@dataclass
class MetricsRegistry:
    """Thread-safe counter registry injected into the pipeline."""

    counters: Counter[str] = field(default_factory=Counter)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def inc(self, name: str, value: int = 1) -> None:
        with self._lock:
            self.counters[name] += max(0, int(value))

    def get(self, name: str) -> int:
        with self._lock:
            return self.counters[name]

    def snapshot(self) -> dict[str, int]:
        """Return a copy of every counter, including the well-known ones at zero."""
        with self._lock:
            values = {name: 0 for name in (ATTEMPTS_TOTAL, SUCCESS_TOTAL, FALLBACK_TOTAL, CACHE_HITS_TOTAL)}
            values.update(self.counters)
            return values

    def reset(self) -> None:
        with self._lock:
            self.counters.clear()

    def render_prometheus(self) -> str:
        lines: list[str] = []
        snapshot = self.snapshot()
        for key in sorted(snapshot):
            metric = key.replace(".", "_")
            lines.append(f"# TYPE {metric} counter")
            lines.append(f"{metric} {snapshot[key]}")
        return "\n".join(lines) + ("\n" if lines else "")
