"""Content-addressable preset cache on top of a redis-compatible key/value store."""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from typing import Any, Callable, Mapping, Optional, Protocol

from pydantic import ValidationError

from .schema import PresetOutput, preset_payload

__all__ = [
    "CACHE_KEY_PREFIX",
    "KeyValueStore",
    "PresetCache",
    "build_enriched_prompt",
    "derive_cache_key",
    "prompt_hash",
]

LOGGER = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "processed:preset:"
DEFAULT_CATEGORY = "MULTI"


class KeyValueStore(Protocol):
    def get(self, name: str) -> Any: ...
    def set(self, name: str, value: Any, ex: Any = None) -> Any: ...


def build_enriched_prompt(
    description: str,
    answers: Mapping[str, Any] | None,
    category: str | None = None,
) -> str:
    """Concatenate sanitised inputs into the prompt text that also keys the cache.

    ``description`` and ``answers`` must already be sanitised; answers are
    serialised with sorted keys so equal mappings always render identically.
    """
    answers_json = json.dumps(dict(answers or {}), indent=2, sort_keys=True, ensure_ascii=False, default=str)
    return (
        "PROJECT DESCRIPTION:\n"
        f"{description}\n\n"
        "USER ANSWERS:\n"
        f"{answers_json}\n\n"
        f"TECHNOLOGY CATEGORY: {category or DEFAULT_CATEGORY}\n"
    )


def prompt_hash(enriched_prompt: str) -> str:
    return hashlib.sha256(enriched_prompt.encode("utf-8")).hexdigest()


def derive_cache_key(enriched_prompt: str) -> str:
    """Return ``processed:preset:<sha256 of the enriched prompt>``."""
    return f"{CACHE_KEY_PREFIX}{prompt_hash(enriched_prompt)}"


def _redis_client_factory(url: str, connect_timeout: float, max_retries: int) -> Callable[[], KeyValueStore]:
    def factory() -> KeyValueStore:
        import redis
        from redis.backoff import ExponentialBackoff
        from redis.retry import Retry

        return redis.Redis.from_url(
            url,
            socket_connect_timeout=connect_timeout,
            socket_timeout=connect_timeout,
            retry=Retry(ExponentialBackoff(cap=3.0, base=0.1), max_retries),
            retry_on_error=[redis.exceptions.ConnectionError, redis.exceptions.TimeoutError],
        )

    return factory


def _cache_errors() -> tuple[type[BaseException], ...]:
    import redis

    return (redis.exceptions.RedisError, OSError)


class PresetCache:
    """Best-effort cache: failures are logged and reported as a miss or a dropped write."""

    def __init__(
        self,
        url: str = "redis://localhost:6379",
        *,
        client: Optional[KeyValueStore] = None,
        connect_timeout: float = 5.0,
        max_retries: int = 3,
    ) -> None:
        self._url = url
        self._client = client
        self._factory: Optional[Callable[[], KeyValueStore]] = None
        if client is None:
            self._factory = _redis_client_factory(url, connect_timeout, max_retries)
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: Any) -> "PresetCache":
        """Build from a :class:`~ep.config.PipelineConfig`."""
        return cls(
            config.redis_url,
            connect_timeout=config.cache_connect_timeout,
            max_retries=config.cache_max_retries,
        )

    def _get_client(self) -> KeyValueStore:
        with self._lock:
            if self._client is None:
                assert self._factory is not None
                self._client = self._factory()
            return self._client

    def _discard_client(self) -> None:
        # Injected clients are kept; only connections built from the URL are rebuilt.
        if self._factory is None:
            return
        with self._lock:
            self._client = None

    def get(self, key: str) -> bytes | None:
        """Return the stored bytes for ``key`` or ``None`` on a miss or an unavailable store."""
        try:
            value = self._get_client().get(key)
        except _cache_errors() as error:
            LOGGER.warning("Cache read for %s failed; treating as miss: %s", key, error)
            self._discard_client()
            return None
        if value is None:
            return None
        if isinstance(value, str):
            return value.encode("utf-8")
        return bytes(value)

    def set(self, key: str, value: bytes, ttl_seconds: int) -> bool:
        """Store ``value`` with an expiry; returns ``False`` when the write was dropped."""
        try:
            self._get_client().set(key, value, ex=int(ttl_seconds))
        except _cache_errors() as error:
            LOGGER.warning("Cache write for %s dropped: %s", key, error)
            self._discard_client()
            return False
        return True

    def load_preset(self, key: str) -> PresetOutput | None:
        """Return the cached preset for ``key``; unreadable entries count as a miss."""
        raw = self.get(key)
        if raw is None:
            return None
        try:
            return PresetOutput.model_validate_json(raw)
        except ValidationError as error:
            LOGGER.warning("Ignoring unreadable cache entry %s: %s", key, error.errors(include_url=False)[:3])
            return None

    def store_preset(self, key: str, preset: PresetOutput, ttl_seconds: int) -> bool:
        encoded = json.dumps(preset_payload(preset), separators=(",", ":"), ensure_ascii=False).encode("utf-8")
        return self.set(key, encoded, ttl_seconds)
