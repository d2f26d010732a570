"""Backend base class shared by all text-generation integrations."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

__all__ = [
    "BackendError",
    "BackendRateLimitedError",
    "BackendResponseFormatError",
    "BackendTimeoutError",
    "BackendTransportError",
    "CompletionBackend",
    "CompletionRequest",
    "parse_json_payload",
]


class BackendError(RuntimeError):
    """Base error raised for text-generation backend failures."""


class BackendTransportError(BackendError):
    """Raised when the underlying transport fails to return a response."""


class BackendTimeoutError(BackendTransportError):
    """Raised when the backend does not answer within the configured timeout."""


class BackendRateLimitedError(BackendTransportError):
    """Raised when the backend rejects the call because of rate limiting."""


class BackendResponseFormatError(BackendError):
    """Raised when the backend returns a payload without usable JSON text."""


@dataclass(slots=True)
class CompletionRequest:
    """Single prompt pair sent to the backend."""

    system_prompt: str
    user_prompt: str
    temperature: float = 0.0
    max_output_tokens: int = 4096
    model: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_payload(self, default_model: str) -> Dict[str, Any]:
        """Render a transport-ready payload for a chat-completions style API."""
        payload: Dict[str, Any] = {
            "model": self.model or default_model,
            "messages": [
                {"role": "system", "content": self.system_prompt},
                {"role": "user", "content": self.user_prompt},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_output_tokens,
            "response_format": {"type": "json_object"},
        }
        if self.metadata:
            max_metadata_len = 512
            serialised_metadata: Dict[str, str] = {}
            for key, value in self.metadata.items():
                if isinstance(value, str):
                    formatted = value
                else:
                    formatted = json.dumps(value, separators=(",", ":"), sort_keys=True)
                if len(formatted) > max_metadata_len:
                    formatted = f"{formatted[: max_metadata_len - 3]}..."
                serialised_metadata[key] = formatted
            payload["metadata"] = serialised_metadata
        return payload


class CompletionBackend:
    """Prompt in, completion text out. One call per stage attempt, no internal retries."""

    def __init__(self, model: str) -> None:
        self._model = model

    @property
    def model(self) -> str:
        """Return the default model name configured for this backend."""
        return self._model

    def complete(
        self,
        system: str,
        user: str,
        *,
        temperature: float,
        max_output_tokens: int = 4096,
    ) -> str:
        """Send one completion request and return the raw completion text."""
        request = CompletionRequest(
            system_prompt=system,
            user_prompt=user,
            temperature=temperature,
            max_output_tokens=max_output_tokens,
        )
        text = self._raw_complete(request.to_payload(self._model))
        if not isinstance(text, str) or not text.strip():
            raise BackendResponseFormatError("Backend returned an empty completion.")
        return text

    def _raw_complete(self, payload: Dict[str, Any]) -> str:
        """Perform the transport call. Subclasses must implement."""
        raise NotImplementedError("Subclasses must implement _raw_complete().")


_FENCE_RE = re.compile(r"^```[A-Za-z]*\s*\n(.*?)\n?```", re.DOTALL)
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")
_OPENING_RE = re.compile(r"[{\[]")
_TYPOGRAPHIC = str.maketrans(
    {
        "\u201c": '"',
        "\u201d": '"',
        "\u2018": "'",
        "\u2019": "'",
        "\u00a0": " ",
        "\ufeff": "",
    }
)


def parse_json_payload(raw_response: str) -> Any:
    """Parse model output as JSON.

    Handles smart quotes, a wrapping Markdown fence, trailing commas and
    chatter around the first JSON value. Anything else is a format error.
    """
    text = (raw_response or "").strip()
    if not text:
        raise BackendResponseFormatError("Model returned an empty response.")

    text = text.translate(_TYPOGRAPHIC)
    fenced = _FENCE_RE.match(text)
    if fenced:
        text = fenced.group(1).strip()
    cleaned = _TRAILING_COMMA_RE.sub(r"\1", text)

    for candidate in (text, cleaned):
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue

    embedded = _first_embedded_value(cleaned)
    if embedded is not None:
        return embedded
    raise BackendResponseFormatError(f"Model returned invalid JSON: {text[:200]}")


def _first_embedded_value(text: str) -> Any | None:
    decoder = json.JSONDecoder()
    for match in _OPENING_RE.finditer(text):
        try:
            value, _ = decoder.raw_decode(text, match.start())
        except json.JSONDecodeError:
            continue
        return value
    return None
