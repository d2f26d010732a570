"""Production backend that speaks the OpenAI chat-completions JSON API."""

from __future__ import annotations

import json
import os
from typing import Any, Callable, Dict, Optional

from .backend import (
    BackendRateLimitedError,
    BackendResponseFormatError,
    BackendTimeoutError,
    BackendTransportError,
    CompletionBackend,
)

__all__ = ["OpenAIChatBackend"]


Transport = Callable[[Dict[str, Any]], str]


class OpenAIChatBackend(CompletionBackend):
    """Thin adapter around the chat-completions endpoint."""

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: str = "https://api.openai.com/v1/chat/completions",
        model: str = "gpt-4o-mini",
        transport: Optional[Transport] = None,
        timeout: float = 50.0,
    ) -> None:
        super().__init__(model=model)
        self._api_key = api_key or os.getenv("OPENAI_API_KEY")
        self._base_url = base_url
        self._timeout = timeout
        self._transport = transport or self._http_transport

        if transport is None and not self._api_key:
            raise ValueError("An API key is required when using the default transport.")

    @property
    def timeout(self) -> float:
        return self._timeout

    def _raw_complete(self, payload: Dict[str, Any]) -> str:
        """Send the request over the configured transport."""
        try:
            raw_response = self._transport(payload)
        except (BackendTransportError, BackendResponseFormatError):
            raise
        except TimeoutError as error:
            raise BackendTimeoutError(f"Backend timed out after {self._timeout}s.") from error
        except Exception as error:  # pragma: no cover
            raise BackendTransportError(f"Transport rejected the request: {error}") from error

        content = self._extract_message_content(raw_response)
        if content is None:
            raise BackendResponseFormatError("Chat completion did not contain message content.")
        return content

    def _http_transport(self, payload: Dict[str, Any]) -> str:
        """Default HTTP transport that targets the chat-completions API."""
        import socket
        import urllib.error
        import urllib.request

        data = json.dumps(payload).encode("utf-8")
        request = urllib.request.Request(
            self._base_url,
            data=data,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self._api_key}",
            },
            method="POST",
        )

        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                raw = response.read()
                status = getattr(response, "status", 200)
        except (TimeoutError, socket.timeout) as error:  # pragma: no cover - network-dependent
            raise BackendTimeoutError("Chat completion timed out.") from error
        except urllib.error.HTTPError as error:  # pragma: no cover - network-dependent
            message = error.read().decode("utf-8", errors="ignore")
            if error.code == 429:
                raise BackendRateLimitedError(f"HTTP 429: {message}") from error
            raise BackendTransportError(f"HTTP {error.code}: {message}") from error
        except urllib.error.URLError as error:  # pragma: no cover - network-dependent
            if isinstance(error.reason, (TimeoutError, socket.timeout)):
                raise BackendTimeoutError("Chat completion timed out.") from error
            raise BackendTransportError(f"Failed to reach chat endpoint: {error.reason}") from error

        if status == 429:
            raise BackendRateLimitedError("HTTP 429 from chat endpoint")
        if status >= 400:
            raise BackendTransportError(f"Unexpected HTTP status {status}")

        return raw.decode("utf-8")

    @staticmethod
    def _extract_message_content(raw_response: str) -> Optional[str]:
        """Return ``choices[0].message.content`` or the raw text when it is not an envelope."""
        if not raw_response:
            return None

        try:
            data = json.loads(raw_response)
        except json.JSONDecodeError:
            return raw_response

        if not isinstance(data, dict):
            return raw_response

        error = data.get("error")
        if isinstance(error, dict):
            if error.get("code") == "rate_limit_exceeded" or error.get("type") == "rate_limit_error":
                raise BackendRateLimitedError(str(error.get("message") or "rate limited"))
            raise BackendTransportError(str(error.get("message") or error))

        choices = data.get("choices")
        if isinstance(choices, list):
            for choice in choices:
                if not isinstance(choice, dict):
                    continue
                message = choice.get("message")
                if isinstance(message, dict):
                    content = message.get("content")
                    if isinstance(content, str) and content.strip():
                        return content
            return None

        # Not a chat envelope: the transport already returned the completion text.
        return raw_response
