"""Convenience exports for text-generation backend implementations."""

from .backend import (
    BackendError,
    BackendRateLimitedError,
    BackendResponseFormatError,
    BackendTimeoutError,
    BackendTransportError,
    CompletionBackend,
    CompletionRequest,
    parse_json_payload,
)
from .openai_chat import OpenAIChatBackend

__all__ = [
    "BackendError",
    "BackendRateLimitedError",
    "BackendResponseFormatError",
    "BackendTimeoutError",
    "BackendTransportError",
    "CompletionBackend",
    "CompletionRequest",
    "OpenAIChatBackend",
    "parse_json_payload",
]
