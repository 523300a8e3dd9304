"""
Error taxonomy for the LLM router.

Every failure that crosses the adapter boundary is mapped onto exactly one
LLMErrorCode. Classification looks at:
1. HTTP status codes carried by the vendor exception
2. Exception types (timeouts, connection failures)
3. Message text patterns
and falls back to PROVIDER_ERROR when nothing matches.
"""

import asyncio
import re
from enum import Enum
from typing import Any


class LLMErrorCode(str, Enum):
    """Closed set of failure kinds."""
    RATE_LIMIT = "rate_limit"
    INVALID_API_KEY = "invalid_api_key"
    QUOTA_EXCEEDED = "quota_exceeded"
    MODEL_NOT_FOUND = "model_not_found"
    CONTEXT_LENGTH_EXCEEDED = "context_length_exceeded"
    CONTENT_FILTER = "content_filter"
    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"
    PROVIDER_ERROR = "provider_error"


RETRYABLE_CODES = frozenset({
    LLMErrorCode.RATE_LIMIT,
    LLMErrorCode.TIMEOUT,
    LLMErrorCode.NETWORK_ERROR,
})


def is_retryable(code: LLMErrorCode | str) -> bool:
    """Only rate limits, timeouts and network errors are worth another attempt."""
    return LLMErrorCode(code) in RETRYABLE_CODES


class LLMError(Exception):
    """
    A classified failure from a provider call.

    Carries enough structure (code, retryable flag, provider, model) for the
    transport layer to decide between a retry-later message and a hard
    failure.
    """

    def __init__(
        self,
        message: str,
        provider: str,
        model: str,
        code: LLMErrorCode | str = LLMErrorCode.PROVIDER_ERROR,
        retryable: bool | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.model = model
        self.code = LLMErrorCode(code)
        self.retryable = is_retryable(self.code) if retryable is None else retryable
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "provider": self.provider,
            "model": self.model,
            "code": self.code.value,
            "retryable": self.retryable,
        }

    def __repr__(self) -> str:
        return (
            f"LLMError(code={self.code.value!r}, provider={self.provider!r}, "
            f"model={self.model!r}, retryable={self.retryable}, message={self.message!r})"
        )


class NoAvailableAdapterError(LLMError):
    """Raised when no configured adapter can serve the requested tier."""

    def __init__(self, message: str, tier: str):
        super().__init__(
            message,
            provider="",
            model="",
            code=LLMErrorCode.PROVIDER_ERROR,
            retryable=False,
        )
        self.tier = tier


_STATUS_CODES: dict[int, LLMErrorCode] = {
    429: LLMErrorCode.RATE_LIMIT,
    401: LLMErrorCode.INVALID_API_KEY,
    402: LLMErrorCode.QUOTA_EXCEEDED,
    403: LLMErrorCode.QUOTA_EXCEEDED,
    404: LLMErrorCode.MODEL_NOT_FOUND,
    408: LLMErrorCode.TIMEOUT,
    504: LLMErrorCode.TIMEOUT,
}

# Checked in order; the first match wins.
_MESSAGE_PATTERNS: list[tuple[LLMErrorCode, re.Pattern]] = [
    (LLMErrorCode.RATE_LIMIT, re.compile(
        r"rate[\s_-]?limit|too many requests", re.IGNORECASE)),
    (LLMErrorCode.INVALID_API_KEY, re.compile(
        r"(invalid|incorrect|missing)[\s_-]?(x-)?api[\s_-]?key|unauthori[sz]ed|authentication",
        re.IGNORECASE)),
    (LLMErrorCode.QUOTA_EXCEEDED, re.compile(
        r"quota|billing|insufficient[\s_-]?(credits|funds|balance)", re.IGNORECASE)),
    (LLMErrorCode.MODEL_NOT_FOUND, re.compile(
        r"model.{0,80}(not[\s_-]?found|does not exist|unknown)|(unknown|invalid) model",
        re.IGNORECASE)),
    (LLMErrorCode.CONTEXT_LENGTH_EXCEEDED, re.compile(
        r"context[\s_-]?(length|window)|maximum context|too many tokens|prompt is too long",
        re.IGNORECASE)),
    (LLMErrorCode.CONTENT_FILTER, re.compile(
        r"content[\s_-]?(filter|policy|management)|safety (system|filter)", re.IGNORECASE)),
    (LLMErrorCode.TIMEOUT, re.compile(
        r"timed?[\s_-]?out|timeout|deadline exceeded", re.IGNORECASE)),
    (LLMErrorCode.NETWORK_ERROR, re.compile(
        r"connection|network|econnreset|econnrefused|dns|unreachable|socket",
        re.IGNORECASE)),
]


def _status_of(exc: BaseException) -> int | None:
    """Pull an HTTP-style status code off a vendor exception, if it has one."""
    for attr in ("status_code", "status", "http_status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
        if isinstance(value, str) and value.isdigit():
            return int(value)

    response = getattr(exc, "response", None)
    status = getattr(response, "status_code", None)
    if isinstance(status, int):
        return status
    return None


def classify_error(exc: BaseException) -> LLMErrorCode:
    """
    Map an arbitrary exception onto the error taxonomy.

    Args:
        exc: Exception raised by a vendor SDK or transport.

    Returns:
        The matching LLMErrorCode; PROVIDER_ERROR if nothing matches.
    """
    if isinstance(exc, LLMError):
        return exc.code

    status = _status_of(exc)
    if status in _STATUS_CODES:
        return _STATUS_CODES[status]

    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return LLMErrorCode.TIMEOUT
    if isinstance(exc, ConnectionError):
        return LLMErrorCode.NETWORK_ERROR

    message = str(exc)
    for code, pattern in _MESSAGE_PATTERNS:
        if pattern.search(message):
            return code

    return LLMErrorCode.PROVIDER_ERROR


def wrap_error(exc: BaseException, provider: str, model: str) -> LLMError:
    """Wrap a raw exception into an LLMError; LLMErrors pass through untouched."""
    if isinstance(exc, LLMError):
        return exc

    code = classify_error(exc)
    message = str(exc) or exc.__class__.__name__
    return LLMError(
        message,
        provider=provider,
        model=model,
        code=code,
        cause=exc,
    )
