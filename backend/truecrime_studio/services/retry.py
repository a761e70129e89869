"""Retry with exponential backoff for remote pipeline calls."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

import httpx
import structlog

logger = structlog.get_logger()

T = TypeVar("T")

_TRANSIENT_MARKERS = ("network", "fetch", "timeout", "functionsrelayerror", "not found")


class PipelineServiceError(RuntimeError):
    """Raised when a remote pipeline function reports failure."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass
class RetryConfig:
    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    backoff_multiplier: float = 2.0
    on_retry: Optional[Callable[[int, BaseException], None]] = None

    def delay_for(self, attempt: int) -> float:
        return min(self.initial_delay * self.backoff_multiplier ** (attempt - 1), self.max_delay)


def _status_code(error: BaseException) -> Optional[int]:
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    return getattr(error, "status_code", None)


def is_retryable_error(error: BaseException) -> bool:
    """Transient network failures, 5xx and 429 are retried; everything else is permanent."""
    if isinstance(error, httpx.TransportError):
        return True
    status = _status_code(error)
    if status is not None:
        return status == 429 or 500 <= status < 600
    message = str(error).lower()
    return any(marker in message for marker in _TRANSIENT_MARKERS)


def get_error_message(error: BaseException) -> str:
    status = _status_code(error)
    message = str(error)
    lowered = message.lower()
    if "functionsrelayerror" in lowered or "not found" in lowered:
        return "Service is still deploying. Retrying..."
    if isinstance(error, httpx.TransportError) or "network" in lowered or "fetch" in lowered:
        return "Network error. Retrying..."
    if status == 429:
        return "Rate limit exceeded. Retrying..."
    if status is not None and status >= 500:
        return "Server error. Retrying..."
    return message or "Unknown error occurred"


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    config: Optional[RetryConfig] = None,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    cfg = config or RetryConfig()
    attempt = 1
    while True:
        try:
            return await fn()
        except Exception as e:
            if not is_retryable_error(e) or attempt >= cfg.max_attempts:
                raise
            delay = cfg.delay_for(attempt)
            logger.warning("retry.scheduled", attempt=attempt, delay=delay, error=str(e))
            if cfg.on_retry is not None:
                cfg.on_retry(attempt, e)
            await sleep(delay)
            attempt += 1
