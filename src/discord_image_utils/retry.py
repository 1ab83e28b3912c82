# retry.py
# Retry with exponential backoff for fallible coroutines
import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, TypeVar

from .errors import DiscordImageError, NetworkError, RequestTimeoutError
from .extraconfig import (
    RETRY_BACKOFF_FACTOR,
    RETRY_BASE_DELAY_MS,
    RETRY_MAX_ATTEMPTS,
    RETRY_MAX_DELAY_MS,
)
from .handler import ErrorHandler, error_handler
from .logger import get_logger

log = get_logger()

T = TypeVar("T")


def is_transient(error: BaseException) -> bool:
    """Default retry condition: network and timeout failures."""
    return isinstance(error, (NetworkError, RequestTimeoutError))


def is_server_error(error: BaseException) -> bool:
    """Timeouts, and network failures on the server's side (status >= 500)."""
    if isinstance(error, RequestTimeoutError):
        return True
    return isinstance(error, NetworkError) and error.status_code >= 500


@dataclass(frozen=True)
class RetryAttempt:
    attempt: int      # the attempt that just failed, 1-based
    delay_ms: float   # sleep before the next one


@dataclass
class RetryPolicy:
    max_attempts: int = RETRY_MAX_ATTEMPTS
    base_delay_ms: float = RETRY_BASE_DELAY_MS
    max_delay_ms: float = RETRY_MAX_DELAY_MS
    backoff_factor: float = RETRY_BACKOFF_FACTOR
    retry_condition: Callable[[BaseException], bool] = is_transient
    context: str = "operation"
    on_retry: Optional[Callable[[RetryAttempt], None]] = None
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False)
    handler: ErrorHandler = field(default=error_handler, repr=False)

    def __post_init__(self):
        ErrorHandler.validate_required(self.max_attempts, "max_attempts", int)
        ErrorHandler.validate_range(self.max_attempts, 1, float("inf"), "max_attempts")
        ErrorHandler.validate_range(self.base_delay_ms, 0, float("inf"), "base_delay_ms")
        ErrorHandler.validate_range(self.max_delay_ms, 0, float("inf"), "max_delay_ms")
        ErrorHandler.validate_range(self.backoff_factor, 1, float("inf"), "backoff_factor")

    @classmethod
    def from_settings(cls, settings, **overrides) -> "RetryPolicy":
        options = dict(
            max_attempts=settings.max_attempts,
            base_delay_ms=settings.base_delay_ms,
            max_delay_ms=settings.max_delay_ms,
            backoff_factor=settings.backoff_factor,
        )
        options.update(overrides)
        return cls(**options)

    def delay_for(self, attempt: int) -> float:
        """Milliseconds to wait after `attempt` (1-based) fails."""
        return min(self.base_delay_ms * self.backoff_factor ** (attempt - 1), self.max_delay_ms)

    async def run(self, fn: Callable[[], Awaitable[T]]) -> T:
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                return await fn()
            except Exception as e:
                last_error = e

            self.handler.log(
                DiscordImageError(
                    f"Attempt {attempt}/{self.max_attempts} failed for {self.context}: {last_error}",
                    "RETRY_ATTEMPT_FAILED",
                    500,
                    {
                        "attempt": attempt,
                        "max_attempts": self.max_attempts,
                        "context": self.context,
                        "original_error": str(last_error),
                    },
                ),
                "warn",
                logger=log,
            )

            if attempt == self.max_attempts or not self.retry_condition(last_error):
                break

            delay = self.delay_for(attempt)
            self.handler.log(
                DiscordImageError(
                    f"Retrying {self.context} in {delay:g}ms (attempt {attempt + 1}/{self.max_attempts})",
                    "RETRY_SCHEDULED",
                    200,
                    {"delay": delay, "attempt": attempt + 1, "max_attempts": self.max_attempts, "context": self.context},
                ),
                "info",
                logger=log,
            )
            if self.on_retry:
                self.on_retry(RetryAttempt(attempt, delay))
            await self.sleep(delay / 1000)

        if isinstance(last_error, DiscordImageError):
            raise last_error

        raise DiscordImageError(
            f"All {self.max_attempts} attempts failed for {self.context}: {last_error}",
            "MAX_RETRIES_EXCEEDED",
            500,
            {"max_attempts": self.max_attempts, "context": self.context, "last_error": str(last_error)},
        ) from last_error


async def with_retry(fn: Callable[[], Awaitable[T]], **options) -> T:
    """One-shot helper: RetryPolicy(**options).run(fn)."""
    return await RetryPolicy(**options).run(fn)
