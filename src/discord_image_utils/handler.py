# handler.py
# Boundary error handling: converts arbitrary exceptions into the classified taxonomy
import functools
import math
from typing import Any, Awaitable, Callable, Optional, Sequence, TypeVar, Union

from .config import SETTINGS
from .errors import DiscordImageError, ValidationError, _describe_value
from .logger import get_logger, parse_level

log = get_logger()

T = TypeVar("T")


class _NoFallback:
    def __repr__(self):
        return "NO_FALLBACK"

    def __bool__(self):
        return False

# None is a legitimate fallback value, so "nothing supplied" needs its own marker
NO_FALLBACK: Any = _NoFallback()


class ErrorHandler:
    """
    Logs classified errors and adapts everything else into them.
    The minimum level is fixed when the handler is built; there is no global
    setter to flip it mid-flight.
    """

    def __init__(self, level: Union[str, int] = "error", logger=None):
        self.level = parse_level(level)
        self.logger = logger or log

    def log(self, error: BaseException, level: Union[str, int] = "error", logger=None) -> None:
        """Emit `error` if `level` clears the configured minimum; `logger` overrides the handler's own."""
        target = parse_level(level)
        if target < self.level:
            return
        if isinstance(error, DiscordImageError):
            (logger or self.logger).log(target, f"{error.code}: {error.message} | details={dict(error.details)}")
        else:
            (logger or self.logger).log(target, f"{type(error).__name__}: {error}")

    def _wrap(self, error: Exception, context: Optional[str], **extra) -> DiscordImageError:
        context_message = f" in {context}" if context else ""
        return DiscordImageError(
            f"Unexpected error{context_message}: {error}",
            "UNEXPECTED_ERROR",
            500,
            {"context": context, "original_error": type(error).__name__, **extra},
        )

    def _fallback_notice(self, context: Optional[str]) -> None:
        self.log(DiscordImageError(f"Using fallback value for {context}", "FALLBACK_USED", 200), "warn")

    async def with_error_handling(
        self,
        fn: Callable[[], Awaitable[T]],
        context: Optional[str] = None,
        fallback: Any = NO_FALLBACK,
    ) -> T:
        """
        Await fn(). Classified errors are logged and re-raised untouched; anything
        else becomes an UNEXPECTED_ERROR which is raised, or swapped for `fallback`
        when one was given.
        """
        try:
            return await fn()
        except DiscordImageError as e:
            self.log(e)
            raise
        except Exception as e:
            wrapped = self._wrap(e, context)
            self.log(wrapped)
            if fallback is not NO_FALLBACK:
                self._fallback_notice(context)
                return fallback
            raise wrapped from e

    def safe_fn(
        self,
        fn: Callable[..., T],
        context: Optional[str] = None,
        fallback: Any = NO_FALLBACK,
    ) -> Callable[..., T]:
        """Synchronous counterpart of with_error_handling, returned as a wrapped callable."""

        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                return fn(*args, **kwargs)
            except DiscordImageError as e:
                self.log(e)
                raise
            except Exception as e:
                wrapped = self._wrap(e, context, args=[_describe_value(a) for a in args])
                self.log(wrapped)
                if fallback is not NO_FALLBACK:
                    self._fallback_notice(context)
                    return fallback
                raise wrapped from e

        return wrapper

    # Guards

    @staticmethod
    def validate_required(value: T, name: str, type_: Union[type, tuple, None] = None) -> T:
        if value is None:
            raise ValidationError(f"{name} is required", name, value)
        if type_ is not None and not isinstance(value, type_):
            expected = type_.__name__ if isinstance(type_, type) else "/".join(t.__name__ for t in type_)
            raise ValidationError(
                f"{name} must be of type {expected}, got {type(value).__name__}",
                name,
                value,
            )
        return value

    @staticmethod
    def validate_range(value: float, min_value: float, max_value: float, name: str) -> float:
        ErrorHandler.validate_required(value, name)
        if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value):
            raise ValidationError(f"{name} must be a valid number", name, value)
        if value < min_value or value > max_value:
            raise ValidationError(
                f"{name} must be between {min_value} and {max_value}, got {value}",
                name,
                value,
            )
        return value

    @staticmethod
    def validate_string_length(value: str, max_length: int, name: str, min_length: int = 0) -> str:
        ErrorHandler.validate_required(value, name, str)
        if len(value) < min_length:
            raise ValidationError(f"{name} must be at least {min_length} characters long", name, value)
        if len(value) > max_length:
            raise ValidationError(f"{name} must be no more than {max_length} characters long", name, value)
        return value

    @staticmethod
    def validate_array(value: Sequence[T], name: str, min_length: int = 0, max_length: Optional[int] = None) -> Sequence[T]:
        ErrorHandler.validate_required(value, name)
        if not isinstance(value, (list, tuple)):
            raise ValidationError(f"{name} must be an array", name, value)
        if len(value) < min_length:
            raise ValidationError(f"{name} must have at least {min_length} items", name, value)
        if max_length is not None and len(value) > max_length:
            raise ValidationError(f"{name} must have no more than {max_length} items", name, value)
        return value


error_handler = ErrorHandler(SETTINGS.log_level)
