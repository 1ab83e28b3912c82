# errors.py
# Classified error taxonomy shared by the resolver, the retry policy and every generator
import json
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional


def _describe_value(value: Any) -> Any:
    """Make an offending value safe to put in error details."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return f"<{len(value)} bytes>"
    try:
        return json.dumps(value, default=repr)
    except (TypeError, ValueError):
        return repr(value)


class DiscordImageError(Exception):
    """
    Base class for every classified error raised by this package.
    Carries a machine-readable code, an HTTP-like status, structured details and
    the UTC time it was created. Instances are read-only once built.
    """

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        status_code: int = 500,
        details: Optional[Mapping[str, Any]] = None,
    ):
        super().__init__(message)
        self._freeze(message, code, status_code, details, datetime.now(timezone.utc))

    def _freeze(self, message, code, status_code, details, timestamp):
        object.__setattr__(self, "message", message)
        object.__setattr__(self, "code", code)
        object.__setattr__(self, "status_code", status_code)
        object.__setattr__(self, "details", MappingProxyType(dict(details or {})))
        object.__setattr__(self, "timestamp", timestamp)
        object.__setattr__(self, "_frozen", True)

    def __reduce__(self):
        # subclass constructors take different arguments, so copy/pickle rebuild from the full state
        return (
            _rebuild_error,
            (type(self), self.message, self.code, self.status_code, dict(self.details), self.timestamp),
        )

    def __setattr__(self, name, value):
        # traceback bookkeeping still has to work after construction
        if getattr(self, "_frozen", False) and not name.startswith("__"):
            raise AttributeError(f"{type(self).__name__} is immutable")
        object.__setattr__(self, name, value)

    @property
    def name(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "message": self.message,
            "code": self.code,
            "status_code": self.status_code,
            "details": dict(self.details),
            "timestamp": self.timestamp.isoformat(),
        }

    def __repr__(self) -> str:
        return f"{self.name}(code={self.code!r}, status_code={self.status_code}, message={self.message!r})"


def _rebuild_error(cls, message, code, status_code, details, timestamp):
    error = Exception.__new__(cls, message)
    error._freeze(message, code, status_code, details, timestamp)
    return error


class ValidationError(DiscordImageError):
    """Missing or malformed input, bad content type, oversized or empty body."""

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        super().__init__(
            message,
            "VALIDATION_ERROR",
            400,
            {"field": field, "value": _describe_value(value)},
        )


class NetworkError(DiscordImageError):
    """Non-2xx response, broken redirect, socket failure."""

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(
            message,
            "NETWORK_ERROR",
            status_code or 503,
            {"url": url, "original_status_code": status_code},
        )


class RequestTimeoutError(DiscordImageError):
    """An operation ran past its configured timeout."""

    def __init__(self, message: str, timeout: Optional[float] = None, operation: Optional[str] = None):
        super().__init__(
            message,
            "TIMEOUT_ERROR",
            408,
            {"timeout": timeout, "operation": operation},
        )


class ImageProcessingError(DiscordImageError):
    def __init__(self, message: str, operation: Optional[str] = None, image_info: Optional[Mapping[str, Any]] = None):
        super().__init__(
            message,
            "IMAGE_PROCESSING_ERROR",
            500,
            {"operation": operation, "image_info": dict(image_info) if image_info else None},
        )


class FileSystemError(DiscordImageError):
    def __init__(self, message: str, path: Optional[str] = None, operation: Optional[str] = None):
        super().__init__(
            message,
            "FILE_SYSTEM_ERROR",
            500,
            {"path": path, "operation": operation},
        )


class ConfigurationError(DiscordImageError):
    def __init__(self, message: str, config: Optional[str] = None):
        super().__init__(
            message,
            "CONFIGURATION_ERROR",
            500,
            {"config": config},
        )
