"""Image and GIF generators for Discord bots."""

from .errors import (
    ConfigurationError,
    DiscordImageError,
    FileSystemError,
    ImageProcessingError,
    NetworkError,
    RequestTimeoutError,
    ValidationError,
)
from .fetch import ImageFetcher
from .filters import (
    blur,
    circle,
    color,
    deepfry,
    glitch,
    greyscale,
    hueshift,
    invert,
    mirror,
    pixelate,
    sepia,
    sticker,
    wave,
)
from .gif import blink, triggered
from .handler import NO_FALLBACK, ErrorHandler, error_handler
from .inputs import ImageInput, InMemoryBytes, RemoteReference, to_image_input
from .logger import get_logger, setup_logging
from .resolver import InputResolver, resolve_input
from .retry import RetryAttempt, RetryPolicy, is_server_error, is_transient, with_retry

__version__ = "0.4.0"

__all__ = [
    "ConfigurationError",
    "DiscordImageError",
    "ErrorHandler",
    "FileSystemError",
    "ImageFetcher",
    "ImageInput",
    "ImageProcessingError",
    "InMemoryBytes",
    "InputResolver",
    "NO_FALLBACK",
    "NetworkError",
    "RemoteReference",
    "RequestTimeoutError",
    "RetryAttempt",
    "RetryPolicy",
    "ValidationError",
    "blink",
    "blur",
    "circle",
    "color",
    "deepfry",
    "error_handler",
    "get_logger",
    "glitch",
    "greyscale",
    "hueshift",
    "invert",
    "mirror",
    "is_server_error",
    "is_transient",
    "pixelate",
    "resolve_input",
    "sepia",
    "setup_logging",
    "sticker",
    "to_image_input",
    "triggered",
    "wave",
    "with_retry",
]
