# resolver.py
# Turns whatever the caller handed us (bytes or a URL) into validated image bytes
from typing import Optional

import aiohttp

from .config import SETTINGS
from .errors import ValidationError
from .fetch import ImageFetcher
from .handler import ErrorHandler
from .inputs import InMemoryBytes, to_image_input
from .logger import get_logger
from .retry import RetryPolicy, is_server_error

log = get_logger()


class InputResolver:
    """
    Resolves an image argument to bytes.

    In-memory bytes come back untouched. URLs must be http(s) and are downloaded
    through ImageFetcher, retried on timeouts and 5xx-class network failures only.
    Validation failures are never retried.
    """

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        *,
        retry_policy: Optional[RetryPolicy] = None,
        fetcher: Optional[ImageFetcher] = None,
        settings=SETTINGS,
    ):
        self.settings = settings
        self.fetcher = fetcher or ImageFetcher(session)
        self.retry_policy = retry_policy or RetryPolicy.from_settings(
            settings,
            retry_condition=is_server_error,
            context="image fetch",
        )

    async def resolve(self, value, timeout_ms: Optional[float] = None) -> bytes:
        timeout_ms = self.settings.timeout_ms if timeout_ms is None else timeout_ms
        ErrorHandler.validate_range(timeout_ms, 0, float("inf"), "timeout_ms")
        if timeout_ms == 0:
            raise ValidationError("timeout_ms must be greater than 0", "timeout_ms", timeout_ms)

        image = to_image_input(value)

        if isinstance(image, InMemoryBytes):
            if not image.data:
                raise ValidationError("image buffer is empty", "image", image.data)
            return image.data

        url = image.url
        lowered = url.lower()
        if not lowered.startswith(("http://", "https://")):
            raise ValidationError("image URL must start with http:// or https://", "image", url)
        if not image.is_https:
            log.warning(f"Fetching image over plain http, prefer https: {url}")

        return await self.retry_policy.run(lambda: self.fetcher.fetch(url, timeout_ms))


async def resolve_input(
    value,
    timeout_ms: Optional[float] = None,
    *,
    session: Optional[aiohttp.ClientSession] = None,
) -> bytes:
    """Resolve one image argument with a throwaway InputResolver."""
    return await InputResolver(session).resolve(value, timeout_ms)
