# fetch.py
# Bounded HTTP(S) image download: redirects, content-type gate, size cap, deadline
import asyncio
import urllib.parse
from typing import Iterable, Optional

import aiohttp

from .errors import NetworkError, RequestTimeoutError, ValidationError
from .extraconfig import (
    ALLOWED_IMAGE_TYPES,
    CHUNK_SIZE,
    DEFAULT_TIMEOUT_MS,
    MAX_IMAGE_BYTES,
    MAX_REDIRECTS,
)
from .logger import get_logger

log = get_logger()

REQUEST_HEADERS = {
    "User-Agent": "discord-image-utils/0.4 (+aiohttp)",
    "Accept": "image/*;q=1.0,*/*;q=0.1",
}


def is_allowed_content_type(header: Optional[str], allowed: Iterable[str] = ALLOWED_IMAGE_TYPES) -> bool:
    """True when the MIME type (parameters after ';' ignored) is in the allow-list."""
    if not header:
        return False
    mime = header.split(";", 1)[0].strip().lower()
    return mime in allowed


class ImageFetcher:
    """
    Downloads one image over HTTP(S).

    Redirects are followed by hand, one hop at a time, up to `max_redirects`.
    The whole download (every hop plus the body) shares a single deadline.
    A borrowed `session` is never closed; without one, a private session lives
    for exactly one fetch.
    """

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        *,
        max_redirects: int = MAX_REDIRECTS,
        max_bytes: int = MAX_IMAGE_BYTES,
        allowed_types: Iterable[str] = ALLOWED_IMAGE_TYPES,
        chunk_size: int = CHUNK_SIZE,
    ):
        self.session = session
        self.max_redirects = max_redirects
        self.max_bytes = max_bytes
        self.allowed_types = frozenset(t.lower() for t in allowed_types)
        self.chunk_size = chunk_size

    async def fetch(self, url: str, timeout_ms: float = DEFAULT_TIMEOUT_MS) -> bytes:
        try:
            return await asyncio.wait_for(self._fetch(url), timeout=timeout_ms / 1000)
        except asyncio.TimeoutError:
            log.warningtrace(f"Fetch of {url} timed out after {timeout_ms}ms")
            raise RequestTimeoutError(
                f"Fetching image timed out after {timeout_ms}ms",
                timeout_ms,
                "fetch image",
            ) from None

    async def _fetch(self, url: str) -> bytes:
        if self.session is not None:
            return await self._follow(self.session, url)
        # the deadline in fetch() is the only clock
        async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=None)) as session:
            return await self._follow(session, url)

    async def _follow(self, session: aiohttp.ClientSession, url: str) -> bytes:
        current = url
        for hop in range(self.max_redirects + 1):
            log.trace(f"GET {current} (hop {hop})")
            try:
                response = await session.get(current, allow_redirects=False, headers=REQUEST_HEADERS)
            except aiohttp.ClientError as e:
                raise NetworkError(f"Request to {current} failed: {e}", current) from e

            try:
                if 300 <= response.status < 400:
                    current = self._next_location(response, current, hop)
                    response.release()
                    continue

                if not 200 <= response.status < 300:
                    raise NetworkError(
                        f"Request to {current} failed with status {response.status}",
                        current,
                        response.status,
                    )

                body = await self._read_body(response, current)
            except BaseException:
                # drop the socket instead of handing a half-read connection back to the pool
                response.close()
                raise

            response.release()
            return body

        # unreachable: the last hop either returns or raises inside _next_location
        raise NetworkError(f"Too many redirects (more than {self.max_redirects})", current)

    def _next_location(self, response: aiohttp.ClientResponse, current: str, hop: int) -> str:
        location = response.headers.get("Location")
        if not location:
            raise NetworkError(
                f"Redirect ({response.status}) from {current} has no Location header",
                current,
                response.status,
            )
        if hop >= self.max_redirects:
            raise NetworkError(
                f"Too many redirects (more than {self.max_redirects})",
                current,
                response.status,
            )

        target = urllib.parse.urljoin(current, location)
        if urllib.parse.urlparse(target).scheme.lower() not in ("http", "https"):
            raise NetworkError(f"Redirect to unsupported URL: {target}", target, response.status)

        log.info(f"Following redirect {hop + 1}/{self.max_redirects}: {current} -> {target}")
        return target

    async def _read_body(self, response: aiohttp.ClientResponse, url: str) -> bytes:
        content_type = response.headers.get("Content-Type", "")
        if not is_allowed_content_type(content_type, self.allowed_types):
            raise ValidationError(
                f"Invalid content type {content_type or '(missing)'}; expected an image",
                "content-type",
                content_type or None,
            )

        declared = response.content_length
        if declared is not None and declared > self.max_bytes:
            raise ValidationError(
                f"Image too large: {declared} bytes (max {self.max_bytes})",
                "content-length",
                declared,
            )

        chunks = []
        total = 0
        try:
            async for chunk in response.content.iter_chunked(self.chunk_size):
                total += len(chunk)
                if total > self.max_bytes:
                    raise ValidationError(
                        f"Image too large: more than {self.max_bytes} bytes",
                        "image",
                        url,
                    )
                chunks.append(chunk)
        except aiohttp.ClientError as e:
            raise NetworkError(f"Stream error while downloading {url}: {e}", url) from e

        body = b"".join(chunks)
        if not body:
            raise ValidationError("Empty response body", "image", url)

        log.trace(f"Downloaded {len(body)} bytes from {url}")
        return body
