import logging
from unittest.mock import AsyncMock, MagicMock

import pytest
from aiohttp import web

from discord_image_utils.config import Settings
from discord_image_utils.errors import NetworkError, RequestTimeoutError, ValidationError
from discord_image_utils.inputs import InMemoryBytes, RemoteReference
from discord_image_utils.resolver import InputResolver, resolve_input
from discord_image_utils.retry import RetryPolicy, is_server_error


@pytest.fixture
def fetcher():
    mock = MagicMock()
    mock.fetch = AsyncMock(return_value=b"remote-image")
    return mock


@pytest.fixture
def sleep():
    return AsyncMock()


def fast_policy(sleep, **options):
    return RetryPolicy(retry_condition=is_server_error, sleep=sleep, context="image fetch", **options)


async def test_in_memory_bytes_are_returned_untouched(fetcher, png_bytes):
    resolver = InputResolver(fetcher=fetcher)

    assert await resolver.resolve(png_bytes) is png_bytes
    assert await resolver.resolve(InMemoryBytes(png_bytes)) is png_bytes
    fetcher.fetch.assert_not_called()


@pytest.mark.parametrize("value", [b"", bytearray(), None, "", "   "])
async def test_missing_or_empty_image_is_rejected(fetcher, value):
    with pytest.raises(ValidationError):
        await InputResolver(fetcher=fetcher).resolve(value)
    fetcher.fetch.assert_not_called()


@pytest.mark.parametrize(
    "url",
    ["ftp://files.example.com/a.png", "file:///etc/passwd", "cdn.example.com/a.png", "data:image/png;base64,AAAA"],
)
async def test_non_http_urls_are_rejected(fetcher, url):
    with pytest.raises(ValidationError, match="must start with http:// or https://"):
        await InputResolver(fetcher=fetcher).resolve(url)
    fetcher.fetch.assert_not_called()


async def test_plain_http_is_fetched_with_a_warning(fetcher, caplog):
    caplog.set_level(logging.DEBUG, logger="discord_image_utils")

    body = await InputResolver(fetcher=fetcher).resolve("http://cdn.example.com/a.png")

    assert body == b"remote-image"
    assert "prefer https" in caplog.text
    fetcher.fetch.assert_awaited_once_with("http://cdn.example.com/a.png", 30000)


async def test_https_uses_configured_timeout(fetcher, caplog):
    caplog.set_level(logging.DEBUG, logger="discord_image_utils")
    resolver = InputResolver(fetcher=fetcher, settings=Settings(timeout_ms=1234))

    await resolver.resolve(RemoteReference("HTTPS://cdn.example.com/a.png"))

    fetcher.fetch.assert_awaited_once_with("HTTPS://cdn.example.com/a.png", 1234)
    assert "prefer https" not in caplog.text


async def test_explicit_timeout_overrides_settings(fetcher):
    await InputResolver(fetcher=fetcher).resolve("https://x.test/a.png", timeout_ms=250)
    fetcher.fetch.assert_awaited_once_with("https://x.test/a.png", 250)


@pytest.mark.parametrize("timeout_ms", [0, -5, "10", float("nan")])
async def test_bad_timeout_is_rejected(fetcher, timeout_ms):
    with pytest.raises(ValidationError) as info:
        await InputResolver(fetcher=fetcher).resolve("https://x.test/a.png", timeout_ms=timeout_ms)
    assert info.value.details["field"] == "timeout_ms"
    fetcher.fetch.assert_not_called()


async def test_timeouts_are_retried(fetcher, sleep):
    fetcher.fetch.side_effect = [RequestTimeoutError("late", 10, "fetch image"), b"finally"]
    resolver = InputResolver(fetcher=fetcher, retry_policy=fast_policy(sleep))

    assert await resolver.resolve("https://x.test/a.png") == b"finally"
    assert fetcher.fetch.await_count == 2
    sleep.assert_awaited_once_with(1.0)


async def test_server_errors_are_retried_until_success(serve, png_bytes, sleep):
    calls = {"n": 0}

    async def flaky(request):
        calls["n"] += 1
        if calls["n"] < 3:
            return web.Response(status=503, text="busy")
        return web.Response(body=png_bytes, content_type="image/png")

    server = await serve({"/a.png": flaky})
    resolver = InputResolver(retry_policy=fast_policy(sleep))

    assert await resolver.resolve(str(server.make_url("/a.png"))) == png_bytes
    assert len(server.hits) == 3
    assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]


async def test_server_errors_exhaust_attempts(serve, sleep):
    async def down(request):
        return web.Response(status=502)

    server = await serve({"/a.png": down})
    resolver = InputResolver(retry_policy=fast_policy(sleep, max_attempts=2))

    with pytest.raises(NetworkError) as info:
        await resolver.resolve(str(server.make_url("/a.png")))

    assert info.value.status_code == 502
    assert len(server.hits) == 2


async def test_client_errors_are_not_retried(serve, sleep):
    async def missing(request):
        return web.Response(status=404)

    server = await serve({"/a.png": missing})

    with pytest.raises(NetworkError) as info:
        await InputResolver(retry_policy=fast_policy(sleep)).resolve(str(server.make_url("/a.png")))

    assert info.value.status_code == 404
    assert server.hits == ["/a.png"]
    sleep.assert_not_awaited()


async def test_validation_failures_are_not_retried(serve, sleep):
    async def html(request):
        return web.Response(text="<html></html>", content_type="text/html")

    server = await serve({"/a.png": html})

    with pytest.raises(ValidationError):
        await InputResolver(retry_policy=fast_policy(sleep)).resolve(str(server.make_url("/a.png")))

    assert server.hits == ["/a.png"]
    sleep.assert_not_awaited()


async def test_default_policy_comes_from_settings():
    resolver = InputResolver(settings=Settings(max_attempts=5, base_delay_ms=10))

    assert resolver.retry_policy.max_attempts == 5
    assert resolver.retry_policy.base_delay_ms == 10
    assert resolver.retry_policy.retry_condition is is_server_error


async def test_resolve_input_helper(serve, png_bytes):
    async def ok(request):
        return web.Response(body=png_bytes, content_type="image/png")

    server = await serve({"/a.png": ok})

    assert await resolve_input(str(server.make_url("/a.png"))) == png_bytes
    assert await resolve_input(png_bytes) is png_bytes
