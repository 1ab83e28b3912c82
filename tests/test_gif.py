import io
from unittest.mock import AsyncMock, patch

import pytest
from PIL import Image

from discord_image_utils.errors import ImageProcessingError, ValidationError
from discord_image_utils.gif import TRIGGERED_FRAMES, TRIGGERED_SIZE, blink, triggered

from conftest import make_png


def open_gif(data):
    assert data.startswith(b"GIF8")
    return Image.open(io.BytesIO(data))


async def test_triggered_builds_shaking_gif(png_bytes):
    gif = open_gif(await triggered(png_bytes, timeout=20, seed=3))

    assert gif.size == TRIGGERED_SIZE
    assert gif.n_frames == TRIGGERED_FRAMES
    assert gif.info["duration"] == 20


async def test_triggered_is_reproducible_with_seed(png_bytes):
    assert await triggered(png_bytes, seed=9) == await triggered(png_bytes, seed=9)


@pytest.mark.parametrize("timeout", [0, 1001, "fast"])
async def test_triggered_rejects_bad_timeout(png_bytes, timeout):
    with pytest.raises(ValidationError):
        await triggered(png_bytes, timeout=timeout)


async def test_triggered_classifies_render_failures(png_bytes):
    with patch("discord_image_utils.gif._triggered_frames", side_effect=MemoryError):
        with pytest.raises(ImageProcessingError) as info:
            await triggered(png_bytes)
    assert info.value.details["operation"] == "triggered"


async def test_blink_cycles_images():
    red = make_png((40, 20), (255, 0, 0, 255))
    blue = make_png((20, 40), (0, 0, 255, 255))

    gif = open_gif(await blink(100, red, blue, width=64, height=64))

    assert gif.size == (64, 64)
    assert gif.n_frames == 2
    assert gif.info["duration"] == 100
    assert gif.convert("RGB").getpixel((32, 32)) == (255, 0, 0)
    gif.seek(1)
    assert gif.convert("RGB").getpixel((32, 32)) == (0, 0, 255)


@pytest.mark.parametrize("fit_method", ["cover", "contain", "stretch"])
async def test_blink_fit_methods(png_bytes, fit_method):
    gif = open_gif(await blink(50, png_bytes, png_bytes, width=30, height=30, fit_method=fit_method))
    assert gif.size == (30, 30)


async def test_blink_needs_two_images(png_bytes):
    with patch("discord_image_utils.gif.resolve_input", new=AsyncMock()) as resolve:
        with pytest.raises(ValidationError, match="at least 2"):
            await blink(100, png_bytes)
    resolve.assert_not_awaited()


@pytest.mark.parametrize(
    "options",
    [{"delay": -1}, {"delay": 60001}, {"width": 0}, {"fit_method": "squash"}],
)
async def test_blink_rejects_bad_options(png_bytes, options):
    delay = options.pop("delay", 100)
    with pytest.raises(ValidationError):
        await blink(delay, png_bytes, png_bytes, **options)
