# filters.py
# Single-image filters; every one accepts bytes or an http(s) URL and returns PNG (or GIF for animated input)
from typing import Callable, Optional

import numpy as np
from PIL import Image, ImageChops, ImageColor, ImageDraw, ImageEnhance, ImageFilter

from .errors import DiscordImageError, ImageProcessingError, ValidationError
from .extraconfig import DEFAULT_CANVAS_SIZE, MAX_RENDER_DIM
from .handler import error_handler
from .logger import get_logger
from .render import encode_frames, load_frames, resize_if_needed, to_png
from .resolver import resolve_input

log = get_logger()

SEPIA_MATRIX = np.array([
    [0.393, 0.769, 0.189],
    [0.349, 0.686, 0.168],
    [0.272, 0.534, 0.131],
])


def _apply(data: bytes, operation: str, transform: Callable[[Image.Image], Image.Image], **info) -> bytes:
    """Run `transform` over every frame of `data` and encode the result."""
    frames, duration = load_frames(data)
    frames = resize_if_needed(frames, max_dim=MAX_RENDER_DIM)
    try:
        out_frames = [transform(f) for f in frames]
        result = encode_frames(out_frames, duration_ms=duration)
    except DiscordImageError:
        raise
    except Exception as e:
        raise ImageProcessingError(
            f"Failed to apply {operation} effect: {e}",
            operation,
            {**info, "imageSize": len(data), "frames": len(frames)},
        ) from e
    log.successtrace(f"{operation} applied to {len(frames)} frame(s)")
    return result


def _merge_alpha(rgb: Image.Image, source: Image.Image) -> Image.Image:
    out = rgb.convert("RGBA")
    out.putalpha(source.getchannel("A"))
    return out


async def blur(image, level: float = 10) -> bytes:
    """Gaussian blur, `level` 1-10 is the radius in pixels."""
    async def run():
        error_handler.validate_range(level, 1, 10, "blur level")
        data = await resolve_input(image)
        return _apply(data, "blur", lambda f: f.filter(ImageFilter.GaussianBlur(radius=level)), level=level)

    return await error_handler.with_error_handling(run, "blur filter")


def _greyscale(frame: Image.Image) -> Image.Image:
    luma = frame.convert("L")
    return Image.merge("RGBA", (luma, luma, luma, frame.getchannel("A")))


async def greyscale(image) -> bytes:
    async def run():
        data = await resolve_input(image)
        return _apply(data, "greyscale", _greyscale)

    return await error_handler.with_error_handling(run, "greyscale filter")


def _invert(frame: Image.Image) -> Image.Image:
    r, g, b, a = frame.split()
    r = r.point(lambda i: 255 - i)
    g = g.point(lambda i: 255 - i)
    b = b.point(lambda i: 255 - i)
    return Image.merge("RGBA", (r, g, b, a))


async def invert(image) -> bytes:
    async def run():
        data = await resolve_input(image)
        return _apply(data, "invert", _invert)

    return await error_handler.with_error_handling(run, "invert filter")


def _sepia(frame: Image.Image) -> Image.Image:
    rgb = np.asarray(frame.convert("RGB"), dtype=np.float32)
    toned = np.clip(rgb @ SEPIA_MATRIX.T, 0, 255).astype(np.uint8)
    return _merge_alpha(Image.fromarray(toned, "RGB"), frame)


async def sepia(image) -> bytes:
    async def run():
        data = await resolve_input(image)
        return _apply(data, "sepia", _sepia)

    return await error_handler.with_error_handling(run, "sepia filter")


def _pixelate(frame: Image.Image, pixel_size: int) -> Image.Image:
    w, h = frame.size
    small = frame.resize(
        (max(1, w // pixel_size), max(1, h // pixel_size)),
        Image.NEAREST,
    )
    return small.resize((w, h), Image.NEAREST)


async def pixelate(image, pixel_size: int = 5) -> bytes:
    """Blocky pixelation, `pixel_size` 1-50."""
    async def run():
        error_handler.validate_range(pixel_size, 1, 50, "pixel size")
        data = await resolve_input(image)
        size = int(pixel_size)
        return _apply(data, "pixelate", lambda f: _pixelate(f, size), pixelSize=size)

    return await error_handler.with_error_handling(run, "pixelate filter")


def _posterize(frame: Image.Image, levels: int) -> Image.Image:
    arr = np.asarray(frame.convert("RGB"), dtype=np.float32)
    step = 255 / (levels - 1)
    arr = np.round(arr / step) * step
    return _merge_alpha(Image.fromarray(arr.astype(np.uint8), "RGB"), frame)


def _deepfry(frame: Image.Image) -> Image.Image:
    small = frame.resize((100, 100), Image.LANCZOS)
    rgb = small.convert("RGB")
    rgb = ImageEnhance.Contrast(rgb).enhance(4.0)
    rgb = ImageEnhance.Color(rgb).enhance(3.0)
    fried = _merge_alpha(rgb, small)
    return _posterize(_pixelate(fried, 2), 10)


async def deepfry(image) -> bytes:
    async def run():
        data = await resolve_input(image)
        return _apply(data, "deepfry", _deepfry)

    return await error_handler.with_error_handling(run, "deepfry filter")


def _glitch(frame: Image.Image, intensity: int, rng: np.random.Generator) -> Image.Image:
    arr = np.array(frame.convert("RGBA"), dtype=np.uint8)
    height, width = arr.shape[:2]
    offset = int(intensity / 10 * 15)

    # chromatic aberration: red pulled from the right, blue from the left
    if offset and offset < width:
        arr[:, :-offset, 0] = arr[:, offset:, 0].copy()
        arr[:, offset:, 2] = arr[:, :-offset, 2].copy()

    # torn scanline bands
    bands = int(intensity / 10 * 10) + 1
    max_band = max(1, height // 20)
    for _ in range(bands):
        y = int(rng.integers(0, height))
        band = int(rng.integers(1, max_band + 1))
        shift = int(rng.integers(-offset - 5, offset + 6))
        arr[y:y + band] = np.roll(arr[y:y + band], shift, axis=1)

    # sparse corrupted pixels
    mask = rng.random((height, width)) < intensity / 400
    arr[mask, :3] = rng.integers(0, 256, size=(int(mask.sum()), 3), dtype=np.uint8)
    return Image.fromarray(arr, "RGBA")


async def glitch(image, intensity: int = 5, seed: Optional[int] = None) -> bytes:
    """Digital glitch, `intensity` 1-10. Pass `seed` for reproducible output."""
    async def run():
        error_handler.validate_range(intensity, 1, 10, "intensity")
        data = await resolve_input(image)
        rng = np.random.default_rng(seed)
        return _apply(data, "glitch", lambda f: _glitch(f, intensity, rng), intensity=intensity)

    return await error_handler.with_error_handling(run, "glitch filter")


def _hueshift(frame: Image.Image, shift_amount: int) -> Image.Image:
    # PIL's HSV mode: H is 0-255 (represents 0-360 degrees)
    np_hsv = np.array(frame.convert("RGB").convert("HSV"), dtype=np.uint8)
    hue_channel = np_hsv[..., 0].astype(np.uint16)  # avoid overflow
    np_hsv[..., 0] = ((hue_channel + shift_amount) % 256).astype(np.uint8)
    shifted_rgb = Image.fromarray(np_hsv, "HSV").convert("RGB")
    return _merge_alpha(shifted_rgb, frame)


async def hueshift(image, shift: float = 0.1) -> bytes:
    """Rotate the hue by `shift` turns of the colour wheel (wraps)."""
    async def run():
        error_handler.validate_range(shift, -100, 100, "shift")
        data = await resolve_input(image)
        amount = int(round((shift % 1.0) * 255))
        return _apply(data, "hueshift", lambda f: _hueshift(f, amount), shift=shift)

    return await error_handler.with_error_handling(run, "hueshift filter")


def _wave(frame: Image.Image, amplitude: float, frequency: float) -> Image.Image:
    arr = np.asarray(frame.convert("RGBA"))
    height, width = arr.shape[:2]
    ys, xs = np.mgrid[0:height, 0:width]
    src_x = np.floor(xs + np.sin(ys / frequency) * amplitude).astype(np.intp)
    src_y = np.floor(ys + np.cos(xs / frequency) * amplitude).astype(np.intp)

    # pixels whose source falls outside the frame stay transparent
    inside = (src_x >= 0) & (src_x < width) & (src_y >= 0) & (src_y < height)
    out = np.zeros_like(arr)
    out[inside] = arr[src_y[inside], src_x[inside]]
    return Image.fromarray(out, "RGBA")


async def wave(image, amplitude: float = 10, frequency: float = 5) -> bytes:
    """Sine-wave displacement, `amplitude` 1-50 pixels, `frequency` 1-20."""
    async def run():
        error_handler.validate_range(amplitude, 1, 50, "amplitude")
        error_handler.validate_range(frequency, 1, 20, "frequency")
        data = await resolve_input(image)
        return _apply(
            data,
            "wave",
            lambda f: _wave(f, amplitude, frequency),
            amplitude=amplitude,
            frequency=frequency,
        )

    return await error_handler.with_error_handling(run, "wave filter")


def _mirror(frame: Image.Image, horizontal: bool, vertical: bool) -> Image.Image:
    if horizontal:
        frame = frame.transpose(Image.Transpose.FLIP_LEFT_RIGHT)
    if vertical:
        frame = frame.transpose(Image.Transpose.FLIP_TOP_BOTTOM)
    return frame


async def mirror(image, horizontal: bool = True, vertical: bool = False) -> bytes:
    async def run():
        error_handler.validate_required(horizontal, "horizontal", bool)
        error_handler.validate_required(vertical, "vertical", bool)
        data = await resolve_input(image)
        return _apply(
            data,
            "mirror",
            lambda f: _mirror(f, horizontal, vertical),
            horizontal=horizontal,
            vertical=vertical,
        )

    return await error_handler.with_error_handling(run, "mirror filter")


def _circle(frame: Image.Image) -> Image.Image:
    size = (DEFAULT_CANVAS_SIZE, DEFAULT_CANVAS_SIZE)
    img = frame.resize(size, Image.LANCZOS)
    mask = Image.new("L", size, 0)
    ImageDraw.Draw(mask).ellipse((0, 0, size[0] - 1, size[1] - 1), fill=255)
    img.putalpha(ImageChops.multiply(img.getchannel("A"), mask))
    return img


async def circle(image) -> bytes:
    """Crop to a 480x480 circle with a transparent outside."""
    async def run():
        data = await resolve_input(image)
        return _apply(data, "circle", _circle)

    return await error_handler.with_error_handling(run, "circle filter")


def _sticker(frame: Image.Image, border: int) -> Image.Image:
    shadow_padding = 10
    total = border + shadow_padding
    w, h = frame.size
    canvas = Image.new("RGBA", (w + total * 2, h + total * 2), (0, 0, 0, 0))

    shadow = Image.new("RGBA", (w + border * 2, h + border * 2), (0, 0, 0, 77))
    canvas.alpha_composite(shadow, (shadow_padding, shadow_padding))
    canvas = canvas.filter(ImageFilter.GaussianBlur(radius=3))

    white = Image.new("RGBA", (w + border * 2, h + border * 2), (255, 255, 255, 255))
    canvas.alpha_composite(white, (shadow_padding - 5, shadow_padding - 5))
    canvas.alpha_composite(frame, (total - 5, total - 5))
    return canvas


async def sticker(image, border_size: int = 15) -> bytes:
    """White border and soft drop shadow, `border_size` 5-50."""
    async def run():
        error_handler.validate_range(border_size, 5, 50, "border size")
        data = await resolve_input(image)
        border = int(border_size)
        return _apply(data, "sticker", lambda f: _sticker(f, border), borderSize=border)

    return await error_handler.with_error_handling(run, "sticker filter")


async def color(color: str = "#FFFFFF", width: int = DEFAULT_CANVAS_SIZE, height: int = DEFAULT_CANVAS_SIZE) -> bytes:
    """Solid colour PNG. Accepts anything PIL.ImageColor understands."""
    async def run():
        error_handler.validate_string_length(color, 64, "color", 1)
        error_handler.validate_range(width, 1, 4096, "width")
        error_handler.validate_range(height, 1, 4096, "height")
        try:
            rgba = ImageColor.getcolor(color, "RGBA")
        except ValueError:
            raise ValidationError(f"Invalid color: {color}", "color", color) from None
        return to_png(Image.new("RGBA", (int(width), int(height)), rgba))

    return await error_handler.with_error_handling(run, "color generator")
