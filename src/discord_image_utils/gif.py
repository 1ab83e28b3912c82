# gif.py
# Animated generators
import random
from typing import Optional

from PIL import Image, ImageDraw

from .errors import DiscordImageError, ImageProcessingError, ValidationError
from .extraconfig import DEFAULT_CANVAS_SIZE
from .handler import error_handler
from .logger import get_logger
from .render import fit, fit_font, frames_to_gif, load_frames
from .resolver import resolve_input

log = get_logger()

TRIGGERED_SIZE = (256, 310)
TRIGGERED_BANNER_HEIGHT = 54
TRIGGERED_FRAMES = 9
BACKGROUND_RANGE = 20  # shake of the picture
LABEL_RANGE = 10       # shake of the banner


def _triggered_banner(width: int, height: int) -> Image.Image:
    banner = Image.new("RGBA", (width, height), (0, 0, 0, 255))
    draw = ImageDraw.Draw(banner)
    font = fit_font("TRIGGERED", width - 16, start_size=height - 10)
    left, top, right, bottom = draw.textbbox((0, 0), "TRIGGERED", font=font)
    draw.text(
        ((width - (right - left)) // 2 - left, (height - (bottom - top)) // 2 - top),
        "TRIGGERED",
        font=font,
        fill=(255, 255, 255, 255),
    )
    return banner


def _triggered_frames(source: Image.Image, rng: random.Random):
    width, height = TRIGGERED_SIZE
    body_h = height - TRIGGERED_BANNER_HEIGHT
    picture = source.convert("RGBA").resize((width + BACKGROUND_RANGE, body_h + BACKGROUND_RANGE), Image.LANCZOS)
    banner = _triggered_banner(width + LABEL_RANGE, TRIGGERED_BANNER_HEIGHT + LABEL_RANGE)
    tint = Image.new("RGBA", TRIGGERED_SIZE, (255, 0, 0, 0x33))

    frames = []
    for _ in range(TRIGGERED_FRAMES):
        frame = Image.new("RGBA", TRIGGERED_SIZE, (0, 0, 0, 255))
        x, y = rng.randrange(BACKGROUND_RANGE), rng.randrange(BACKGROUND_RANGE)
        frame.alpha_composite(picture.crop((x, y, x + width, y + body_h)))
        frame.alpha_composite(tint)
        frame.paste(
            banner,
            (rng.randrange(LABEL_RANGE) - LABEL_RANGE, body_h + rng.randrange(LABEL_RANGE) - LABEL_RANGE // 2),
        )
        frames.append(frame)
    return frames


async def triggered(image, timeout: int = 15, seed: Optional[int] = None) -> bytes:
    """
    Shaking red "TRIGGERED" GIF.
    `timeout` is the delay between frames in ms (1-1000).
    """
    async def run():
        error_handler.validate_range(timeout, 1, 1000, "frame timeout")
        data = await resolve_input(image)
        frames, _ = load_frames(data)
        try:
            out = _triggered_frames(frames[0], random.Random(seed))
            return frames_to_gif(out, duration_ms=int(timeout))
        except DiscordImageError:
            raise
        except Exception as e:
            raise ImageProcessingError(
                f"Failed to create triggered GIF: {e}",
                "triggered",
                {"timeout": timeout, "imageSize": len(data)},
            ) from e

    return await error_handler.with_error_handling(run, "triggered GIF generator")


async def blink(
    delay: int,
    *images,
    width: int = DEFAULT_CANVAS_SIZE,
    height: int = DEFAULT_CANVAS_SIZE,
    fit_method: str = "cover",
    repeat: int = 0,
) -> bytes:
    """Cycle through two or more images, `delay` ms per frame."""
    async def run():
        error_handler.validate_array(images, "images", 2)
        error_handler.validate_range(delay, 0, 60000, "delay")
        error_handler.validate_range(width, 1, 2048, "width")
        error_handler.validate_range(height, 1, 2048, "height")
        if fit_method not in ("cover", "contain", "stretch"):
            raise ValidationError(f"Unknown fit method: {fit_method}", "fit_method", fit_method)

        size = (int(width), int(height))
        out = []
        for index, image in enumerate(images):
            data = await resolve_input(image)
            frames, _ = load_frames(data)
            try:
                out.append(fit(frames[0], size, fit_method))
            except Exception as e:
                raise ImageProcessingError(
                    f"Failed to process image {index + 1}: {e}",
                    "blink",
                    {"index": index, "imageSize": len(data)},
                ) from e

        log.successtrace(f"blink built from {len(out)} images")
        return frames_to_gif(out, duration_ms=int(delay), loop=repeat)

    return await error_handler.with_error_handling(run, "blink GIF generator")
