# render.py
# Pillow helpers shared by the filters and GIF generators
import io
import os
from typing import List, Literal, Optional, Tuple

from PIL import Image, ImageFont, ImageSequence, UnidentifiedImageError

from .errors import FileSystemError, ImageProcessingError

FitMethod = Literal["cover", "contain", "stretch"]


def load_frames(data: bytes) -> Tuple[List[Image.Image], int]:
    """Return list of RGBA frames and a default duration (ms)."""
    try:
        im = Image.open(io.BytesIO(data))
        im.load()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise ImageProcessingError(
            f"Failed to load image: {e}",
            "loadImage",
            {"imageSize": len(data)},
        ) from e

    duration = 80
    if getattr(im, "is_animated", False):
        frames = [frame.convert("RGBA") for frame in ImageSequence.Iterator(im)]
        duration = im.info.get("duration", duration) or duration
    else:
        frames = [im.convert("RGBA")]
    return frames, duration


def _flatten(frame: Image.Image) -> Image.Image:
    """RGBA -> RGB on a white background, GIF has no real alpha."""
    if frame.mode == "RGBA":
        rgb = Image.new("RGB", frame.size, (255, 255, 255))
        rgb.paste(frame, mask=frame.split()[3])
        return rgb
    if frame.mode != "RGB":
        return frame.convert("RGB")
    return frame


def _shared_palette(frames: List[Image.Image], tile: int = 128) -> Image.Image:
    """One palette covering every frame, built from a strip of thumbnails."""
    thumbs = []
    for frame in frames:
        thumb = frame.copy()
        thumb.thumbnail((tile, tile))
        thumbs.append(thumb)
    strip = Image.new("RGB", (sum(t.width for t in thumbs), max(t.height for t in thumbs)), (255, 255, 255))
    x = 0
    for thumb in thumbs:
        strip.paste(thumb, (x, 0))
        x += thumb.width
    return strip.quantize(colors=256, dither=Image.Dither.NONE)


def frames_to_gif(frames: List[Image.Image], duration_ms: int = 80, loop: int = 0) -> bytes:
    """Save frames to GIF bytes, all frames sharing one palette."""
    if not frames:
        raise ImageProcessingError("No frames to encode", "gifExport")

    bio = io.BytesIO()
    processed = [_flatten(f) for f in frames]
    # dither=0 keeps white white
    if len(processed) == 1:
        processed[0].quantize(colors=256, dither=Image.Dither.NONE).save(bio, format="GIF")
    else:
        palette = _shared_palette(processed)
        first, *rest = [f.quantize(palette=palette, dither=Image.Dither.NONE) for f in processed]
        first.save(
            bio,
            format="GIF",
            save_all=True,
            append_images=rest,
            loop=loop,
            duration=duration_ms,
            disposal=2,
        )
    data = bio.getvalue()
    if not data:
        raise ImageProcessingError("Generated GIF buffer is empty", "gifExport")
    return data


def to_png(image: Image.Image) -> bytes:
    bio = io.BytesIO()
    image.save(bio, format="PNG")
    data = bio.getvalue()
    if not data:
        raise ImageProcessingError("Generated PNG buffer is empty", "pngExport")
    return data


def encode_frames(frames: List[Image.Image], duration_ms: int = 80) -> bytes:
    """PNG for a still image, GIF when there is more than one frame."""
    if len(frames) == 1:
        return to_png(frames[0])
    return frames_to_gif(frames, duration_ms=duration_ms)


def resize_if_needed(frames: List[Image.Image], max_dim: int = 900) -> List[Image.Image]:
    """Resize frames so largest side <= max_dim to avoid massive processing."""
    w, h = frames[0].size
    max_side = max(w, h)
    if max_side <= max_dim:
        return frames
    ratio = max_dim / max_side
    new_size = (max(1, int(w * ratio)), max(1, int(h * ratio)))
    return [f.resize(new_size, Image.LANCZOS) for f in frames]


def fit(image: Image.Image, size: Tuple[int, int], method: FitMethod = "cover") -> Image.Image:
    """
    Place `image` on a transparent canvas of `size`.
    cover crops to fill, contain letterboxes, stretch ignores the aspect ratio.
    """
    width, height = size
    if method == "stretch":
        return image.convert("RGBA").resize(size, Image.LANCZOS)

    if method == "cover":
        scale = max(width / image.width, height / image.height)
    elif method == "contain":
        scale = min(width / image.width, height / image.height)
    else:
        raise ValueError(f"unknown fit method {method!r}")

    scaled = image.convert("RGBA").resize(
        (max(1, round(image.width * scale)), max(1, round(image.height * scale))),
        Image.LANCZOS,
    )
    canvas = Image.new("RGBA", size, (0, 0, 0, 0))
    canvas.paste(scaled, ((width - scaled.width) // 2, (height - scaled.height) // 2))
    return canvas


def load_font(size: int, font_path: Optional[str] = None) -> ImageFont.ImageFont:
    """TrueType font at `size`; Pillow's bundled font when no path is given."""
    if font_path is None:
        return ImageFont.load_default(size=size)
    if not os.path.isfile(font_path):
        raise FileSystemError(f"Font not found: {font_path}", font_path, "loadFont")
    try:
        return ImageFont.truetype(font_path, size)
    except OSError as e:
        raise FileSystemError(f"Failed to load font: {e}", font_path, "loadFont") from e


def wrap_text(text: str, font: ImageFont.ImageFont, max_width: int) -> List[str]:
    lines = []
    for word in text.split():
        # break long words
        while font.getlength(word) > max_width and len(word) > 1:
            for i in range(1, len(word) + 1):
                if font.getlength(word[:i]) > max_width:
                    cut = max(1, i - 1)
                    lines.append(word[:cut])
                    word = word[cut:]
                    break
        lines.append(word)

    wrapped_lines = []
    current_line = ""
    for word in lines:
        test_line = f"{current_line} {word}".strip() if current_line else word
        if font.getlength(test_line) <= max_width:
            current_line = test_line
        else:
            if current_line:
                wrapped_lines.append(current_line)
            current_line = word
    if current_line:
        wrapped_lines.append(current_line)
    return wrapped_lines


def fit_font(text: str, max_width: int, start_size: int = 64, font_path: Optional[str] = None, min_size: int = 6):
    """Shrink the font until `text` fits on one line of `max_width`."""
    size = start_size
    font = load_font(size, font_path)
    while font.getlength(text) > max_width and size > min_size:
        size -= 2
        font = load_font(size, font_path)
    return font
