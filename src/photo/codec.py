"""Image decode/normalize/mask/composite helpers built on Pillow."""

from __future__ import annotations

import base64
from dataclasses import dataclass
from enum import Enum
import io
from typing import List, Optional, Tuple, Union

from PIL import Image, ImageChops, ImageDraw, ImageFilter, ImageFont, ImageOps, UnidentifiedImageError

from src.photo.errors import DecodeError, ImageTooLargeError


DEFAULT_EDGE = 1024
DEFAULT_MAX_PIXELS = 40_000_000
FALLBACK_CARD_SIZE = (1536, 1024)
FALLBACK_BACKGROUND = (18, 64, 44)
FALLBACK_TEXT_COLOR = (255, 255, 255)
FALLBACK_SUBTITLE_COLOR = (214, 232, 200)
FALLBACK_PHOTO_SHARE = 0.54
FALLBACK_INSET = 48

_FONT_PATHS = (
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
    "/System/Library/Fonts/Helvetica.ttc",
)


class MaskEncoding(str, Enum):
    """Which marker colour tells an editing provider it may repaint a pixel."""

    WHITE_EDITS = "white_edits"
    BLACK_EDITS = "black_edits"

    @property
    def editable_color(self) -> Tuple[int, int, int, int]:
        if self is MaskEncoding.WHITE_EDITS:
            return (255, 255, 255, 255)
        # Alpha-transparent convention: transparent pixels are repainted.
        return (0, 0, 0, 0)

    @property
    def preserved_color(self) -> Tuple[int, int, int, int]:
        if self is MaskEncoding.WHITE_EDITS:
            return (0, 0, 0, 255)
        return (255, 255, 255, 255)


@dataclass(frozen=True)
class Rect:
    left: int
    top: int
    right: int
    bottom: int

    @property
    def width(self) -> int:
        return self.right - self.left

    @property
    def height(self) -> int:
        return self.bottom - self.top


def right_region(width: int, height: int, fraction: float = 0.46) -> Rect:
    """Rectangle covering the right-hand ``fraction`` of a canvas."""

    editable_width = max(1, min(width, round(width * fraction)))
    return Rect(left=width - editable_width, top=0, right=width, bottom=height)


def decode_image(data: bytes, *, max_pixels: int = DEFAULT_MAX_PIXELS) -> Image.Image:
    """Decode ``data``, refusing images whose header declares more than ``max_pixels``."""

    if not data:
        raise DecodeError("invalid_image")
    try:
        image = Image.open(io.BytesIO(data))
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError, SyntaxError) as exc:
        raise DecodeError("invalid_image") from exc

    # Header size only; pixels are not decoded yet.
    width, height = image.size
    if width * height > max_pixels:
        raise ImageTooLargeError("image_too_large")

    try:
        image.load()
    except (Image.DecompressionBombError, OSError, ValueError, SyntaxError) as exc:
        raise DecodeError("invalid_image") from exc
    return image


def encode_png(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG", optimize=False)
    return buffer.getvalue()


def encode_jpeg(image: Image.Image, *, quality: int = 90) -> bytes:
    buffer = io.BytesIO()
    image.convert("RGB").save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()


def to_data_url(data: bytes, mime_type: str = "image/png") -> str:
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def _square_rgb(image: Image.Image, edge: int) -> Image.Image:
    image = ImageOps.exif_transpose(image)
    if image.mode != "RGB":
        if image.mode in {"RGBA", "LA"} or (image.mode == "P" and "transparency" in image.info):
            rgba = image.convert("RGBA")
            flattened = Image.new("RGB", rgba.size, (255, 255, 255))
            flattened.paste(rgba, mask=rgba.getchannel("A"))
            image = flattened
        else:
            image = image.convert("RGB")

    width, height = image.size
    side = min(width, height)
    if width != height:
        left = (width - side) // 2
        top = (height - side) // 2
        image = image.crop((left, top, left + side, top + side))
    if side != edge:
        image = image.resize((edge, edge), Image.Resampling.LANCZOS)
    return image


def normalize_square(data: bytes, *, edge: int = DEFAULT_EDGE, max_pixels: int = DEFAULT_MAX_PIXELS) -> bytes:
    """Centre-crop to a square, resize to ``edge`` pixels and re-encode as PNG.

    Applying it to its own output returns identical bytes: the image is
    already square and at size, and no metadata is written.
    """

    return encode_png(_square_rgb(decode_image(data, max_pixels=max_pixels), edge))


def build_edit_mask(width: int, height: int, editable: Rect, encoding: MaskEncoding) -> bytes:
    """Full-canvas RGBA mask with ``editable`` marked per ``encoding``."""

    if width <= 0 or height <= 0:
        raise ValueError("mask dimensions must be positive")
    mask = Image.new("RGBA", (width, height), encoding.preserved_color)
    box = (
        max(0, editable.left),
        max(0, editable.top),
        min(width, editable.right),
        min(height, editable.bottom),
    )
    if box[2] > box[0] and box[3] > box[1]:
        mask.paste(Image.new("RGBA", (box[2] - box[0], box[3] - box[1]), encoding.editable_color), box[:2])
    return encode_png(mask)


def _load_font(size: int) -> ImageFont.ImageFont:
    for path in _FONT_PATHS:
        try:
            return ImageFont.truetype(path, size)
        except (OSError, IOError):
            continue
    return ImageFont.load_default(size=size)


def _wrap(draw: ImageDraw.ImageDraw, text: str, font: ImageFont.ImageFont, max_width: int) -> List[str]:
    lines: List[str] = []
    current = ""
    for word in text.split():
        candidate = f"{current} {word}".strip()
        if current and draw.textlength(candidate, font=font) > max_width:
            lines.append(current)
            current = word
        else:
            current = candidate
    if current:
        lines.append(current)
    return lines


def _vignette(size: Tuple[int, int]) -> Image.Image:
    width, height = size
    layer = Image.new("RGB", size, (110, 110, 110))
    draw = ImageDraw.Draw(layer)
    pad_x = width // 10
    pad_y = height // 10
    draw.ellipse((pad_x, pad_y, width - pad_x, height - pad_y), fill=(255, 255, 255))
    return layer.filter(ImageFilter.GaussianBlur(radius=max(width, height) // 12))


def compose_fallback_card(
    user_image: Union[Image.Image, bytes],
    caption: str,
    subtitle: str,
    *,
    size: Tuple[int, int] = FALLBACK_CARD_SIZE,
    background: Optional[Tuple[int, int, int]] = None,
) -> bytes:
    """Deterministic local composite used when no provider produced an image."""

    photo = decode_image(user_image) if isinstance(user_image, bytes) else user_image
    photo = ImageOps.exif_transpose(photo).convert("RGB")

    width, height = size
    canvas = Image.new("RGB", size, background or FALLBACK_BACKGROUND)
    canvas = ImageChops.multiply(canvas, _vignette(size))

    photo_region = Rect(
        left=FALLBACK_INSET,
        top=FALLBACK_INSET,
        right=int(width * FALLBACK_PHOTO_SHARE) - FALLBACK_INSET // 2,
        bottom=height - FALLBACK_INSET,
    )
    fitted = ImageOps.contain(photo, (max(1, photo_region.width), max(1, photo_region.height)))
    offset_x = photo_region.left + (photo_region.width - fitted.width) // 2
    offset_y = photo_region.top + (photo_region.height - fitted.height) // 2
    canvas.paste(fitted, (offset_x, offset_y))

    draw = ImageDraw.Draw(canvas)
    text_left = int(width * FALLBACK_PHOTO_SHARE) + FALLBACK_INSET // 2
    text_width = max(1, width - text_left - FALLBACK_INSET)
    caption_font = _load_font(max(24, height // 14))
    subtitle_font = _load_font(max(16, height // 26))

    caption_lines = _wrap(draw, caption, caption_font, text_width)
    subtitle_lines = _wrap(draw, subtitle, subtitle_font, text_width)
    caption_step = int(max(24, height // 14) * 1.25)
    subtitle_step = int(max(16, height // 26) * 1.4)
    block_height = caption_step * len(caption_lines) + subtitle_step * len(subtitle_lines) + FALLBACK_INSET // 2
    y = max(FALLBACK_INSET, (height - block_height) // 2)

    for line in caption_lines:
        draw.text((text_left, y), line, font=caption_font, fill=FALLBACK_TEXT_COLOR)
        y += caption_step
    y += FALLBACK_INSET // 2
    for line in subtitle_lines:
        draw.text((text_left, y), line, font=subtitle_font, fill=FALLBACK_SUBTITLE_COLOR)
        y += subtitle_step

    return encode_png(canvas)
