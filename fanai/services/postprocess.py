"""
Post-Processing Pipeline
Pure transforms over PNG/JPEG bytes, applied in order: trim, then watermark.
"""

import asyncio
import io
import logging
from pathlib import Path

import numpy as np
from PIL import Image, ImageDraw, ImageFilter, ImageFont

from fanai.core.resilience import failure_policy

logger = logging.getLogger(__name__)

TRIM_THRESHOLD = 10
WATERMARK_TEXT = "FanAI"
WATERMARK_MIN_FONT = 32
WATERMARK_PADDING = 20
WATERMARK_FONTS = ("DejaVuSans-Bold.ttf", "Arial Bold.ttf", "arialbd.ttf")


def _encode_png(image: Image.Image) -> bytes:
    out = io.BytesIO()
    image.save(out, format="PNG")
    return out.getvalue()


def _content_box(image: Image.Image, threshold: int):
    """Bounding box of pixels farther than threshold from white, or None."""
    rgba = image.convert("RGBA")
    # Flatten transparency onto white so clear padding counts as background
    flat = Image.new("RGBA", rgba.size, (255, 255, 255, 255))
    flat.alpha_composite(rgba)
    pixels = np.asarray(flat.convert("RGB"), dtype=np.int16)

    distance = np.abs(255 - pixels).max(axis=2)
    rows = np.flatnonzero((distance > threshold).any(axis=1))
    cols = np.flatnonzero((distance > threshold).any(axis=0))
    if rows.size == 0 or cols.size == 0:
        return None
    return int(cols[0]), int(rows[0]), int(cols[-1]) + 1, int(rows[-1]) + 1


def _untrimmed(error: Exception, image_bytes: bytes, *args, **kwargs) -> bytes:
    return image_bytes


@failure_policy("postprocess.trim", fallback=_untrimmed)
def trim(image_bytes: bytes, threshold: int = TRIM_THRESHOLD) -> bytes:
    """
    Crop near-white borders around the content.

    Returns the input bytes unchanged when there is no border to remove, the
    image is blank, or it cannot be decoded.
    """
    image = Image.open(io.BytesIO(image_bytes))
    image.load()
    box = _content_box(image, threshold)
    if box is None or box == (0, 0, image.width, image.height):
        return image_bytes
    logger.debug(f"[PostProcess] Trimming {image.size} to box {box}")
    return _encode_png(image.crop(box))


def _load_font(size: int) -> ImageFont.ImageFont:
    for name in WATERMARK_FONTS:
        try:
            return ImageFont.truetype(name, size)
        except OSError:
            continue
    return ImageFont.load_default(size=size)


def watermark(image_bytes: bytes, text: str = WATERMARK_TEXT) -> bytes:
    """
    Overlay semi-transparent text in the bottom-right corner.

    Font size is width / 20 (at least 32 px). White text at 60% opacity over
    a soft 30% black shadow. Dimensions are preserved.
    """
    image = Image.open(io.BytesIO(image_bytes)).convert("RGBA")
    width, height = image.size
    font = _load_font(max(WATERMARK_MIN_FONT, width // 20))
    anchor_xy = (width - WATERMARK_PADDING, height - WATERMARK_PADDING)

    shadow = Image.new("RGBA", image.size, (0, 0, 0, 0))
    ImageDraw.Draw(shadow).text(
        (anchor_xy[0], anchor_xy[1] + 2), text, font=font, fill=(0, 0, 0, 77), anchor="rs"
    )
    shadow = shadow.filter(ImageFilter.GaussianBlur(radius=2))

    label = Image.new("RGBA", image.size, (0, 0, 0, 0))
    ImageDraw.Draw(label).text(anchor_xy, text, font=font, fill=(255, 255, 255, 153), anchor="rs")

    image.alpha_composite(shadow)
    image.alpha_composite(label)
    return _encode_png(image)


def process_image_bytes(image_bytes: bytes, threshold: int = TRIM_THRESHOLD, text: str = WATERMARK_TEXT) -> bytes:
    return watermark(trim(image_bytes, threshold), text)


async def process_generated_image(
    generated_path: str,
    output_path: str,
    threshold: int = TRIM_THRESHOLD,
    text: str = WATERMARK_TEXT,
):
    """Trim and watermark the generated image, writing the result to output_path."""
    generated = Path(generated_path).read_bytes()
    final = await asyncio.to_thread(process_image_bytes, generated, threshold, text)
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(final)
