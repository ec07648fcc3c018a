"""
Image Synthesis Engine

NOTE: this is a simulated generator, not a face-composite model. The pixels
come from a deterministic side-by-side composite of the user photo and the
celebrity photo; Gemini is only asked to describe the intended result, and
that description is logged.
"""

import asyncio
import io
import logging
from pathlib import Path
from typing import Tuple

from PIL import Image, ImageOps

from fanai.core.errors import SynthesisError
from fanai.core.resilience import failure_policy
from fanai.services.gemini_image import GeminiImageService

logger = logging.getLogger(__name__)

TARGET_HEIGHT = 800
GAP = 40
BACKGROUND = (245, 245, 250, 255)


def scaled_width(size: Tuple[int, int], target_height: int) -> int:
    """Width after proportional scaling to target_height (floored, at least 1)."""
    width, height = size
    return max(1, int(width / height * target_height))


def _open_rgba(data: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(data))
    image = ImageOps.exif_transpose(image)
    return image.convert("RGBA")


def compose_side_by_side(
    user_image: bytes,
    celeb_image: bytes,
    target_height: int = TARGET_HEIGHT,
    gap: int = GAP,
    background: Tuple[int, int, int, int] = BACKGROUND,
) -> bytes:
    """
    Place both images at the same height next to each other.

    Output is a PNG of size (user_w + celeb_w + gap, target_height).
    """
    user = _open_rgba(user_image)
    celeb = _open_rgba(celeb_image)

    user_width = scaled_width(user.size, target_height)
    celeb_width = scaled_width(celeb.size, target_height)

    user = user.resize((user_width, target_height), Image.Resampling.LANCZOS)
    celeb = celeb.resize((celeb_width, target_height), Image.Resampling.LANCZOS)

    canvas = Image.new("RGBA", (user_width + celeb_width + gap, target_height), background)
    canvas.paste(user, (0, 0), user)
    canvas.paste(celeb, (user_width + gap, 0), celeb)

    out = io.BytesIO()
    canvas.save(out, format="PNG")
    return out.getvalue()


class SynthesisEngine:
    """Produces the "generated" image for a job."""

    def __init__(self, gemini: GeminiImageService, target_height: int = TARGET_HEIGHT, gap: int = GAP):
        self.gemini = gemini
        self.target_height = target_height
        self.gap = gap

    @failure_policy("synthesis.synthesize")
    async def synthesize(self, user_image_path: str, celeb_image_path: str, prompt: str, output_path: str):
        """
        Write the composite for prompt to output_path.

        Raises:
            SynthesisError: any step failed; the cause is attached
        """
        try:
            logger.info("[Synthesis] Simulating AI photo generation (side-by-side composite)")
            logger.info(f"[Synthesis] Prompt: {prompt[:100]}")

            user_bytes = Path(user_image_path).read_bytes()
            celeb_bytes = Path(celeb_image_path).read_bytes()

            await self.gemini.describe_composite(user_bytes, celeb_bytes, prompt)

            composite = await asyncio.to_thread(
                compose_side_by_side, user_bytes, celeb_bytes, self.target_height, self.gap
            )
            output = Path(output_path)
            output.parent.mkdir(parents=True, exist_ok=True)
            output.write_bytes(composite)

            logger.info(f"[Synthesis] Composite written to {output}")
        except SynthesisError:
            raise
        except Exception as e:
            raise SynthesisError(f"Failed to generate celebrity photo: {e}", cause=e) from e
