"""
Gemini Vision Service
Advisory image analysis with Gemini models.

- analyze_image: pre-generation quality gate (structured JSON output)
- describe_composite: descriptive log of what a combined photo would look like

Both calls fail open. An analysis outage never blocks a generation.
Documentation: https://ai.google.dev/gemini-api/docs/structured-output
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from google import genai
from google.genai import types
from pydantic import BaseModel

from fanai.core.errors import UpstreamUnavailable
from fanai.core.resilience import failure_policy

logger = logging.getLogger(__name__)

ANALYSIS_FALLBACK_REASON = "Could not analyze image quality"

ANALYSIS_PROMPT = """Analyze this image and determine if it's suitable for AI photo generation.
Check for: single person clearly visible, face not obscured, good lighting, adequate quality.
Respond with JSON: {"is_valid": boolean, "reason": string}"""


class ImageAnalysisResult(BaseModel):
    """Response schema requested from the model."""
    is_valid: bool
    reason: str


@dataclass
class ImageAnalysis:
    """Outcome of the quality gate."""
    is_valid: bool
    reason: Optional[str] = None


def detect_mime_type(image_bytes: bytes) -> str:
    if image_bytes.startswith(b'\x89PNG\r\n\x1a\n'):
        return "image/png"
    if image_bytes.startswith(b'RIFF') and image_bytes[8:12] == b'WEBP':
        return "image/webp"
    return "image/jpeg"


def _fail_open_analysis(error: Exception, *args, **kwargs) -> ImageAnalysis:
    return ImageAnalysis(is_valid=True, reason=ANALYSIS_FALLBACK_REASON)


class GeminiImageService:
    """Vision analysis using Gemini models."""

    def __init__(
        self,
        api_key: str = "",
        model: str = "gemini-2.5-flash",
        timeout: float = 30.0,
        client: Optional[genai.Client] = None,
    ):
        self.client = client or (genai.Client(api_key=api_key) if api_key else None)
        self.vision_model = model
        self.timeout = timeout
        if self.client is None:
            logger.warning("[Gemini] GEMINI_API_KEY not configured; analysis will fail open")
        else:
            logger.info(f"[Gemini] Initialized with vision model: {self.vision_model}")

    async def _generate(self, contents: list, config: Optional[types.GenerateContentConfig] = None):
        if self.client is None:
            raise UpstreamUnavailable("GEMINI_API_KEY not configured")
        return await asyncio.wait_for(
            self.client.aio.models.generate_content(
                model=self.vision_model,
                contents=contents,
                config=config,
            ),
            timeout=self.timeout,
        )

    @failure_policy("gemini.analyze_image", fallback=_fail_open_analysis)
    async def analyze_image(self, image_path: str) -> ImageAnalysis:
        """
        Check that an uploaded photo is usable for generation.

        Single person, unobscured face and adequate quality are judged by the
        model. Any failure (timeout, quota, malformed JSON) yields
        is_valid=True with ANALYSIS_FALLBACK_REASON.
        """
        image_bytes = Path(image_path).read_bytes()

        response = await self._generate(
            [
                types.Part.from_bytes(data=image_bytes, mime_type=detect_mime_type(image_bytes)),
                ANALYSIS_PROMPT,
            ],
            types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=ImageAnalysisResult,
                temperature=0.2,
            ),
        )

        text = response.text or ""
        if not text.strip():
            raise ValueError("Empty response from vision model")
        cleaned = text.replace("```json", "").replace("```", "").strip()
        result = ImageAnalysisResult.model_validate(json.loads(cleaned))

        logger.info(f"[Gemini] Analysis: valid={result.is_valid} reason={result.reason!r}")
        return ImageAnalysis(is_valid=result.is_valid, reason=result.reason)

    @failure_policy("gemini.describe_composite", fallback=None)
    async def describe_composite(self, user_image: bytes, celeb_image: bytes, prompt: str) -> Optional[str]:
        """Ask the model to describe the combined photo. Logged only."""
        response = await self._generate([
            types.Part.from_bytes(data=user_image, mime_type=detect_mime_type(user_image)),
            types.Part.from_bytes(data=celeb_image, mime_type=detect_mime_type(celeb_image)),
            "Analyze these two images. The first is the user, the second is a celebrity.\n"
            f"Describe what a realistic combined photo would look like based on this prompt: {prompt}",
        ])
        description = response.text
        logger.info(f"[Gemini] Composite description: {(description or '')[:200]}")
        return description
