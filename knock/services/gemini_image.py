"""
Gemini "Nano Banana" Image Generation Service
Uses native Gemini image generation models (gemini-2.5-flash-image) to draw
persona rooms.
Documentation: https://ai.google.dev/gemini-api/docs/image-generation
"""

import logging
from typing import Optional

from google import genai
from google.genai import types

from knock.core.config import Settings, settings as default_settings
from knock.core.exceptions import RemoteModelError

logger = logging.getLogger(__name__)


class GeminiImageService:
    """Service for room image generation using Gemini models."""

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or default_settings
        self.client = genai.Client(api_key=settings.GEMINI_API_KEY)
        self.model_name = settings.GEMINI_IMAGE_MODEL or "gemini-2.5-flash-image"
        logger.info(f"[GeminiImageService] Initialized with model: {self.model_name}")

    async def generate_image(self, prompt: str) -> bytes:
        """Generate one image and return its raw bytes."""
        logger.info(f"[Gemini] Generating image with model: {self.model_name}")
        logger.debug(f"[Gemini] Prompt: {prompt[:100]}...")

        config = types.GenerateContentConfig(
            response_modalities=["IMAGE"],
            safety_settings=[
                types.SafetySetting(category="HARM_CATEGORY_DANGEROUS_CONTENT", threshold="BLOCK_NONE"),
                types.SafetySetting(category="HARM_CATEGORY_HATE_SPEECH", threshold="BLOCK_NONE"),
                types.SafetySetting(category="HARM_CATEGORY_HARASSMENT", threshold="BLOCK_NONE"),
                types.SafetySetting(category="HARM_CATEGORY_SEXUALLY_EXPLICIT", threshold="BLOCK_NONE"),
            ],
        )

        try:
            response = await self.client.aio.models.generate_content(
                model=self.model_name,
                contents=[prompt],
                config=config,
            )
        except Exception as e:
            logger.error(f"[Gemini] [ERROR] Error: {e}")
            raise RemoteModelError(f"Gemini Image Generation Failed: {e}") from e

        # Method 1: Direct parts access
        if getattr(response, "parts", None):
            for part in response.parts:
                if part.inline_data is not None:
                    logger.info("[Gemini] [OK] Image generated successfully!")
                    # inline_data.data is already base64 decoded bytes
                    return part.inline_data.data

        # Method 2: Check candidates
        block_reason = "Unknown"
        error_details = []
        if getattr(response, "candidates", None):
            candidate = response.candidates[0]
            block_reason = candidate.finish_reason
            if candidate.content and candidate.content.parts:
                for part in candidate.content.parts:
                    if part.inline_data is not None:
                        logger.info("[Gemini] [OK] Image found in candidate!")
                        return part.inline_data.data
            for rating in getattr(candidate, "safety_ratings", None) or []:
                error_details.append(f"{rating.category}={rating.probability}")

        error_msg = f"No image generated. Finish Reason: {block_reason}"
        if error_details:
            error_msg += f" | Safety: {', '.join(error_details)}"
        raise RemoteModelError(error_msg)
