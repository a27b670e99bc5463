"""
Gemini Text Service
Text generation for the need-vector and character-profile stages.
Documentation: https://ai.google.dev/gemini-api/docs/text-generation
"""

import logging
from typing import Optional

from google import genai
from google.genai import types

from knock.core.config import Settings, settings as default_settings
from knock.core.exceptions import RemoteModelError

logger = logging.getLogger(__name__)


class GeminiLLMService:
    """Service for Gemini text generation."""

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or default_settings
        self.client = genai.Client(api_key=settings.GEMINI_API_KEY)
        self.model = settings.GEMINI_TEXT_MODEL
        logger.info(f"[Gemini] Text model: {self.model}")

    async def generate_text(
        self,
        prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 4000,
        json_mode: bool = False,
    ) -> str:
        config = types.GenerateContentConfig(
            temperature=temperature,
            max_output_tokens=max_tokens,
            response_mime_type="application/json" if json_mode else None,
        )

        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=prompt,
                config=config,
            )
        except Exception as e:
            logger.error(f"[Gemini] [ERROR] Text generation failed: {e}")
            raise RemoteModelError(f"Gemini text generation failed: {e}") from e

        text = response.text if hasattr(response, "text") else ""
        if not text:
            finish_reason = "Unknown"
            if getattr(response, "candidates", None):
                finish_reason = response.candidates[0].finish_reason
            raise RemoteModelError(f"Empty response from Gemini. Finish Reason: {finish_reason}")

        logger.debug(f"[Gemini] Received {len(text)} characters")
        return text
