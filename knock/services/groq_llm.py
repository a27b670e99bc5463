"""
Groq LLM Service
Uses Groq (free tier) as an alternative text provider for the LLM stages.
"""

import logging
from typing import Optional

from groq import AsyncGroq

from knock.core.config import Settings, settings as default_settings
from knock.core.exceptions import RemoteModelError

logger = logging.getLogger(__name__)


class GroqLLMService:
    """Service for Groq LLM operations."""

    SYSTEM_PROMPT = "You are a careful assistant. Follow the requested output format exactly."
    JSON_SYSTEM_PROMPT = "You are a careful assistant. Return only valid JSON."

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or default_settings
        self.client = AsyncGroq(api_key=settings.GROQ_API_KEY)
        self.model = settings.GROQ_MODEL
        logger.info(f"[Groq] Text model: {self.model}")

    async def generate_text(
        self,
        prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 4000,
        json_mode: bool = False,
    ) -> str:
        kwargs = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": self.JSON_SYSTEM_PROMPT if json_mode else self.SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
                **kwargs,
            )
        except Exception as e:
            logger.error(f"[Groq] [ERROR] Completion failed: {e}")
            raise RemoteModelError(f"Groq completion failed: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise RemoteModelError("Empty response from Groq")
        return content.strip()
