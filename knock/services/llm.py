"""
Remote Model Interfaces
Text and image model contracts the stages depend on, plus the provider
factory used when wiring the orchestrator.
"""

import logging
from typing import Optional, Protocol, runtime_checkable

from knock.core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


@runtime_checkable
class TextModel(Protocol):
    """Anything that turns a prompt into text."""

    async def generate_text(
        self,
        prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 4000,
        json_mode: bool = False,
    ) -> str:
        ...


@runtime_checkable
class ImageModel(Protocol):
    """Anything that turns a prompt into encoded image bytes."""

    async def generate_image(self, prompt: str) -> bytes:
        ...


def get_text_model(settings: Optional[Settings] = None) -> TextModel:
    """Build the text model selected by LLM_PROVIDER."""
    settings = settings or default_settings
    provider = settings.LLM_PROVIDER

    if provider == "groq":
        from knock.services.groq_llm import GroqLLMService
        return GroqLLMService(settings)
    if provider == "gemini":
        from knock.services.gemini_llm import GeminiLLMService
        return GeminiLLMService(settings)

    raise ValueError(f"Unknown LLM_PROVIDER: {provider}")


def get_image_model(settings: Optional[Settings] = None) -> Optional[ImageModel]:
    """Build the image model, or None when AI image generation is off."""
    settings = settings or default_settings
    if not settings.USE_AI_IMAGE_GENERATION:
        return None
    if not settings.GEMINI_API_KEY:
        logger.warning("[LLM] USE_AI_IMAGE_GENERATION is on but GEMINI_API_KEY is empty; presets only")
        return None

    from knock.services.gemini_image import GeminiImageService
    return GeminiImageService(settings)
