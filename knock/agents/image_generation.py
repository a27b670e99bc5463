"""
Agent 5: Room Image Generation with Fallback
Draws the room with the image model when enabled, falling back to the
best-matching preset when generation is off, fails, times out or returns
nothing. Generation is attempted once; there is no internal retry loop.
"""

import asyncio
import logging
import time
from datetime import datetime
from typing import Optional, Sequence

from knock.agents.base import Stage
from knock.agents.presets import IMAGE_PRESETS, ImagePreset, select_best_preset
from knock.core.config import settings
from knock.schemas.agents import GeneratedAsset, AssetMetadata, ImagePrompt
from knock.schemas.pipeline import PipelineContext
from knock.services.llm import ImageModel
from knock.services.storage import StorageService

logger = logging.getLogger(__name__)


class ImageGenerationStage(Stage):
    """Room image from the image model, or a preset."""

    name = "Agent5"
    description = "Room image generation"
    output_field = "asset"
    requires = ("image_prompt", "character")

    def __init__(
        self,
        image_model: Optional[ImageModel] = None,
        storage: Optional[StorageService] = None,
        enabled: Optional[bool] = None,
        timeout: Optional[float] = None,
        presets: Sequence[ImagePreset] = IMAGE_PRESETS,
    ):
        self.image_model = image_model
        self.storage = storage
        self.enabled = settings.USE_AI_IMAGE_GENERATION if enabled is None else enabled
        self.timeout = timeout or settings.IMAGE_GENERATION_TIMEOUT
        self.presets = list(presets)

    def _metadata(self, image_prompt: ImagePrompt) -> AssetMetadata:
        return AssetMetadata(
            prompt=image_prompt.image_prompt,
            colors=image_prompt.visual_elements.colors,
            mood=image_prompt.visual_elements.mood,
            timestamp=datetime.utcnow(),
        )

    async def _generate(self, job_id: str, image_prompt: ImagePrompt) -> Optional[str]:
        """Stored image URL, or None when the model returned no bytes."""
        data = await asyncio.wait_for(
            self.image_model.generate_image(image_prompt.image_prompt),
            timeout=self.timeout,
        )
        if not data:
            return None
        if self.storage is None:
            raise RuntimeError("Image generated but no storage service is configured")
        return await self.storage.upload_bytes(data, f"rooms/{job_id}/room.png", content_type="image/png")

    async def run(self, context: PipelineContext) -> GeneratedAsset:
        start = time.time()
        image_prompt = self.require(context, "image_prompt")
        character = self.require(context, "character")
        logger.info(f"[Agent5] Starting image generation | character={character.name} user={context.input.user_id}")

        if self.enabled and self.image_model is not None:
            try:
                logger.info("[Agent5] Attempting AI image generation")
                image_url = await self._generate(context.job_id, image_prompt)
                if image_url:
                    logger.info(f"[Agent5] AI image generated in {time.time() - start:.2f}s | {image_url}")
                    return GeneratedAsset(
                        image_ref=image_url,
                        source="generated",
                        metadata=self._metadata(image_prompt),
                    )
                logger.warning("[Agent5] Image model returned no data, falling back to presets")
            except asyncio.TimeoutError:
                logger.warning(f"[Agent5] AI generation timed out after {self.timeout}s, falling back to presets")
            except Exception as e:
                logger.warning(f"[Agent5] AI generation failed, falling back to presets: {e}")
        else:
            logger.info("[Agent5] AI generation disabled, using preset fallback")

        preset = select_best_preset(image_prompt.visual_elements, character.archetype, self.presets)
        logger.info(f"[Agent5] Preset image selected in {time.time() - start:.2f}s | {preset.id}")
        return GeneratedAsset(
            image_ref=preset.url,
            source="preset",
            preset_id=preset.id,
            metadata=self._metadata(image_prompt),
        )
