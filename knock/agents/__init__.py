# Agents package - the five pipeline stages and their orchestrator
from knock.agents.base import Stage, parse_json_response
from knock.agents.need_vector import NeedVectorStage
from knock.agents.character_profile import CharacterProfileStage
from knock.agents.prompt_assembly import PromptAssemblyStage
from knock.agents.image_prompt import ImagePromptStage
from knock.agents.image_generation import ImageGenerationStage
from knock.agents.presets import IMAGE_PRESETS, ImagePreset, select_best_preset
from knock.agents.orchestrator import PipelineOrchestrator, build_orchestrator, default_stages

__all__ = [
    "Stage",
    "parse_json_response",
    "NeedVectorStage",
    "CharacterProfileStage",
    "PromptAssemblyStage",
    "ImagePromptStage",
    "ImageGenerationStage",
    "IMAGE_PRESETS",
    "ImagePreset",
    "select_best_preset",
    "PipelineOrchestrator",
    "build_orchestrator",
    "default_stages",
]
