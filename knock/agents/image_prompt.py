"""
Agent 4: Image Prompt Generation
Maps the character profile and need vector to pixel-art visual language.
Pure mapping over lookup tables and the visual pool; no remote calls.
"""

import logging
import time
from typing import Dict, List

from knock.agents.base import Stage
from knock.schemas.agents import NeedVector, CharacterProfile, ImagePrompt, VisualElements
from knock.schemas.data_pool import VisualRecord
from knock.schemas.pipeline import PipelineContext
from knock.services.data_pool import SQLDataPoolStore

logger = logging.getLogger(__name__)

MAX_COLORS = 4
MIN_OBJECTS = 3
MAX_OBJECTS = 5

NEED_VISUAL_MAPPING: Dict[str, Dict] = {
    "survival": {
        "colors": ["warm browns", "deep greens", "earth tones"],
        "lighting": "soft, stable lighting with no harsh shadows",
        "space": "enclosed, cozy space with protective boundaries",
        "mood": "secure, grounded, peaceful",
    },
    "belonging": {
        "colors": ["warm oranges", "soft pinks", "gentle yellows"],
        "lighting": "warm, inviting glow",
        "space": "intimate space with shared elements",
        "mood": "connected, welcoming, communal",
    },
    "recognition": {
        "colors": ["bright gold", "vibrant purple", "confident red"],
        "lighting": "spotlight effect, bright focused light",
        "space": "prominent, centered composition",
        "mood": "proud, distinguished, celebrated",
    },
    "autonomy": {
        "colors": ["cool blues", "independent teal", "free sky colors"],
        "lighting": "natural, unrestricted light",
        "space": "open space with clear boundaries",
        "mood": "free, self-directed, unconfined",
    },
    "growth": {
        "colors": ["fresh green", "sunrise yellow", "evolving gradients"],
        "lighting": "dynamic lighting with upward direction",
        "space": "expanding space with room to grow",
        "mood": "aspiring, forward-moving, optimistic",
    },
    "meaning": {
        "colors": ["deep purple", "cosmic blue", "meaningful gold"],
        "lighting": "ethereal, purposeful glow",
        "space": "contemplative space with symbolic elements",
        "mood": "reflective, purposeful, profound",
    },
}

# (keywords, protective, defensive, vulnerability)
TRAUMA_VISUAL_RULES = [
    (
        ("reject", "abandon", "left out", "버림", "거절"),
        ["warm blankets", "cozy nooks"],
        ["closed doors", "boundaries"],
        ["open windows", "inviting spaces"],
    ),
    (
        ("ignored", "worth", "recogni", "무시", "인정"),
        ["personal achievements display", "recognition symbols"],
        ["personal space markers"],
        [],
    ),
    (
        ("control", "autonomy", "통제", "자율"),
        ["personal choice indicators", "freedom symbols"],
        ["clear personal boundaries"],
        [],
    ),
    (
        ("fail", "growth", "실패", "성장"),
        ["growth plants", "learning materials"],
        ["safety nets", "stable foundations"],
        [],
    ),
]


def analyze_need_visuals(need_vector: NeedVector) -> Dict:
    dominant = need_vector.top_needs(threshold=0.5, limit=3)

    colors: List[str] = []
    lighting, space, moods = [], [], []
    for need in dominant:
        visual = NEED_VISUAL_MAPPING.get(need.need)
        if not visual:
            continue
        for color in visual["colors"]:
            if color not in colors:
                colors.append(color)
        lighting.append(visual["lighting"])
        space.append(visual["space"])
        moods.append(visual["mood"])

    return {
        "colors": colors[:MAX_COLORS],
        "lighting": lighting[0] if lighting else "balanced, neutral lighting",
        "space": space[0] if space else "comfortable personal space",
        "mood": ", ".join(moods),
        "dominant_needs": [n.need for n in dominant],
    }


def map_trauma_to_visuals(trauma_text: str) -> Dict[str, List[str]]:
    text = trauma_text.lower()
    visuals = {"protective": [], "defensive": [], "vulnerability": []}
    for keywords, protective, defensive, vulnerability in TRAUMA_VISUAL_RULES:
        if any(keyword in text for keyword in keywords):
            visuals["protective"].extend(protective)
            visuals["defensive"].extend(defensive)
            visuals["vulnerability"].extend(vulnerability)
    return visuals


def select_objects(pool: List[VisualRecord], archetype: str, dominant_needs: List[str]) -> List[VisualRecord]:
    """3-5 objects relevant to the archetype or needs, one per category where possible."""
    archetype = archetype.lower()

    def relevant(obj: VisualRecord) -> bool:
        tags = [tag.lower() for tag in obj.tags]
        matches_archetype = any(tag in archetype for tag in tags)
        matches_needs = any(need.lower() in tag for tag in tags for need in dominant_needs)
        return matches_archetype or matches_needs

    candidates = [obj for obj in pool if relevant(obj)] or list(pool)

    selected: List[VisualRecord] = []
    used_categories = set()
    for obj in candidates:
        if len(selected) >= MAX_OBJECTS:
            break
        if obj.category not in used_categories:
            selected.append(obj)
            used_categories.add(obj.category)

    if len(selected) < MIN_OBJECTS:
        for obj in candidates:
            if len(selected) >= MIN_OBJECTS:
                break
            if obj not in selected:
                selected.append(obj)

    return selected


class ImagePromptStage(Stage):
    """Deterministic image prompt builder."""

    name = "Agent4"
    description = "Image prompt generation"
    output_field = "image_prompt"
    requires = ("need_vector", "character")

    def __init__(self, pool_store: SQLDataPoolStore):
        self.pool_store = pool_store

    def assemble_prompt(
        self,
        character: CharacterProfile,
        need_visuals: Dict,
        trauma_visuals: Dict[str, List[str]],
        objects: List[VisualRecord],
    ) -> str:
        surface = character.personality_traits.surface
        atmosphere = surface[0].trait.lower() if surface else "lived-in and personal"

        lines = [
            f"Create a pixel art illustration of a cozy personal room that reflects the essence of {character.name}.",
            "",
            "**Style**: 16-bit pixel art, isometric view, detailed but clean, warm and inviting aesthetic.",
            "",
            f"**Color Palette**: {', '.join(need_visuals['colors'])}. "
            "Use these colors to create a harmonious and emotionally resonant space.",
            "",
            f"**Mood**: {need_visuals['mood']}. The overall atmosphere should feel {atmosphere}.",
            "",
            f"**Lighting**: {need_visuals['lighting']}.",
            "",
            f"**Space**: {need_visuals['space']}.",
            "",
            "**Key Objects**:",
        ]
        lines.extend(f"- {obj.name}: {obj.symbolism}" if obj.symbolism else f"- {obj.name}" for obj in objects)
        lines.append("")

        if trauma_visuals["protective"] or trauma_visuals["defensive"]:
            lines.append("**Symbolic Elements**:")
            if trauma_visuals["protective"]:
                lines.append(f"- Protective: {', '.join(trauma_visuals['protective'])}")
            if trauma_visuals["defensive"]:
                lines.append(f"- Boundaries: {', '.join(trauma_visuals['defensive'])}")
            lines.append("")

        lines.extend([
            "**Details**: Include small personal touches like books, photos, plants, or decorative items "
            "that suggest someone lives here and cares about their space. The room should feel lived-in "
            "but organized according to their personality.",
            "",
            "**Technical**: High resolution pixel art, clean lines, no text or labels, "
            "suitable for a profile or character representation.",
        ])
        return "\n".join(lines)

    def build_reasoning(self, character: CharacterProfile, need_vector: NeedVector, elements: VisualElements) -> str:
        lines = [f"Image prompt reasoning for {character.name}:", "", "**Dominant Needs**:"]
        for need in need_vector.top_needs(threshold=0.5, limit=3):
            lines.append(
                f"- {need.need} ({need.actual * 100:.0f}%): Reflected through "
                f"{', '.join(elements.colors)} colors and {elements.mood} atmosphere."
            )
        lines.append("")
        lines.append(
            f"**Archetype**: {character.archetype} - Selected objects "
            f"({', '.join(elements.objects)}) align with this archetype."
        )
        trauma_text = character.trauma_and_learning.as_text()
        if trauma_text:
            lines.append("")
            lines.append(
                f"**Trauma Integration**: Visual elements incorporate protective and defensive "
                f'symbolism based on "{trauma_text[:50]}..."'
            )
        lines.append("")
        lines.append(
            f"**Overall Visual Strategy**: Using {elements.lighting} and {elements.space} to create "
            "a cohesive representation of the character's inner world."
        )
        return "\n".join(lines)

    async def run(self, context: PipelineContext) -> ImagePrompt:
        start = time.time()
        need_vector = self.require(context, "need_vector")
        character = self.require(context, "character")
        logger.info(f"[Agent4] Starting image prompt generation | character={character.name}")

        need_visuals = analyze_need_visuals(need_vector)
        trauma_visuals = map_trauma_to_visuals(character.trauma_and_learning.as_text())
        objects = select_objects(self.pool_store.visuals(), character.archetype, need_visuals["dominant_needs"])

        elements = VisualElements(
            colors=need_visuals["colors"],
            objects=[obj.name for obj in objects],
            mood=need_visuals["mood"],
            lighting=need_visuals["lighting"],
            space=need_visuals["space"],
        )
        prompt = self.assemble_prompt(character, need_visuals, trauma_visuals, objects)

        logger.info(f"[Agent4] Image prompt generated in {time.time() - start:.2f}s | length={len(prompt)}")
        return ImagePrompt(
            image_prompt=prompt,
            visual_elements=elements,
            dominant_needs=need_visuals["dominant_needs"],
            reasoning=self.build_reasoning(character, need_vector, elements),
        )
