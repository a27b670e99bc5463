"""
Room Image Presets
Fixed pool of pixel-art rooms used when image generation is off or fails,
and the deterministic scorer that picks one.
"""

import re
from typing import List, Optional, Sequence

from pydantic import BaseModel

from knock.core.exceptions import StageError
from knock.schemas.agents import VisualElements


class ImagePreset(BaseModel):
    id: str
    name: str
    url: str
    colors: List[str]
    mood: str
    tags: List[str]


IMAGE_PRESETS: List[ImagePreset] = [
    ImagePreset(
        id="cozy-developer",
        name="Cozy Developer Room",
        url="/presets/cozy-developer.png",
        colors=["warm browns", "soft blue", "tech green"],
        mood="focused, comfortable, tech-savvy",
        tags=["developer", "autonomy", "growth", "minimal"],
    ),
    ImagePreset(
        id="creative-sanctuary",
        name="Creative Sanctuary",
        url="/presets/creative-sanctuary.png",
        colors=["warm orange", "soft pink", "gentle yellow"],
        mood="creative, expressive, inspiring",
        tags=["creative", "meaning", "growth", "colorful"],
    ),
    ImagePreset(
        id="minimalist-zen",
        name="Minimalist Zen Space",
        url="/presets/minimalist-zen.png",
        colors=["cool grey", "soft white", "nature green"],
        mood="peaceful, organized, clear",
        tags=["minimalist", "survival", "autonomy", "clean"],
    ),
    ImagePreset(
        id="gamer-den",
        name="Gamer Den",
        url="/presets/gamer-den.png",
        colors=["neon blue", "electric purple", "dark background"],
        mood="energetic, immersive, competitive",
        tags=["gamer", "recognition", "belonging", "tech"],
    ),
    ImagePreset(
        id="bookworm-library",
        name="Bookworm Library",
        url="/presets/bookworm-library.png",
        colors=["warm wood", "antique gold", "paper cream"],
        mood="scholarly, contemplative, cozy",
        tags=["scholar", "growth", "meaning", "traditional"],
    ),
    ImagePreset(
        id="plant-parent",
        name="Plant Parent Paradise",
        url="/presets/plant-parent.png",
        colors=["fresh green", "earth brown", "sky blue"],
        mood="nurturing, natural, growing",
        tags=["nature", "growth", "belonging", "organic"],
    ),
    ImagePreset(
        id="social-butterfly",
        name="Social Hub",
        url="/presets/social-butterfly.png",
        colors=["bright yellow", "warm orange", "friendly pink"],
        mood="welcoming, connected, vibrant",
        tags=["social", "belonging", "recognition", "warm"],
    ),
    ImagePreset(
        id="achiever-office",
        name="Achiever Office",
        url="/presets/achiever-office.png",
        colors=["confident red", "gold accent", "professional grey"],
        mood="accomplished, organized, driven",
        tags=["achiever", "recognition", "growth", "professional"],
    ),
    ImagePreset(
        id="artist-studio",
        name="Artist Studio",
        url="/presets/artist-studio.png",
        colors=["rainbow palette", "creative chaos", "inspiring"],
        mood="expressive, free, passionate",
        tags=["artist", "autonomy", "meaning", "creative"],
    ),
    ImagePreset(
        id="night-owl",
        name="Night Owl Lair",
        url="/presets/night-owl.png",
        colors=["deep blue", "moonlight silver", "star gold"],
        mood="quiet, introspective, nocturnal",
        tags=["night", "autonomy", "meaning", "dark"],
    ),
]

ARCHETYPE_WEIGHT = 5
COLOR_WEIGHT = 4
MOOD_WEIGHT = 3
OBJECT_WEIGHT = 3


def get_preset_by_id(preset_id: str, presets: Sequence[ImagePreset] = IMAGE_PRESETS) -> Optional[ImagePreset]:
    return next((p for p in presets if p.id == preset_id), None)


def count_matches(items: Sequence[str], targets: Sequence[str]) -> int:
    """Pairs where either string contains the other."""
    count = 0
    for item in items:
        for target in targets:
            if item and target and (item in target or target in item):
                count += 1
    return count


def count_word_overlap(text_a: str, text_b: str) -> int:
    """Shared words longer than three letters."""
    words_a = [w for w in re.split(r"[\s,]+", text_a) if w]
    words_b = [w for w in re.split(r"[\s,]+", text_b) if w]
    return sum(1 for a in words_a for b in words_b if a == b and len(a) > 3)


def score_preset(preset: ImagePreset, elements: VisualElements, archetype: str = "") -> int:
    tags = [t.lower() for t in preset.tags]
    archetype_tokens = [t for t in re.split(r"[\s_\-]+", archetype.lower()) if t]

    score = count_matches(archetype_tokens, tags) * ARCHETYPE_WEIGHT
    score += count_matches([c.lower() for c in elements.colors], [c.lower() for c in preset.colors]) * COLOR_WEIGHT
    score += count_word_overlap(elements.mood.lower(), preset.mood.lower()) * MOOD_WEIGHT
    score += count_matches([o.lower() for o in elements.objects], tags) * OBJECT_WEIGHT
    return score


def select_best_preset(
    elements: VisualElements,
    archetype: str = "",
    presets: Sequence[ImagePreset] = IMAGE_PRESETS,
) -> ImagePreset:
    """Highest scoring preset; ties keep the earlier preset."""
    if not presets:
        raise StageError("No image presets available for fallback")

    best = presets[0]
    best_score = score_preset(best, elements, archetype)
    for preset in presets[1:]:
        score = score_preset(preset, elements, archetype)
        if score > best_score:
            best, best_score = preset, score
    return best
