"""
Stage Schemas
Typed outputs of the five pipeline stages.

Models that are parsed from LLM responses accept the camelCase keys the
prompts ask for (``completeVector``, ``hiddenIntensity``) as well as
snake_case, and always dump as snake_case.
"""

from datetime import datetime
from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


NEED_CATEGORIES = ("survival", "belonging", "recognition", "autonomy", "growth", "meaning")


class CamelModel(BaseModel):
    """Base for model-generated payloads."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


# ---------------------------------------------------------------------------
# Agent 1: need vector
# ---------------------------------------------------------------------------

class NeedPresence(CamelModel):
    need: str
    intensity: float = Field(ge=0.0, le=1.0)
    evidence: List[str] = []
    interpretation: str = ""


class NeedDeficiency(CamelModel):
    need: str
    type: str = "UNAWARE"  # SUPPRESSED | AVOIDED | SATISFIED | FRUSTRATED | UNAWARE
    evidence: str = ""
    hidden_intensity: float = Field(default=0.0, ge=0.0, le=1.0)
    reason: str = ""


class NeedScore(CamelModel):
    need: str
    observed: float = Field(default=0.0, ge=0.0, le=1.0)
    hidden: float = Field(default=0.0, ge=0.0, le=1.0)
    actual: float = Field(ge=0.0, le=1.0)
    gap: float = 0.0
    state: Literal["satisfied", "balanced", "deficient", "critical"] = "balanced"

    @field_validator("need")
    @classmethod
    def known_need(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in NEED_CATEGORIES:
            raise ValueError(f"unknown need category: {v}")
        return v


class Paradox(CamelModel):
    need_a: str
    need_b: str
    intensity_a: float = 0.0
    intensity_b: float = 0.0
    tension: float = 0.0
    description: str = ""


class NeedVector(CamelModel):
    """Scored mapping over the six fundamental needs."""
    presence_vector: List[NeedPresence] = []
    deficiency_vector: List[NeedDeficiency] = []
    complete_vector: List[NeedScore]
    paradoxes: List[Paradox] = []

    @model_validator(mode="after")
    def all_needs_scored(self):
        needs = [score.need for score in self.complete_vector]
        if len(needs) != len(NEED_CATEGORIES) or set(needs) != set(NEED_CATEGORIES):
            raise ValueError(
                f"complete_vector must score each of {', '.join(NEED_CATEGORIES)} exactly once"
            )
        return self

    def scores(self) -> Dict[str, float]:
        return {score.need: score.actual for score in self.complete_vector}

    def top_needs(self, threshold: float = 0.5, limit: int = 3) -> List[NeedScore]:
        """Strongest needs above the threshold, highest first."""
        strong = [score for score in self.complete_vector if score.actual > threshold]
        strong.sort(key=lambda score: score.actual, reverse=True)
        return strong[:limit]


# ---------------------------------------------------------------------------
# Agent 2: character profile
# ---------------------------------------------------------------------------

class SelectedExperience(CamelModel):
    id: str
    customization: Optional[str] = None


class LearnedBeliefs(CamelModel):
    about_world: List[str] = []
    about_people: List[str] = []
    about_self: List[str] = []


class Trauma(CamelModel):
    deepest_fear: str = ""
    never_again: str = ""
    avoidances: List[str] = []
    triggers: str = ""


class TraumaAndLearning(CamelModel):
    learned_beliefs: LearnedBeliefs = LearnedBeliefs()
    trauma: Trauma = Trauma()

    def as_text(self) -> str:
        parts = [
            *self.learned_beliefs.about_world,
            *self.learned_beliefs.about_people,
            *self.learned_beliefs.about_self,
            self.trauma.deepest_fear,
            self.trauma.never_again,
            *self.trauma.avoidances,
            self.trauma.triggers,
        ]
        return " ".join(part for part in parts if part)


class SurvivalStrategy(CamelModel):
    name: str
    purpose: str = ""
    effect: str = ""
    cost: str = ""


class TraitBehavior(CamelModel):
    trait: str
    behavior: str = ""


class PersonalityTraits(CamelModel):
    surface: List[TraitBehavior] = []
    shadow: List[TraitBehavior] = []


class PhraseReason(CamelModel):
    phrase: str
    reason: str = ""


class ConversationStyle(CamelModel):
    length: Literal["short", "medium", "long"] = "medium"
    speed: Literal["fast", "medium", "slow"] = "medium"
    tone: str = "friendly"
    characteristics: str = ""


class ConversationPatterns(CamelModel):
    frequent_phrases: List[PhraseReason] = []
    never_says: List[PhraseReason] = []
    style: ConversationStyle = ConversationStyle()


class CharacterProfile(CamelModel):
    name: str = Field(min_length=1)
    archetype: str = Field(min_length=1)
    keywords: List[str] = Field(min_length=1)
    selected_experiences: List[SelectedExperience] = []
    trauma_and_learning: TraumaAndLearning
    survival_strategies: List[SurvivalStrategy] = []
    personality_traits: PersonalityTraits = PersonalityTraits()
    conversation_patterns: ConversationPatterns = ConversationPatterns()


# ---------------------------------------------------------------------------
# Agent 3: system prompt
# ---------------------------------------------------------------------------

class PromptValidation(BaseModel):
    passed: bool
    critical: bool
    issues: List[str] = []


class GeneratedPrompt(BaseModel):
    system_prompt: str
    validation: PromptValidation
    token_count: int
    template_id: str
    template_version: Optional[str] = None


# ---------------------------------------------------------------------------
# Agent 4: image prompt
# ---------------------------------------------------------------------------

class VisualElements(BaseModel):
    colors: List[str] = []
    objects: List[str] = []
    mood: str = ""
    lighting: str = ""
    space: str = ""


class ImagePrompt(BaseModel):
    image_prompt: str
    visual_elements: VisualElements
    dominant_needs: List[str] = []
    reasoning: str = ""


# ---------------------------------------------------------------------------
# Agent 5: room image
# ---------------------------------------------------------------------------

class AssetMetadata(BaseModel):
    prompt: str
    colors: List[str] = []
    mood: str = ""
    timestamp: datetime


class GeneratedAsset(BaseModel):
    image_ref: str
    source: Literal["generated", "preset"]
    preset_id: Optional[str] = None
    metadata: AssetMetadata
