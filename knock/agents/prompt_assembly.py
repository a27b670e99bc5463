"""
Agent 3: System Prompt Assembly
Renders the roommate system prompt from a versioned section template.
No remote calls: template sections use ``str.format`` placeholders that are
filled from pre-rendered blocks.
"""

import logging
import math
import time
from typing import Dict, List

from knock.agents.base import Stage
from knock.core.exceptions import StageError, PromptValidationError
from knock.schemas.agents import NeedVector, CharacterProfile, GeneratedPrompt, PromptValidation
from knock.schemas.data_pool import ExperienceRecord, PromptTemplateResponse
from knock.schemas.pipeline import PipelineContext
from knock.services.data_pool import SQLDataPoolStore

logger = logging.getLogger(__name__)

SECTION_ORDER = ("why", "past", "trauma", "how", "personality", "what", "relationship")
REQUIRED_HEADINGS = ("WHY", "HOW", "WHAT")
MIN_TOKENS = 1000
MAX_TOKENS = 4000

NEED_NAMES = {
    "survival": "Survival",
    "belonging": "Belonging",
    "recognition": "Recognition",
    "autonomy": "Autonomy",
    "growth": "Growth",
    "meaning": "Meaning",
}

NEED_DESCRIPTIONS = {
    "survival": "I need to feel safe and stable",
    "belonging": "I need to feel connected to people",
    "recognition": "I need my worth to be acknowledged",
    "autonomy": "I need to make my own choices",
    "growth": "I need to keep learning and developing",
    "meaning": "I need my life to have purpose",
}


def count_tokens(text: str) -> int:
    """Rough token estimate for mixed Korean/English text."""
    return math.ceil(len(text) / 3.5)


def _bullets(items: List[str], empty: str = "- (none)") -> str:
    lines = [f"- {item}" for item in items if item]
    return "\n".join(lines) if lines else empty


def _intensity_label(actual: float) -> str:
    if actual > 0.8:
        return "strong"
    if actual > 0.5:
        return "moderate"
    return "weak"


def validate_system_prompt(prompt: str) -> PromptValidation:
    issues = []
    critical = False

    for heading in REQUIRED_HEADINGS:
        if f"## {heading}" not in prompt:
            issues.append(f"Missing {heading} section")
            critical = True

    tokens = count_tokens(prompt)
    if tokens < MIN_TOKENS:
        issues.append(f"Too short: {tokens} tokens (min {MIN_TOKENS})")
    if tokens > MAX_TOKENS:
        issues.append(f"Too long: {tokens} tokens (max {MAX_TOKENS})")

    if "[Error" in prompt:
        issues.append("Contains compilation errors")
        critical = True

    return PromptValidation(passed=not issues, critical=critical, issues=issues)


class PromptAssemblyStage(Stage):
    """Template rendering of the persona system prompt."""

    name = "Agent3"
    description = "System prompt assembly"
    output_field = "generated_prompt"
    requires = ("need_vector", "character")

    def __init__(self, pool_store: SQLDataPoolStore):
        self.pool_store = pool_store

    def build_variables(
        self,
        context: PipelineContext,
        need_vector: NeedVector,
        character: CharacterProfile,
        experiences: List[ExperienceRecord],
    ) -> Dict[str, str]:
        needs = [n for n in need_vector.complete_vector if n.actual > 0.5]
        needs_block = "\n".join(
            f"- **{NEED_NAMES.get(n.need, n.need)}** ({_intensity_label(n.actual)}): "
            f"{NEED_DESCRIPTIONS.get(n.need, n.need)}"
            for n in needs
        ) or "- No single need dominates right now."

        by_id = {e.id: e for e in experiences}
        experience_blocks = []
        for sel in character.selected_experiences:
            exp = by_id.get(sel.id)
            if not exp:
                continue
            age = f" (age {exp.age_min})" if exp.age_min is not None else ""
            block = f"### {len(experience_blocks) + 1}. {exp.title}{age}\n{exp.description}"
            if sel.customization:
                block += f"\n\n{sel.customization}"
            block += f"\n\nWhat I learned:\n{_bullets(exp.learnings)}"
            experience_blocks.append(block)

        trauma = character.trauma_and_learning
        beliefs = trauma.learned_beliefs
        patterns = character.conversation_patterns
        style = patterns.style

        return {
            "character_name": character.name,
            "user_name": context.input.user_name,
            "language": context.input.language,
            "needs_block": needs_block,
            "experiences_block": "\n\n".join(experience_blocks) or "I rarely talk about my past.",
            "beliefs_world": "; ".join(beliefs.about_world) or "-",
            "beliefs_people": "; ".join(beliefs.about_people) or "-",
            "beliefs_self": "; ".join(beliefs.about_self) or "-",
            "deepest_fear": trauma.trauma.deepest_fear or "-",
            "never_again": trauma.trauma.never_again or "-",
            "avoidances": ", ".join(trauma.trauma.avoidances) or "-",
            "triggers": trauma.trauma.triggers or "-",
            "strategies_block": "\n\n".join(
                f"### {s.name}\n- **Purpose**: {s.purpose}\n- **Effect**: {s.effect}\n- **Cost**: {s.cost}"
                for s in character.survival_strategies
            ) or "- (none)",
            "surface_block": _bullets([f"**{t.trait}**: {t.behavior}" for t in character.personality_traits.surface]),
            "shadow_block": _bullets([f"**{t.trait}**: {t.behavior}" for t in character.personality_traits.shadow]),
            "frequent_phrases_block": _bullets(
                [f'"{p.phrase}" ({p.reason})' for p in patterns.frequent_phrases]
            ),
            "never_says_block": _bullets([f'"{p.phrase}" ({p.reason})' for p in patterns.never_says]),
            "style_length": style.length,
            "style_speed": style.speed,
            "style_tone": style.tone,
            "style_characteristics": style.characteristics or "-",
        }

    def render_sections(self, template: PromptTemplateResponse, variables: Dict[str, str]) -> Dict[str, str]:
        compiled = {}
        for key, source in template.sections.items():
            try:
                compiled[key] = source.format_map(variables)
            except (KeyError, IndexError, AttributeError, ValueError) as e:
                logger.error(f"[Agent3] Failed to compile section {key}: {e}")
                compiled[key] = f"[Error compiling {key}]"
        return compiled

    def build_final_prompt(self, sections: Dict[str, str], character_name: str) -> str:
        body = "\n\n---\n\n".join(sections[key] for key in SECTION_ORDER if sections.get(key))
        return f"# System Prompt: {character_name}\n\n{body}".strip()

    async def run(self, context: PipelineContext) -> GeneratedPrompt:
        start = time.time()
        need_vector = self.require(context, "need_vector")
        character = self.require(context, "character")
        template_id = context.input.template_id
        logger.info(f"[Agent3] Starting system prompt assembly | character={character.name} template={template_id}")

        template = self.pool_store.get_template(template_id)
        if not template:
            raise StageError(f"Template not found: {template_id or 'default'}")
        logger.info(f"[Agent3] Template loaded | {template.name} v{template.version}")

        experiences = self.pool_store.experiences_by_ids(s.id for s in character.selected_experiences)
        variables = self.build_variables(context, need_vector, character, experiences)
        sections = self.render_sections(template, variables)
        system_prompt = self.build_final_prompt(sections, character.name)

        validation = validate_system_prompt(system_prompt)
        token_count = count_tokens(system_prompt)

        if validation.critical:
            raise PromptValidationError(validation.issues, {"token_count": token_count})
        if validation.issues:
            logger.warning(f"[Agent3] Validation issues: {validation.issues}")

        logger.info(
            f"[Agent3] System prompt assembled in {time.time() - start:.2f}s | "
            f"tokens={token_count} passed={validation.passed}"
        )
        return GeneratedPrompt(
            system_prompt=system_prompt,
            validation=validation,
            token_count=token_count,
            template_id=template.id,
            template_version=template.version,
        )
