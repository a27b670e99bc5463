"""
Agent 2: Character Profile Generation
Builds the roommate's character sheet from the need vector and the
experience / archetype pools.
"""

import json
import logging
import time
from typing import List

from pydantic import ValidationError

from knock.agents.base import Stage, parse_json_response
from knock.core.config import settings
from knock.core.exceptions import StageValidationError
from knock.schemas.agents import NeedVector, CharacterProfile
from knock.schemas.data_pool import ExperienceRecord, ArchetypeRecord
from knock.schemas.pipeline import PipelineContext
from knock.services.data_pool import SQLDataPoolStore
from knock.services.llm import TextModel

logger = logging.getLogger(__name__)


class CharacterProfileStage(Stage):
    """LLM-backed character design grounded in the data pools."""

    name = "Agent2"
    description = "Character profile generation"
    output_field = "character"
    requires = ("need_vector",)

    TOP_NEED_THRESHOLD = 0.5
    TOP_NEED_LIMIT = 3
    EXPERIENCE_LIMIT = 10

    PROMPT_TEMPLATE = """You are a character designer creating a compelling AI roommate personality.

[Need Vectors]
{need_vectors}

[Paradoxes Detected]
{paradoxes}

[Available Experience Templates]
{experiences}

[Available Archetypes]
{archetypes}

[User Preferences]
Conversation style: {conversation_style}
Response length: {response_length}

[Task]
Create a detailed character profile by:

1. **Generate character name** (natural for language "{language}", short and friendly)
   - Reflect personality
   - Friendly and approachable

2. **Select matching archetype** from the archetype names above
   - Based on top 2-3 needs
   - Consider paradoxes

3. **Select 2-4 experiences** from the experience pool by id
   - Match with user's top needs
   - Ensure diversity (not all same category)

4. **Create trauma & learning**
   - Based on selected experiences
   - Include triggers and fears

5. **Generate survival strategies**
   - How character achieves needs
   - Include costs/tradeoffs (at least 2 strategies)

6. **Define personality traits**
   - Surface (visible, at least 3)
   - Shadow (hidden, at least 2)

7. **Create conversation patterns**
   - Frequent phrases (at least 3)
   - Never says (at least 2)
   - Style details

[Output Format - JSON ONLY]
{{
  "character": {{
    "name": "Minsu",
    "archetype": "developer_gamer",
    "keywords": ["gamer", "code nerd", "night owl"],
    "selectedExperiences": [{{"id": "exp-belonging-001", "customization": "Adapted for context"}}],
    "traumaAndLearning": {{
      "learnedBeliefs": {{
        "aboutWorld": ["The world is a lonely place"],
        "aboutPeople": ["People don't understand me"],
        "aboutSelf": ["I am only safe inside a community"]
      }},
      "trauma": {{
        "deepestFear": "Being rejected again",
        "neverAgain": "Being left alone",
        "avoidances": ["open conflict", "direct refusal"],
        "triggers": "Feeling excluded from the group"
      }}
    }},
    "survivalStrategies": [
      {{"name": "Speaks in community slang", "purpose": "Confirm belonging", "effect": "I belong here", "cost": "Hard to talk with outsiders"}}
    ],
    "personalityTraits": {{
      "surface": [{{"trait": "Friendly", "behavior": "Lights up when games or code come up"}}],
      "shadow": [{{"trait": "Lonely", "behavior": "Feels there are no real friends"}}]
    }},
    "conversationPatterns": {{
      "frequentPhrases": [{{"phrase": "lol same", "reason": "Confirms belonging"}}],
      "neverSays": [{{"phrase": "You're wrong", "reason": "Avoids conflict"}}],
      "style": {{"length": "short", "speed": "fast", "tone": "light", "characteristics": "slang, emoji, abbreviations"}}
    }}
  }}
}}

Write all free-text values in language: {language}
IMPORTANT: Return ONLY valid JSON, no markdown, no explanations."""

    def __init__(
        self,
        text_model: TextModel,
        pool_store: SQLDataPoolStore,
        temperature: float = None,
        max_tokens: int = None,
    ):
        self.text_model = text_model
        self.pool_store = pool_store
        self.temperature = settings.AGENT2_TEMPERATURE if temperature is None else temperature
        self.max_tokens = max_tokens or settings.LLM_MAX_TOKENS

    def load_pools(self, need_vector: NeedVector):
        top_needs = [
            n.need for n in need_vector.top_needs(self.TOP_NEED_THRESHOLD, self.TOP_NEED_LIMIT)
        ]
        logger.info(f"[Agent2] Top needs identified: {top_needs}")
        experiences = self.pool_store.experiences_for_needs(top_needs, limit=self.EXPERIENCE_LIMIT)
        archetypes = self.pool_store.archetypes()
        return experiences, archetypes

    def build_prompt(
        self,
        context: PipelineContext,
        need_vector: NeedVector,
        experiences: List[ExperienceRecord],
        archetypes: List[ArchetypeRecord],
    ) -> str:
        preferences = context.input.preferences
        return self.PROMPT_TEMPLATE.format(
            need_vectors=json.dumps(
                [n.model_dump(mode="json") for n in need_vector.complete_vector], indent=2, ensure_ascii=False
            ),
            paradoxes=json.dumps(
                [p.model_dump(mode="json") for p in need_vector.paradoxes], indent=2, ensure_ascii=False
            ),
            experiences=json.dumps(
                [
                    {
                        "id": e.id,
                        "needType": e.need_type,
                        "title": e.title,
                        "description": e.description,
                        "learnings": e.learnings,
                    }
                    for e in experiences
                ],
                indent=2,
                ensure_ascii=False,
            ),
            archetypes=json.dumps(
                [
                    {
                        "name": a.name,
                        "displayName": a.display_name,
                        "description": a.description,
                        "keywords": a.keywords,
                    }
                    for a in archetypes
                ],
                indent=2,
                ensure_ascii=False,
            ),
            conversation_style=(preferences and preferences.conversation_style) or "any",
            response_length=(preferences and preferences.response_length) or "any",
            language=context.input.language,
        )

    async def run(self, context: PipelineContext) -> CharacterProfile:
        start = time.time()
        need_vector = self.require(context, "need_vector")
        logger.info("[Agent2] Starting character profile generation")

        experiences, archetypes = self.load_pools(need_vector)
        logger.info(f"[Agent2] Data pools loaded | experiences={len(experiences)} archetypes={len(archetypes)}")

        raw = await self.text_model.generate_text(
            self.build_prompt(context, need_vector, experiences, archetypes),
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            json_mode=True,
        )
        payload = parse_json_response(raw, self.name)

        if not isinstance(payload.get("character"), dict):
            raise StageValidationError("Invalid Agent2 output format: missing character object")

        try:
            character = CharacterProfile.model_validate(payload["character"])
        except ValidationError as e:
            raise StageValidationError(f"Invalid Agent2 output format: {e}") from e

        known_ids = {e.id for e in experiences}
        kept = [s for s in character.selected_experiences if s.id in known_ids]
        dropped = [s.id for s in character.selected_experiences if s.id not in known_ids]
        if dropped:
            logger.warning(f"[Agent2] Dropping unknown experience ids: {dropped}")
            character = character.model_copy(update={"selected_experiences": kept})

        logger.info(
            f"[Agent2] Character profile generated in {time.time() - start:.2f}s | "
            f"name={character.name} archetype={character.archetype}"
        )
        return character
