"""
Agent 1: Need Vector Analysis
Scores the six fundamental needs from onboarding answers using the
frequency-deficiency principle and multi-perspective interpretation.
"""

import logging
import time

from pydantic import ValidationError

from knock.agents.base import Stage, parse_json_response
from knock.core.config import settings
from knock.core.exceptions import StageValidationError
from knock.schemas.agents import NeedVector
from knock.schemas.pipeline import PipelineContext, PipelineInput
from knock.services.llm import TextModel

logger = logging.getLogger(__name__)


class NeedVectorStage(Stage):
    """LLM-backed extraction of the need vector."""

    name = "Agent1"
    description = "Need vector analysis"
    output_field = "need_vector"

    PROMPT_TEMPLATE = """You are an expert psychologist analyzing user data to identify fundamental human needs.

[User Data]{browsing_block}

Domains visited: {domains}
Search keywords: {keywords}
Interests: {interests}
Avoid topics: {avoid_topics}

[Task]
Analyze this data from MULTIPLE perspectives to avoid bias.
For each of the 6 fundamental needs, determine the intensity (0.0 to 1.0):

1. **Survival** (safety, stability)
2. **Belonging** (connection, community)
3. **Recognition** (worth, achievement)
4. **Autonomy** (control, independence)
5. **Growth** (development, learning)
6. **Meaning** (purpose, contribution)

[Critical Rules]
- Interpret EACH behavior from AT LEAST 3 different need perspectives
- Example: "github.com" could indicate:
  * Recognition (show skills)
  * Growth (learning)
  * Belonging (developer community)
  * Autonomy (solve problems independently)
- AVOID stereotyping (e.g., "github = recognition only")
- Look for WHAT IS MISSING (absence = potential hidden need)
- Apply FREQUENCY-DEFICIENCY principle: High frequency = High deficiency

[Frequency-Deficiency Analysis]
- If user frequently searches "dating advice" -> Belonging deficiency (loneliness)
- If user frequently views "success stories" -> Recognition deficiency (achievement lack)
- High consumption of content = Deficiency in that area, NOT fulfillment

[Output Format - JSON ONLY]
Respond with a valid JSON object (no markdown, no code blocks) with this structure:
{{
  "presenceVector": [
    {{"need": "belonging", "intensity": 0.8, "evidence": ["reddit communities"], "interpretation": "Seeking community through gaming"}}
  ],
  "deficiencyVector": [
    {{"need": "belonging", "type": "FRUSTRATED", "evidence": "High frequency of social content consumption", "hiddenIntensity": 0.9, "reason": "Consuming social content suggests unmet need"}}
  ],
  "completeVector": [
    {{"need": "belonging", "observed": 0.6, "hidden": 0.9, "actual": 0.9, "gap": 0.3, "state": "deficient"}}
  ],
  "paradoxes": [
    {{"needA": "belonging", "needB": "autonomy", "intensityA": 0.8, "intensityB": 0.7, "tension": 0.7, "description": "Wants connection but also independence"}}
  ]
}}

Write free-text fields in language: {language}
IMPORTANT: Include all 6 needs in completeVector, even if intensity is low.
IMPORTANT: Return ONLY valid JSON, no explanations."""

    def __init__(self, text_model: TextModel, temperature: float = None, max_tokens: int = None):
        self.text_model = text_model
        self.temperature = settings.AGENT1_TEMPERATURE if temperature is None else temperature
        self.max_tokens = max_tokens or settings.LLM_MAX_TOKENS

    def build_prompt(self, data: PipelineInput) -> str:
        user_data = data.user_data

        browsing_block = ""
        history = user_data.browsing_history
        if history:
            domains = ", ".join(f"{d.domain} ({d.count}x)" for d in history.domains[:10])
            categories = ", ".join(f"{c.category} ({c.count}x)" for c in history.categories)
            browsing_block = (
                f"\n\n### Browsing History (Last 7 days, {history.total_visits} total visits)"
                f"\n**Top Domains**: {domains}"
                f"\n**Keywords**: {', '.join(history.keywords[:30])}"
                f"\n**Categories**: {categories}"
                "\n\n**FREQUENCY-DEFICIENCY ANALYSIS REQUIRED**: High frequency of visits/searches "
                "in a domain indicates DEFICIENCY in that need, NOT fulfillment."
            )

        return self.PROMPT_TEMPLATE.format(
            browsing_block=browsing_block,
            domains=", ".join(user_data.domains) or "none",
            keywords=", ".join(user_data.keywords) or "none",
            interests=", ".join(user_data.interests) or "none",
            avoid_topics=", ".join(user_data.avoid_topics) or "none",
            language=data.language,
        )

    async def run(self, context: PipelineContext) -> NeedVector:
        start = time.time()
        data = context.input
        logger.info(
            f"[Agent1] Starting need vector analysis | user={data.user_id} "
            f"domains={len(data.user_data.domains)} keywords={len(data.user_data.keywords)}"
        )

        raw = await self.text_model.generate_text(
            self.build_prompt(data),
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            json_mode=True,
        )
        payload = parse_json_response(raw, self.name)

        try:
            result = NeedVector.model_validate(payload)
        except ValidationError as e:
            raise StageValidationError(f"Invalid Agent1 output format: {e}") from e

        logger.info(
            f"[Agent1] Analysis completed in {time.time() - start:.2f}s | "
            f"paradoxes={len(result.paradoxes)} top={[n.need for n in result.top_needs()]}"
        )
        return result
