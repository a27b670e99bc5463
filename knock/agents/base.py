"""
Base Stage Classes
Common interface for the five pipeline agents plus helpers for parsing
model responses.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

from knock.core.exceptions import StageValidationError
from knock.schemas.pipeline import PipelineContext

logger = logging.getLogger(__name__)


class Stage(ABC):
    """
    Abstract base class for pipeline stages.

    A stage reads earlier outputs from the context, returns its own output
    and never mutates the context itself; the orchestrator stores the result
    under ``output_field``.
    """

    name: str = ""
    description: str = ""
    output_field: str = ""
    requires: Tuple[str, ...] = ()

    def require(self, context: PipelineContext, field: str) -> Any:
        """Fetch an earlier stage output or fail the stage."""
        value = getattr(context, field, None)
        if value is None:
            raise StageValidationError(f"{self.name} requires {field}, which is missing")
        return value

    def input_snapshot(self, context: PipelineContext) -> Dict[str, Any]:
        """JSON snapshot of what this stage consumes, for the stage log."""
        if not self.requires:
            return {"input": context.input.model_dump(mode="json")}
        snapshot = {}
        for field in self.requires:
            value = getattr(context, field, None)
            snapshot[field] = value.model_dump(mode="json") if value is not None else None
        return snapshot

    @abstractmethod
    async def run(self, context: PipelineContext) -> Any:
        """
        Execute the stage. Must be implemented by subclasses.

        Returns:
            Pydantic model stored on the context under ``output_field``
        """
        pass

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.name}>"


def parse_json_response(text: str, stage_name: Optional[str] = None) -> Dict[str, Any]:
    """Parse a model response as a JSON object, tolerating markdown code fences."""
    cleaned = (text or "").strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.replace("```json", "").replace("```", "").strip()

    try:
        result = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.error(f"[{stage_name or 'Stage'}] JSON Parse Error: {e}")
        logger.debug(f"Raw text: {text}")
        raise StageValidationError(
            f"{stage_name or 'Stage'} returned invalid JSON: {e}",
            {"raw": (text or "")[:500]},
        ) from e

    if not isinstance(result, dict):
        raise StageValidationError(f"{stage_name or 'Stage'} returned JSON {type(result).__name__}, expected an object")
    return result
