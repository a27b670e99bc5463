"""
Pipeline Schemas
Onboarding input accepted by the orchestrator and the context the stages
fill in as the run progresses.
"""

from typing import List, Literal, Optional
from pydantic import BaseModel, Field

from knock.core.config import settings
from knock.schemas.agents import (
    NeedVector, CharacterProfile, GeneratedPrompt, ImagePrompt, GeneratedAsset,
)


class DomainVisit(BaseModel):
    domain: str
    count: int = 1


class CategoryVisit(BaseModel):
    category: str
    count: int = 1


class BrowsingHistory(BaseModel):
    """Optional seven-day browsing summary from the extension."""
    domains: List[DomainVisit] = []
    keywords: List[str] = []
    categories: List[CategoryVisit] = []
    total_visits: int = 0


class UserData(BaseModel):
    """Raw onboarding answers."""
    domains: List[str] = []
    keywords: List[str] = []
    interests: List[str] = []
    avoid_topics: List[str] = []
    browsing_history: Optional[BrowsingHistory] = None


class Preferences(BaseModel):
    conversation_style: Optional[Literal["casual", "formal", "mixed"]] = None
    response_length: Optional[Literal["short", "medium", "long"]] = None


class PipelineInput(BaseModel):
    """Schema for a pipeline run request."""
    user_id: str = Field(min_length=1)
    user_name: str = "User"
    user_data: UserData
    preferences: Optional[Preferences] = None
    language: str = Field(default_factory=lambda: settings.DEFAULT_LANGUAGE)
    template_id: Optional[str] = None
    dry_run: bool = False


class PipelineContext(BaseModel):
    """Accumulated stage outputs for one job attempt."""
    job_id: str
    input: PipelineInput
    need_vector: Optional[NeedVector] = None
    character: Optional[CharacterProfile] = None
    generated_prompt: Optional[GeneratedPrompt] = None
    image_prompt: Optional[ImagePrompt] = None
    asset: Optional[GeneratedAsset] = None

    class Config:
        validate_assignment = True
