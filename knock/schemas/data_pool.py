"""
Data Pool Schemas
Read models for pool records and prompt templates handed to the stages,
and the admin write models for both.
"""

from datetime import datetime
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, field_validator

from knock.schemas.agents import NEED_CATEGORIES
from knock.schemas.job import Pagination


class ExperienceRecord(BaseModel):
    id: str
    need_type: str
    intensity: str = "medium"
    title: str
    description: str
    age_min: Optional[int] = None
    age_max: Optional[int] = None
    learnings: List[str] = []
    tags: List[str] = []
    archetypes: List[str] = []
    weight: int = 50
    is_active: bool = True
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ArchetypeRecord(BaseModel):
    id: str
    name: str
    display_name: str
    description: Optional[str] = None
    keywords: List[str] = []
    room_objects: List[Dict[str, Any]] = []
    is_active: bool = True
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class VisualRecord(BaseModel):
    id: str
    name: str
    category: str
    symbolism: Optional[str] = None
    tags: List[str] = []
    weight: int = 50
    is_active: bool = True
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ----------------------------------------------------------------------
# Pool admin writes
# ----------------------------------------------------------------------

def _known_need(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip().lower()
    if v not in NEED_CATEGORIES:
        raise ValueError(f"need_type must be one of {', '.join(NEED_CATEGORIES)}")
    return v


class ExperienceCreate(BaseModel):
    """Schema for adding an experience to the pool."""
    id: Optional[str] = None
    need_type: str
    intensity: str = "medium"
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    age_min: Optional[int] = Field(default=None, ge=0)
    age_max: Optional[int] = Field(default=None, ge=0)
    learnings: List[str] = []
    tags: List[str] = []
    archetypes: List[str] = []
    weight: int = Field(default=50, ge=0, le=100)
    is_active: bool = True

    @field_validator("need_type")
    @classmethod
    def known_need(cls, v: str) -> str:
        return _known_need(v)


class ExperienceUpdate(BaseModel):
    """Partial update. Only the fields sent are changed."""
    need_type: Optional[str] = None
    intensity: Optional[str] = None
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = Field(default=None, min_length=1)
    age_min: Optional[int] = Field(default=None, ge=0)
    age_max: Optional[int] = Field(default=None, ge=0)
    learnings: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    archetypes: Optional[List[str]] = None
    weight: Optional[int] = Field(default=None, ge=0, le=100)
    is_active: Optional[bool] = None

    @field_validator("need_type")
    @classmethod
    def known_need(cls, v: Optional[str]) -> Optional[str]:
        return _known_need(v)


class ArchetypeCreate(BaseModel):
    """Schema for adding an archetype. Names are unique."""
    id: Optional[str] = None
    name: str = Field(min_length=1)
    display_name: str = Field(min_length=1)
    description: Optional[str] = None
    keywords: List[str] = []
    room_objects: List[Dict[str, Any]] = []
    is_active: bool = True


class ArchetypeUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    display_name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    keywords: Optional[List[str]] = None
    room_objects: Optional[List[Dict[str, Any]]] = None
    is_active: Optional[bool] = None


class VisualCreate(BaseModel):
    """Schema for adding a room object."""
    id: Optional[str] = None
    name: str = Field(min_length=1)
    category: str = Field(min_length=1)
    symbolism: Optional[str] = None
    tags: List[str] = []
    weight: int = Field(default=50, ge=0, le=100)
    is_active: bool = True


class VisualUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    category: Optional[str] = Field(default=None, min_length=1)
    symbolism: Optional[str] = None
    tags: Optional[List[str]] = None
    weight: Optional[int] = Field(default=None, ge=0, le=100)
    is_active: Optional[bool] = None


class ExperienceListResponse(BaseModel):
    data: List[ExperienceRecord] = []
    pagination: Pagination


class ArchetypeListResponse(BaseModel):
    data: List[ArchetypeRecord] = []
    pagination: Pagination


class VisualListResponse(BaseModel):
    data: List[VisualRecord] = []
    pagination: Pagination


# ----------------------------------------------------------------------
# Prompt templates
# ----------------------------------------------------------------------

class TemplateVariable(BaseModel):
    name: str
    type: str = "string"
    required: bool = True


class PromptTemplateCreate(BaseModel):
    """Schema for template creation."""
    id: Optional[str] = None
    name: str
    version: str = "1.0"
    description: Optional[str] = None
    sections: Dict[str, str]
    variables: List[TemplateVariable] = []
    is_active: bool = True
    is_default: bool = False


class PromptTemplateUpdate(BaseModel):
    """Partial template update. Changed sections bump the minor version unless one is given."""
    name: Optional[str] = None
    version: Optional[str] = None
    description: Optional[str] = None
    sections: Optional[Dict[str, str]] = None
    variables: Optional[List[TemplateVariable]] = None
    is_active: Optional[bool] = None


class PromptTemplateResponse(BaseModel):
    """Schema for template response."""
    id: str
    name: str
    version: str
    description: Optional[str] = None
    sections: Dict[str, str]
    variables: List[TemplateVariable] = []
    is_active: bool
    is_default: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TemplatePreviewRequest(BaseModel):
    """Sample values for the template placeholders."""
    character_name: str = "Preview"
    variables: Dict[str, str] = {}


class TemplatePreviewResponse(BaseModel):
    template_id: str
    template_name: str
    template_version: str
    sections: Dict[str, str]
    full_prompt: str
    missing_variables: List[str] = []
    character_count: int
    token_count: int
