# Pydantic schemas package
from knock.schemas.job import (
    JobStatus, StageStatus, StageLogResponse, JobResponse, JobStatusResponse,
    JobHandle, JobListResponse, Pagination, AgentStats,
    FailureReason, FailedJob, ErrorReport, QualityReport,
)
from knock.schemas.agents import (
    NEED_CATEGORIES, NeedVector, NeedScore, CharacterProfile, GeneratedPrompt,
    PromptValidation, ImagePrompt, VisualElements, GeneratedAsset, AssetMetadata,
)
from knock.schemas.pipeline import (
    PipelineInput, PipelineContext, UserData, Preferences, BrowsingHistory,
)
from knock.schemas.data_pool import (
    ExperienceRecord, ArchetypeRecord, VisualRecord,
    ExperienceCreate, ExperienceUpdate, ArchetypeCreate, ArchetypeUpdate, VisualCreate, VisualUpdate,
    PromptTemplateCreate, PromptTemplateUpdate, PromptTemplateResponse, TemplateVariable,
    TemplatePreviewRequest, TemplatePreviewResponse,
)

__all__ = [
    "JobStatus", "StageStatus", "StageLogResponse", "JobResponse", "JobStatusResponse",
    "JobHandle", "JobListResponse", "Pagination", "AgentStats",
    "FailureReason", "FailedJob", "ErrorReport", "QualityReport",
    "NEED_CATEGORIES", "NeedVector", "NeedScore", "CharacterProfile", "GeneratedPrompt",
    "PromptValidation", "ImagePrompt", "VisualElements", "GeneratedAsset", "AssetMetadata",
    "PipelineInput", "PipelineContext", "UserData", "Preferences", "BrowsingHistory",
    "ExperienceRecord", "ArchetypeRecord", "VisualRecord",
    "ExperienceCreate", "ExperienceUpdate", "ArchetypeCreate", "ArchetypeUpdate", "VisualCreate", "VisualUpdate",
    "PromptTemplateCreate", "PromptTemplateUpdate", "PromptTemplateResponse", "TemplateVariable",
    "TemplatePreviewRequest", "TemplatePreviewResponse",
]
