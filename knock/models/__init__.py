# Database models package
from knock.models.job import AgentJob, AgentJobLog
from knock.models.persona import Persona, Room
from knock.models.template import PromptTemplate
from knock.models.data_pool import ExperiencePool, ArchetypePool, VisualPool

__all__ = [
    "AgentJob",
    "AgentJobLog",
    "Persona",
    "Room",
    "PromptTemplate",
    "ExperiencePool",
    "ArchetypePool",
    "VisualPool",
]
