"""
Data Pool Models
Candidate records the stages draw from: past experiences and archetypes
(Agent 2 / Agent 3) and room objects (Agent 4).
"""

from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime, Integer, Boolean, JSON

from knock.core.database import Base


class ExperiencePool(Base):
    """Formative past experience tied to one need."""

    __tablename__ = "data_pool_experiences"

    id = Column(String, primary_key=True)  # exp-<need>-NNN format
    need_type = Column(String, nullable=False, index=True)
    intensity = Column(String, default="medium")  # low | medium | high
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    age_min = Column(Integer, nullable=True)
    age_max = Column(Integer, nullable=True)
    learnings = Column(JSON, default=list)
    tags = Column(JSON, default=list)
    archetypes = Column(JSON, default=list)
    weight = Column(Integer, default=50)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)


class ArchetypePool(Base):
    """Personality archetype a persona can be built on."""

    __tablename__ = "data_pool_archetypes"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False, unique=True)  # developer_gamer, ...
    display_name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    keywords = Column(JSON, default=list)
    room_objects = Column(JSON, default=list)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)


class VisualPool(Base):
    """Room object with a symbolic meaning, used in image prompts."""

    __tablename__ = "data_pool_visuals"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    category = Column(String, nullable=False)  # furniture, decor, tech, nature, ...
    symbolism = Column(Text, nullable=True)
    tags = Column(JSON, default=list)
    weight = Column(Integer, default=50)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)
