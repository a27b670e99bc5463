"""
Persona Models
Roommate personas and their rooms, written when a pipeline run completes.
"""

from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime, Float, Boolean, ForeignKey, JSON
from sqlalchemy.orm import relationship

from knock.core.database import Base


class Persona(Base):
    """Generated roommate persona."""

    __tablename__ = "personas"

    id = Column(String, primary_key=True)  # persona_xxxx format
    user_id = Column(String, nullable=False, index=True)
    job_id = Column(String, ForeignKey("agent_jobs.id"), nullable=True)

    name = Column(String, nullable=False)
    archetype = Column(String, nullable=False)
    keywords = Column(JSON, default=list)
    system_prompt = Column(Text, nullable=False)

    # Character sheet produced by Agent 2
    need_vectors = Column(JSON, default=dict)
    trauma_and_learning = Column(JSON, default=dict)
    survival_strategies = Column(JSON, default=list)
    personality_traits = Column(JSON, default=dict)
    conversation_patterns = Column(JSON, default=dict)

    quality = Column(Float, nullable=True)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    room = relationship("Room", back_populates="persona", uselist=False, cascade="all, delete-orphan")


class Room(Base):
    """Pixel-art room shown behind a persona's door."""

    __tablename__ = "rooms"

    id = Column(String, primary_key=True)  # room_xxxx format
    persona_id = Column(String, ForeignKey("personas.id"), nullable=False)
    user_id = Column(String, nullable=False, index=True)

    image_url = Column(String, nullable=False)
    # generated | preset
    image_source = Column(String, nullable=False)
    preset_id = Column(String, nullable=True)
    image_prompt = Column(Text, nullable=True)
    visual_elements = Column(JSON, default=dict)

    created_at = Column(DateTime, default=datetime.utcnow)

    persona = relationship("Persona", back_populates="room")
