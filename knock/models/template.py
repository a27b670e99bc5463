"""
Prompt Template Model
Versioned system-prompt templates rendered by Agent 3.
"""

from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime, Boolean, JSON

from knock.core.database import Base


class PromptTemplate(Base):
    """System prompt template made of named sections."""

    __tablename__ = "prompt_templates"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    version = Column(String, default="1.0")
    description = Column(Text, nullable=True)

    # {"why": "...", "past": "...", ...} using str.format placeholders
    sections = Column(JSON, nullable=False)
    # [{"name": "character_name", "type": "string", "required": true}, ...]
    variables = Column(JSON, default=list)

    is_active = Column(Boolean, default=True, index=True)
    is_default = Column(Boolean, default=False, index=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
