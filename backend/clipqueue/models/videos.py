from datetime import datetime
from uuid import UUID, uuid4
from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field
from typing import Any, Dict, Optional

class Video(SQLModel, table=True):
    __tablename__ = "videos"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: str = Field(index=True)
    title: str = Field(default="")
    url: Optional[str] = Field(default=None, nullable=True)
    duration: float = Field(default=0)
    analysis_status: str = Field(default="pending", index=True)  # pending, processing, completed, failed
    ai_suggestions: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
