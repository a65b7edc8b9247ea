from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4
from sqlmodel import SQLModel, Field
from typing import Optional


class ClipStatus(str, Enum):
    PROCESSING = "processing"  # record created, render not requested yet
    RENDERING = "rendering"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_CLIP_STATUSES = (ClipStatus.COMPLETED.value, ClipStatus.FAILED.value)


class Clip(SQLModel, table=True):
    __tablename__ = "clips"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: str = Field(index=True)
    video_id: UUID = Field(foreign_key="videos.id", index=True)
    job_id: Optional[UUID] = Field(default=None, nullable=True, index=True)  # generate_clips job that created it

    status: str = Field(default=ClipStatus.PROCESSING.value, index=True)
    render_reference: Optional[str] = Field(default=None, nullable=True, unique=True, index=True)
    progress: int = Field(default=0)
    url: Optional[str] = Field(default=None, nullable=True)  # only when completed
    error: Optional[str] = Field(default=None, nullable=True)  # only when failed

    start_time: float
    end_time: float
    platform: str = Field(default="tiktok", index=True)
    title: Optional[str] = Field(default=None, nullable=True)
    hook: str = Field(default="")
    ai_score: Optional[float] = Field(default=None, nullable=True)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
