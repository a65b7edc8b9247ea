from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4
from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field
from typing import Any, Dict, Optional


class JobType(str, Enum):
    ANALYZE_VIDEO = "analyze_video"
    GENERATE_CLIPS = "generate_clips"
    CHECK_RENDER_STATUS = "check_render_status"
    ANALYZE_CLIP = "analyze_clip"


class JobPriority(str, Enum):
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


# claim order, lower rank is claimed first
PRIORITY_RANK = {
    JobPriority.HIGH.value: 0,
    JobPriority.NORMAL.value: 1,
    JobPriority.LOW.value: 2,
}


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Job(SQLModel, table=True):
    __tablename__ = "jobs"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    # plain strings so unknown types written by other producers still load
    job_type: str = Field(index=True)
    payload: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    priority: str = Field(default=JobPriority.NORMAL.value, index=True)
    status: str = Field(default=JobStatus.PENDING.value, index=True)
    attempts: int = Field(default=0)
    max_attempts: int = Field(default=3)
    run_after: Optional[datetime] = Field(default=None, nullable=True)  # earliest claim time
    result: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    error_message: Optional[str] = Field(default=None, nullable=True)
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    started_at: Optional[datetime] = Field(default=None, nullable=True)
    completed_at: Optional[datetime] = Field(default=None, nullable=True)
    failed_at: Optional[datetime] = Field(default=None, nullable=True)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
