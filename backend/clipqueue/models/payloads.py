"""
typed job payloads

the jobs table stores payload as plain json; each job type has one model here
and handlers parse the stored json with payload_model_for(job_type) before use.
"""
from pydantic import BaseModel, Field, model_validator
from typing import Any, Dict, List, Optional, Type
from uuid import UUID

from .jobs import JobType


MAX_CLIP_SECONDS = 60


class ClipSegment(BaseModel):
    """one requested clip: a time range of the source video plus styling"""
    start_time: float = Field(ge=0)
    end_time: float
    title: Optional[str] = None
    hook: str = ""
    style: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def check_range(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be greater than start_time")
        if self.end_time - self.start_time > MAX_CLIP_SECONDS:
            raise ValueError(f"clip duration cannot exceed {MAX_CLIP_SECONDS} seconds")
        return self


class AnalyzeVideoPayload(BaseModel):
    video_id: UUID


class GenerateClipsPayload(BaseModel):
    video_id: UUID
    user_id: str
    platform: str = "tiktok"
    # empty means: use the clip candidates stored on the video by analysis
    clips: List[ClipSegment] = Field(default_factory=list)


class CheckRenderStatusPayload(BaseModel):
    clip_id: UUID
    render_reference: str
    poll_count: int = 0


class AnalyzeClipPayload(BaseModel):
    clip_id: UUID
    clip_url: str
    platform: str = "tiktok"
    user_id: Optional[str] = None


PAYLOAD_MODELS: Dict[str, Type[BaseModel]] = {
    JobType.ANALYZE_VIDEO.value: AnalyzeVideoPayload,
    JobType.GENERATE_CLIPS.value: GenerateClipsPayload,
    JobType.CHECK_RENDER_STATUS.value: CheckRenderStatusPayload,
    JobType.ANALYZE_CLIP.value: AnalyzeClipPayload,
}


def payload_model_for(job_type: str) -> Optional[Type[BaseModel]]:
    return PAYLOAD_MODELS.get(job_type)


def dump_payload(payload: BaseModel) -> Dict[str, Any]:
    """json-safe dict for storing in the jobs table"""
    return payload.model_dump(mode="json")
