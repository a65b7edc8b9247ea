"""
content analysis service client

the service looks at a video and answers with the time ranges worth clipping;
its internals are not our concern, only the response shape below.
"""
import logging
from typing import List, Optional

import httpx
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from clipqueue.core.config import settings
from clipqueue.core.errors import AnalysisServiceError

logger = logging.getLogger(__name__)


class ClipCandidate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    start_time: float = Field(validation_alias=AliasChoices("start_time", "startTime", "start"))
    end_time: float = Field(validation_alias=AliasChoices("end_time", "endTime", "end"))
    confidence: float = 0.0
    title: Optional[str] = None
    description: Optional[str] = None
    hook: str = ""


class VideoAnalysis(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    clips: List[ClipCandidate] = Field(default_factory=list)
    best_moments: List[float] = Field(
        default_factory=list, validation_alias=AliasChoices("best_moments", "bestMoments")
    )
    overall_score: float = Field(default=0.0, validation_alias=AliasChoices("overall_score", "overallScore"))


class ClipScore(BaseModel):
    score: float
    summary: Optional[str] = None


class ContentAnalyzer:

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        headers = {}
        key = api_key if api_key is not None else settings.ANALYSIS_API_KEY
        if key:
            headers["Authorization"] = f"Bearer {key}"
        self.client = httpx.Client(
            base_url=(base_url or settings.ANALYSIS_API_URL).rstrip("/"),
            headers=headers,
            timeout=timeout or settings.HTTP_TIMEOUT_SECONDS,
            transport=transport,
        )

    def close(self):
        self.client.close()

    def _post(self, path: str, body: dict) -> dict:
        try:
            response = self.client.post(path, json=body)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise AnalysisServiceError(f"analysis service error: {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise AnalysisServiceError(f"analysis request failed: {e}") from e

    def analyze_video(self, video_url: str, duration: float = 0) -> VideoAnalysis:
        data = self._post("/analyze/video", {"video_url": video_url, "duration": duration})
        analysis = VideoAnalysis.model_validate(data)
        logger.info(f"analysis found {len(analysis.clips)} clip candidates")
        return analysis

    def analyze_clip(self, clip_url: str, platform: str) -> ClipScore:
        data = self._post("/analyze/clip", {"clip_url": clip_url, "platform": platform})
        return ClipScore.model_validate(data)
