"""
job handlers, one per job type

each handler takes its parsed payload and a HandlerContext and returns a json
result; raising marks the job failed. handlers that talk to the rendering
service store the render reference before anything else can fail, so the
render can still be reconciled when a later step blows up.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from clipqueue.core.errors import ClipQueueException, RecordNotFoundError
from clipqueue.models import Clip, ClipStatus, Job, JobType, Video
from clipqueue.models.payloads import (
    AnalyzeClipPayload,
    AnalyzeVideoPayload,
    CheckRenderStatusPayload,
    ClipSegment,
    GenerateClipsPayload,
)
from clipqueue.render.timeline import RenderRequest
from clipqueue.services.analysis import ClipCandidate
from clipqueue.services.log_publisher import publish_log

logger = logging.getLogger(__name__)


@dataclass
class HandlerContext:
    queue: Any  # JobQueue
    records: Any  # RecordStore
    reconciler: Any  # RenderReconciler
    renderer: Any  # ShotstackClient or anything with start_render/get_status
    analyzer: Any  # ContentAnalyzer
    callback_url: Optional[str] = None
    job: Optional[Job] = None  # the job being handled, set by the dispatcher


def _get_video(ctx: HandlerContext, video_id) -> Video:
    video = ctx.records.get_video(video_id)
    if not video:
        raise RecordNotFoundError(f"video {video_id} not found")
    return video


def _get_clip(ctx: HandlerContext, clip_id) -> Clip:
    clip = ctx.records.get_clip(clip_id)
    if not clip:
        raise RecordNotFoundError(f"clip {clip_id} not found")
    return clip


def handle_analyze_video(payload: AnalyzeVideoPayload, ctx: HandlerContext) -> dict:
    video = _get_video(ctx, payload.video_id)
    if not video.url:
        raise ValueError(f"video {video.id} has no url, upload may not be complete")

    ctx.records.update_video(video.id, {"analysis_status": "processing"})
    publish_log('worker', 'INFO', f'analyzing video {video.id}')

    try:
        analysis = ctx.analyzer.analyze_video(video.url, video.duration)
    except Exception:
        ctx.records.update_video(video.id, {"analysis_status": "failed"})
        raise

    ctx.records.update_video(video.id, {
        "ai_suggestions": analysis.model_dump(mode="json"),
        "analysis_status": "completed",
    })
    logger.info(f"analyzed video {video.id}: {len(analysis.clips)} clip candidates")
    return {
        "video_id": str(video.id),
        "clip_candidates": len(analysis.clips),
        "overall_score": analysis.overall_score,
    }


def _segments_for(payload: GenerateClipsPayload, video: Video) -> List[ClipSegment]:
    if payload.clips:
        return payload.clips

    suggested = (video.ai_suggestions or {}).get("clips") or []
    segments = []
    for raw in suggested:
        candidate = ClipCandidate.model_validate(raw)
        segments.append(ClipSegment(
            start_time=candidate.start_time,
            end_time=candidate.end_time,
            title=candidate.title,
            hook=candidate.hook,
        ))
    return segments


def handle_generate_clips(payload: GenerateClipsPayload, ctx: HandlerContext) -> dict:
    video = _get_video(ctx, payload.video_id)
    if not video.url:
        raise ValueError(f"video {video.id} has no url, upload may not be complete")

    segments = _segments_for(payload, video)
    if not segments:
        raise ValueError(f"no clip segments requested and video {video.id} has no suggestions")

    job_id = ctx.job.id if ctx.job else None
    started = []

    for segment in segments:
        clip = None
        if job_id is not None:
            clip = ctx.records.find_clip_for_segment(
                job_id, video.id, segment.start_time, segment.end_time, payload.platform
            )

        if clip is not None and clip.render_reference:
            # rendered by an earlier attempt of this job; make sure it is still watched
            if clip.status == ClipStatus.RENDERING.value:
                ctx.reconciler.ensure_polling(clip.id, clip.render_reference)
            started.append({"clip_id": str(clip.id), "render_reference": clip.render_reference, "reused": True})
            continue

        if clip is None:
            clip = ctx.records.create_clip(Clip(
                user_id=payload.user_id,
                video_id=video.id,
                job_id=job_id,
                status=ClipStatus.PROCESSING.value,
                start_time=segment.start_time,
                end_time=segment.end_time,
                platform=payload.platform,
                title=segment.title or f"{video.title} - Clip".strip(" -"),
                hook=segment.hook,
            ))

        # a failure here leaves the clip in processing without a reference,
        # the next attempt of this job picks it up again
        render_reference = ctx.renderer.start_render(RenderRequest(
            video_url=video.url,
            start_time=segment.start_time,
            end_time=segment.end_time,
            platform=payload.platform,
            hook=segment.hook,
            style=segment.style,
            callback_url=ctx.callback_url or None,
        ))
        if ctx.reconciler.mark_render_started(clip.id, render_reference) is None:
            # webhooks for this render could never find the clip
            logger.error(f"render {render_reference} started but clip {clip.id} was no longer processing")
            raise ClipQueueException(f"could not record render {render_reference} on clip {clip.id}")
        check_job = ctx.reconciler.schedule_poll(clip.id, render_reference)

        publish_log('render', 'INFO', f'render started for clip {clip.id}', {
            'render_reference': render_reference,
            'platform': payload.platform,
        })
        started.append({
            "clip_id": str(clip.id),
            "render_reference": render_reference,
            "check_job_id": str(check_job.id),
        })

    return {"video_id": str(video.id), "clips": started}


def handle_check_render_status(payload: CheckRenderStatusPayload, ctx: HandlerContext) -> dict:
    return ctx.reconciler.poll(payload)


def handle_analyze_clip(payload: AnalyzeClipPayload, ctx: HandlerContext) -> dict:
    clip = _get_clip(ctx, payload.clip_id)
    score = ctx.analyzer.analyze_clip(payload.clip_url, payload.platform)
    ctx.records.update_clip(clip.id, {"ai_score": score.score})
    return {"clip_id": str(clip.id), "ai_score": score.score}


HANDLERS: Dict[str, Callable[[Any, HandlerContext], dict]] = {
    JobType.ANALYZE_VIDEO.value: handle_analyze_video,
    JobType.GENERATE_CLIPS.value: handle_generate_clips,
    JobType.CHECK_RENDER_STATUS.value: handle_check_render_status,
    JobType.ANALYZE_CLIP.value: handle_analyze_clip,
}
