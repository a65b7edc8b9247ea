"""
render reconciliation entry points

poll (check_render_status jobs) and webhook notifications both end in
RenderReconciler.apply(), which reduces the signal into the clip and writes
the result with a status-guarded update. a lost race re-reads the clip and
reduces again, so a terminal write from the other entry point is never
overwritten.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Protocol
from uuid import UUID

from clipqueue.core.config import settings
from clipqueue.core.errors import RecordNotFoundError
from clipqueue.models import Clip, ClipStatus, JobPriority, JobType, TERMINAL_CLIP_STATUSES
from clipqueue.models.payloads import AnalyzeClipPayload, CheckRenderStatusPayload
from clipqueue.render.shotstack import RenderStatusResponse
from clipqueue.render.state import (
    RENDER_STARTED_PROGRESS,
    ClipRenderState,
    RenderSignal,
    Transition,
    reduce,
)
from clipqueue.services.log_publisher import publish_log
from clipqueue.services.records import RecordStore

logger = logging.getLogger(__name__)

MAX_APPLY_ROUNDS = 5


class RenderStatusSource(Protocol):
    def get_status(self, render_reference: str) -> RenderStatusResponse: ...


@dataclass
class WebhookOutcome:
    found: bool
    render_reference: str
    clip_id: Optional[UUID] = None
    status: Optional[str] = None
    changed: bool = False


class RenderReconciler:

    def __init__(self, records: RecordStore, queue, renderer: Optional[RenderStatusSource] = None,
                 poll_interval_seconds: Optional[int] = None):
        self.records = records
        self.queue = queue
        self.renderer = renderer
        self.poll_interval_seconds = (
            poll_interval_seconds if poll_interval_seconds is not None
            else settings.RENDER_POLL_INTERVAL_SECONDS
        )

    def apply(self, clip: Clip, signal: RenderSignal) -> Transition:
        """fold one signal into the clip; safe to call redundantly and out of order"""
        clip_id = clip.id
        for _ in range(MAX_APPLY_ROUNDS):
            before = ClipRenderState.from_clip(clip)
            after = reduce(before, signal)
            transition = Transition(before, after)
            if not transition.changed:
                return transition

            # guarded on the status and progress the reduction started from
            updated = self.records.update_clip(
                clip_id,
                after.changes_from(before),
                expected_status=before.status,
                expected_progress=before.progress,
            )
            if updated is not None:
                logger.info(f"clip {clip_id}: {before.status} -> {after.status} (progress {after.progress})")
                if transition.completed:
                    self._enqueue_clip_analysis(updated)
                return transition

            # someone else moved the clip, start over from what is stored now
            clip = self.records.get_clip(clip_id)
            if clip is None:
                raise RecordNotFoundError(f"clip {clip_id} disappeared during reconciliation")

        raise RuntimeError(f"clip {clip_id} kept changing while applying {signal.state.value}")

    def mark_render_started(self, clip_id: UUID, render_reference: str) -> Optional[Clip]:
        """processing -> rendering once the rendering service accepted the edit"""
        clip = self.records.get_clip(clip_id)
        if clip is None or clip.status != ClipStatus.PROCESSING.value:
            return None
        return self.records.update_clip(
            clip_id,
            {
                "status": ClipStatus.RENDERING.value,
                "render_reference": render_reference,
                "progress": max(clip.progress or 0, RENDER_STARTED_PROGRESS),
            },
            expected_status=ClipStatus.PROCESSING.value,
        )

    def schedule_poll(self, clip_id: UUID, render_reference: str, poll_count: int = 0):
        return self.queue.enqueue(
            JobType.CHECK_RENDER_STATUS,
            CheckRenderStatusPayload(clip_id=clip_id, render_reference=render_reference, poll_count=poll_count),
            priority=JobPriority.HIGH,
            run_after=datetime.utcnow() + timedelta(seconds=self.poll_interval_seconds),
        )

    def ensure_polling(self, clip_id: UUID, render_reference: str):
        """schedule a poll unless a check for this render is already queued or running; returns the new job or None"""
        if self.queue.has_open_job(JobType.CHECK_RENDER_STATUS, render_reference=render_reference):
            logger.debug(f"render {render_reference} is already being polled")
            return None
        return self.schedule_poll(clip_id, render_reference)

    def poll(self, payload: CheckRenderStatusPayload) -> dict:
        """
        poll entry, run by check_render_status jobs

        a failing status lookup propagates so the job is marked failed and the
        clip is left as it was.
        """
        clip = self.records.get_clip(payload.clip_id)
        if clip is None:
            raise RecordNotFoundError(f"clip {payload.clip_id} not found")

        result = {
            "clip_id": str(clip.id),
            "render_reference": payload.render_reference,
            "poll_count": payload.poll_count,
        }

        if clip.status in TERMINAL_CLIP_STATUSES:
            return {**result, "status": clip.status, "skipped": True}

        if clip.render_reference and clip.render_reference != payload.render_reference:
            logger.warning(f"stale poll for clip {clip.id}: {payload.render_reference} != {clip.render_reference}")
            return {**result, "status": clip.status, "skipped": True}

        status = self.renderer.get_status(payload.render_reference)
        signal = RenderSignal.from_external(status.status, url=status.url, error=status.error, progress=status.progress)
        transition = self.apply(clip, signal)

        if not transition.after.is_terminal:
            next_job = self.schedule_poll(clip.id, payload.render_reference, payload.poll_count + 1)
            result["next_check_job_id"] = str(next_job.id)

        return {**result, "status": transition.after.status, "progress": transition.after.progress,
                "changed": transition.changed}

    def handle_webhook(self, render_reference: str, signal: RenderSignal) -> WebhookOutcome:
        """webhook entry; never schedules polls, the service keeps sending notifications"""
        clip = self.records.find_clip_by_render_reference(render_reference)
        if clip is None:
            logger.warning(f"no clip found for render reference: {render_reference}")
            return WebhookOutcome(found=False, render_reference=render_reference)

        transition = self.apply(clip, signal)
        publish_log('webhook', 'INFO', f'render {render_reference}: {signal.state.value}', {
            'clip_id': str(clip.id),
            'status': transition.after.status,
        })
        return WebhookOutcome(
            found=True,
            render_reference=render_reference,
            clip_id=clip.id,
            status=transition.after.status,
            changed=transition.changed,
        )

    def _enqueue_clip_analysis(self, clip: Clip):
        # best effort, the clip is already completed
        try:
            self.queue.enqueue(
                JobType.ANALYZE_CLIP,
                AnalyzeClipPayload(clip_id=clip.id, clip_url=clip.url, platform=clip.platform, user_id=clip.user_id),
                priority=JobPriority.NORMAL,
            )
        except Exception as e:
            logger.warning(f"could not queue analysis for clip {clip.id}: {e}")
        publish_log('render', 'SUCCESS', f'clip completed: {clip.url}', {'clip_id': str(clip.id)})
