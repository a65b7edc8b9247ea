from collections import Counter
from dataclasses import replace
from uuid import UUID

from sqlmodel import select

from clipqueue.core.errors import RenderServiceError
from clipqueue.models import Clip, JobStatus, JobType
from clipqueue.models.payloads import (
    AnalyzeVideoPayload,
    CheckRenderStatusPayload,
    ClipSegment,
    GenerateClipsPayload,
)
from clipqueue.services.dispatcher import Dispatcher
from clipqueue.services.handlers import handle_generate_clips


def _clips_for(session, video):
    return session.exec(select(Clip).where(Clip.video_id == video.id).order_by(Clip.start_time)).all()


def _open_polls(queue):
    """render_reference -> number of queued or running status checks"""
    jobs = queue.store.open_jobs(JobType.CHECK_RENDER_STATUS.value)
    return dict(Counter(job.payload["render_reference"] for job in jobs))


def _generate_payload(video, **extra):
    return GenerateClipsPayload(
        video_id=video.id,
        user_id=video.user_id,
        clips=[
            ClipSegment(start_time=10, end_time=25, hook="Wait for it"),
            ClipSegment(start_time=45, end_time=60, title="Key Quote"),
        ],
        **extra,
    )


def test_idle_when_queue_is_empty(dispatcher):
    outcome = dispatcher.process_one()
    assert outcome.idle is True
    assert outcome.job_id is None


def test_successful_handler_completes_job(context, queue):
    seen = {}

    def ping(payload, ctx):
        seen["job"] = ctx.job
        return {"pong": payload["n"]}

    job = queue.enqueue("ping", {"n": 7})

    outcome = Dispatcher(context, handlers={"ping": ping}).process_one()

    assert outcome.result == {"pong": 7}
    assert outcome.error is None
    assert seen["job"].id == job.id
    stored = queue.get(job.id)
    assert stored.status == JobStatus.COMPLETED.value
    assert stored.result == {"pong": 7}


def test_handler_exception_fails_job(context, queue):
    def explode(payload, ctx):
        raise RuntimeError("ffmpeg not found")

    job = queue.enqueue("explode", {})

    outcome = Dispatcher(context, handlers={"explode": explode}).process_one()

    assert outcome.error == "ffmpeg not found"
    stored = queue.get(job.id)
    assert stored.status == JobStatus.FAILED.value
    assert stored.error_message == "ffmpeg not found"
    assert stored.attempts == 1


def test_unknown_job_type_fails_permanently(dispatcher, queue):
    job = queue.enqueue("transcode_audio", {}, max_attempts=3)

    outcome = dispatcher.process_one()

    assert outcome.error == "Unknown job type: transcode_audio"
    stored = queue.get(job.id)
    assert stored.status == JobStatus.FAILED.value
    assert stored.attempts == stored.max_attempts

    # a manual retry cannot bring it back
    queue.retry(job.id)
    assert dispatcher.process_one().idle is True


def test_invalid_payload_fails_job(dispatcher, queue):
    job = queue.enqueue(JobType.ANALYZE_VIDEO, {"video_id": "not-a-uuid"})

    outcome = dispatcher.process_one()

    assert outcome.error
    assert queue.get(job.id).status == JobStatus.FAILED.value


def test_claim_error_is_reported_not_raised(context):
    class BrokenQueue:
        def claim_next(self):
            raise RuntimeError("connection refused")

    context.queue = BrokenQueue()

    outcome = Dispatcher(context).process_one()

    assert outcome.idle is False
    assert outcome.job_id is None
    assert outcome.error == "connection refused"


def test_analyze_video_stores_suggestions(dispatcher, queue, records, video):
    job = queue.enqueue(JobType.ANALYZE_VIDEO, AnalyzeVideoPayload(video_id=video.id), priority="high")

    outcome = dispatcher.process_one()

    assert outcome.job_id == str(job.id)
    assert outcome.result == {"video_id": str(video.id), "clip_candidates": 2, "overall_score": 0.89}
    stored = records.get_video(video.id)
    assert stored.analysis_status == "completed"
    assert [clip["start_time"] for clip in stored.ai_suggestions["clips"]] == [10, 45]


def test_analyze_video_failure_marks_video_failed(dispatcher, queue, records, analyzer, video):
    analyzer.fail = True
    job = queue.enqueue(JobType.ANALYZE_VIDEO, AnalyzeVideoPayload(video_id=video.id))

    outcome = dispatcher.process_one()

    assert "analysis service error" in outcome.error
    assert records.get_video(video.id).analysis_status == "failed"
    assert queue.get(job.id).status == JobStatus.FAILED.value


def test_generate_clips_starts_renders_and_schedules_polls(dispatcher, queue, renderer, session, video):
    job = queue.enqueue(JobType.GENERATE_CLIPS, _generate_payload(video))

    outcome = dispatcher.process_one()

    assert outcome.error is None
    assert len(outcome.result["clips"]) == 2

    clips = _clips_for(session, video)
    assert [c.status for c in clips] == ["rendering", "rendering"]
    assert [c.render_reference for c in clips] == ["render-0001", "render-0002"]
    assert all(c.job_id == job.id and c.progress == 10 for c in clips)
    assert clips[0].hook == "Wait for it"
    assert clips[1].title == "Key Quote"

    render_request = renderer.requests[0][1]
    assert (render_request.start_time, render_request.end_time) == (10, 25)
    assert render_request.video_url == video.url

    checks = queue.list_jobs(status="pending")
    assert sorted(j.payload["render_reference"] for j in checks) == ["render-0001", "render-0002"]
    assert all(j.priority == "high" for j in checks)


def test_generate_clips_falls_back_to_suggestions(dispatcher, queue, session, video):
    queue.enqueue(JobType.ANALYZE_VIDEO, AnalyzeVideoPayload(video_id=video.id), priority="high")
    queue.enqueue(JobType.GENERATE_CLIPS, GenerateClipsPayload(video_id=video.id, user_id=video.user_id))

    dispatcher.process_one()
    outcome = dispatcher.process_one()

    assert outcome.job_type == "generate_clips"
    clips = _clips_for(session, video)
    assert [(c.start_time, c.end_time) for c in clips] == [(10, 25), (45, 60)]
    assert clips[0].title == "Funny Moment"


def test_generate_clips_without_any_segments_fails(dispatcher, queue, video):
    job = queue.enqueue(JobType.GENERATE_CLIPS, GenerateClipsPayload(video_id=video.id, user_id="user-1"))

    outcome = dispatcher.process_one()

    assert "no clip segments" in outcome.error
    assert queue.get(job.id).status == JobStatus.FAILED.value


def test_retried_generate_clips_reuses_started_renders(dispatcher, queue, renderer, session, video, monkeypatch):
    real_start = renderer.start_render

    def start_once(request):
        if renderer.requests:
            raise RenderServiceError("rendering service unavailable")
        return real_start(request)

    monkeypatch.setattr(renderer, "start_render", start_once)
    job = queue.enqueue(JobType.GENERATE_CLIPS, _generate_payload(video))

    outcome = dispatcher.process_one()

    assert outcome.error == "rendering service unavailable"
    first, second = _clips_for(session, video)
    assert (first.status, first.render_reference) == ("rendering", "render-0001")
    assert (second.status, second.render_reference) == ("processing", None)

    # the first render finishes while the job waits for a retry
    monkeypatch.setattr(renderer, "start_render", real_start)
    renderer.set_status("render-0001", "done", url="https://cdn.example.com/clip1.mp4")
    assert queue.retry(job.id)

    assert dispatcher.process_one().job_type == "check_render_status"
    outcome = dispatcher.process_one()

    assert outcome.job_id == str(job.id)
    assert outcome.result["clips"][0] == {
        "clip_id": str(first.id), "render_reference": "render-0001", "reused": True,
    }
    assert outcome.result["clips"][1]["render_reference"] == "render-0002"

    session.expire_all()
    clips = _clips_for(session, video)
    assert len(clips) == 2
    assert [c.status for c in clips] == ["completed", "rendering"]
    assert queue.get(job.id).attempts == 2
    assert _open_polls(queue) == {"render-0002": 1}


def test_retried_generate_clips_keeps_one_poll_per_render(
    dispatcher, context, queue, renderer, reconciler, video, monkeypatch
):
    # polls stay queued in the future so the retried job is claimed next
    reconciler.poll_interval_seconds = 60
    real_start = renderer.start_render

    def start_once(request):
        if renderer.requests:
            raise RenderServiceError("rendering service unavailable")
        return real_start(request)

    monkeypatch.setattr(renderer, "start_render", start_once)
    job = queue.enqueue(JobType.GENERATE_CLIPS, _generate_payload(video))
    dispatcher.process_one()
    assert _open_polls(queue) == {"render-0001": 1}

    monkeypatch.setattr(renderer, "start_render", real_start)
    queue.retry(job.id)
    outcome = dispatcher.process_one()

    assert outcome.job_id == str(job.id)
    assert outcome.result["clips"][0]["reused"] is True
    assert _open_polls(queue) == {"render-0001": 1, "render-0002": 1}

    # running the handler yet again reuses both renders without new polls
    handle_generate_clips(_generate_payload(video), replace(context, job=queue.get(job.id)))
    assert _open_polls(queue) == {"render-0001": 1, "render-0002": 1}


def test_generate_clips_fails_when_render_reference_is_not_recorded(
    dispatcher, queue, reconciler, video, monkeypatch
):
    monkeypatch.setattr(reconciler, "mark_render_started", lambda clip_id, render_reference: None)
    job = queue.enqueue(JobType.GENERATE_CLIPS, _generate_payload(video))

    outcome = dispatcher.process_one()

    assert outcome.error.startswith("could not record render render-0001")
    assert queue.get(job.id).status == JobStatus.FAILED.value
    assert _open_polls(queue) == {}


def test_check_render_status_job_drives_clip_to_completion(dispatcher, queue, records, renderer, make_clip):
    clip = make_clip("r1", progress=10)
    queue.enqueue(JobType.CHECK_RENDER_STATUS, CheckRenderStatusPayload(clip_id=clip.id, render_reference="r1"),
                  priority="high")
    renderer.set_status("r1", "rendering", progress=60)

    first = dispatcher.process_one()
    assert first.result["status"] == "rendering"
    assert first.result["next_check_job_id"]

    renderer.set_status("r1", "done", url="https://cdn.example.com/clip.mp4")
    second = dispatcher.process_one()
    assert second.job_id == first.result["next_check_job_id"]
    assert second.result["status"] == "completed"

    assert records.get_clip(clip.id).url == "https://cdn.example.com/clip.mp4"

    # completion queued the clip analysis, which stores the score
    third = dispatcher.process_one()
    assert third.job_type == "analyze_clip"
    assert records.get_clip(clip.id).ai_score == 0.87
    assert dispatcher.process_one().idle is True


def test_failed_status_check_fails_job_and_keeps_clip(dispatcher, queue, records, renderer, make_clip):
    clip = make_clip("r1", progress=50)
    job = queue.enqueue(JobType.CHECK_RENDER_STATUS,
                        CheckRenderStatusPayload(clip_id=clip.id, render_reference="r1"))
    renderer.fail_status = True

    outcome = dispatcher.process_one()

    assert outcome.error == "render status check failed: 503"
    assert queue.get(UUID(outcome.job_id)).status == JobStatus.FAILED.value
    assert queue.get(job.id).error_message == "render status check failed: 503"
    stored = records.get_clip(clip.id)
    assert (stored.status, stored.progress) == ("rendering", 50)
