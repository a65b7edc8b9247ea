import os

# settings are read at import time, pin them before clipqueue is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REDIS_URL"] = ""
os.environ["JOB_PROCESSOR_TOKEN"] = ""
os.environ["RENDER_WEBHOOK_SECRET"] = ""
os.environ["LOG_DIR"] = ""

import pytest
from sqlmodel import SQLModel, Session, create_engine
from sqlmodel.pool import StaticPool

from clipqueue.core.errors import AnalysisServiceError, RenderServiceError
from clipqueue.models import Clip, ClipStatus, Video
from clipqueue.render.reconciler import RenderReconciler
from clipqueue.render.shotstack import RenderStatusResponse
from clipqueue.services.analysis import ClipCandidate, ClipScore, VideoAnalysis
from clipqueue.services.dispatcher import Dispatcher
from clipqueue.services.handlers import HandlerContext
from clipqueue.services.job_queue import JobQueue
from clipqueue.services.job_store import JobStore
from clipqueue.services.records import RecordStore


class FakeRenderer:
    """stands in for the rendering service: hands out references, reports scripted statuses"""

    def __init__(self):
        self.requests = []
        self.statuses = {}
        self.fail_start = False
        self.fail_status = False
        self.status_calls = 0
        self._counter = 0

    def start_render(self, request):
        if self.fail_start:
            raise RenderServiceError("rendering service unavailable")
        self._counter += 1
        ref = f"render-{self._counter:04d}"
        self.requests.append((ref, request))
        self.statuses[ref] = RenderStatusResponse(render_reference=ref, status="queued")
        return ref

    def set_status(self, ref, status, url=None, error=None, progress=None):
        self.statuses[ref] = RenderStatusResponse(
            render_reference=ref, status=status, url=url, error=error, progress=progress
        )

    def get_status(self, ref):
        self.status_calls += 1
        if self.fail_status:
            raise RenderServiceError("render status check failed: 503")
        return self.statuses[ref]


class FakeAnalyzer:

    def __init__(self):
        self.fail = False
        self.scored = []

    def analyze_video(self, video_url, duration=0):
        if self.fail:
            raise AnalysisServiceError("analysis service error: 500")
        return VideoAnalysis(
            clips=[
                ClipCandidate(start_time=10, end_time=25, confidence=0.92, title="Funny Moment"),
                ClipCandidate(start_time=45, end_time=60, confidence=0.87, title="Key Quote", hook="Wait for it"),
            ],
            best_moments=[15, 50],
            overall_score=0.89,
        )

    def analyze_clip(self, clip_url, platform):
        self.scored.append(clip_url)
        return ClipScore(score=0.87)


# create in-memory test database
@pytest.fixture(name="engine")
def engine_fixture():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(name="session")
def session_fixture(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture(name="store")
def store_fixture(engine):
    return JobStore(engine)


@pytest.fixture(name="queue")
def queue_fixture(store):
    return JobQueue(store, default_max_attempts=3)


@pytest.fixture(name="records")
def records_fixture(engine):
    return RecordStore(engine)


@pytest.fixture(name="renderer")
def renderer_fixture():
    return FakeRenderer()


@pytest.fixture(name="analyzer")
def analyzer_fixture():
    return FakeAnalyzer()


@pytest.fixture(name="reconciler")
def reconciler_fixture(records, queue, renderer):
    return RenderReconciler(records, queue, renderer, poll_interval_seconds=0)


@pytest.fixture(name="context")
def context_fixture(queue, records, reconciler, renderer, analyzer):
    return HandlerContext(
        queue=queue,
        records=records,
        reconciler=reconciler,
        renderer=renderer,
        analyzer=analyzer,
    )


@pytest.fixture(name="dispatcher")
def dispatcher_fixture(context):
    return Dispatcher(context)


@pytest.fixture(name="video")
def video_fixture(records):
    return records.create_video(Video(
        user_id="user-1",
        title="Podcast Episode 12",
        url="https://cdn.example.com/videos/ep12.mp4",
        duration=1800,
    ))


@pytest.fixture(name="make_clip")
def make_clip_fixture(records, video):
    def make_clip(render_reference="r1", status=ClipStatus.RENDERING.value, progress=10, **extra):
        return records.create_clip(Clip(
            user_id=video.user_id,
            video_id=video.id,
            status=status,
            render_reference=render_reference,
            progress=progress,
            start_time=extra.pop("start_time", 10),
            end_time=extra.pop("end_time", 25),
            platform=extra.pop("platform", "tiktok"),
            **extra,
        ))
    return make_clip
