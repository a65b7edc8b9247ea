"""
clip render state reducer

poll results and webhooks are both turned into a RenderSignal and folded into
the clip with reduce(). reduce is pure and terminal states absorb every
signal, so applying signals redundantly or out of order converges on the
same clip state.
"""
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Optional

from clipqueue.models import Clip, ClipStatus, TERMINAL_CLIP_STATUSES

DEFAULT_FAILURE_MESSAGE = "Render failed"


class RenderState(str, Enum):
    QUEUED = "queued"
    RENDERING = "rendering"
    DONE = "done"
    FAILED = "failed"


# statuses reported by the rendering service, folded into our four states
EXTERNAL_STATUS_MAP = {
    "queued": RenderState.QUEUED,
    "fetching": RenderState.QUEUED,
    "rendering": RenderState.RENDERING,
    "saving": RenderState.RENDERING,
    "done": RenderState.DONE,
    "failed": RenderState.FAILED,
}

ADVISORY_PROGRESS = {
    RenderState.QUEUED: 25,
    RenderState.RENDERING: 50,
}

RENDER_STARTED_PROGRESS = 10


def normalize_status(raw: str) -> RenderState:
    try:
        return EXTERNAL_STATUS_MAP[str(raw).strip().lower()]
    except KeyError:
        raise ValueError(f"unknown render status: {raw!r}")


@dataclass(frozen=True)
class RenderSignal:
    """one observation of an external render, from a poll or a webhook"""
    state: RenderState
    url: Optional[str] = None
    error: Optional[str] = None
    progress: Optional[float] = None

    @classmethod
    def from_external(cls, status: str, url: Optional[str] = None, error: Optional[str] = None,
                      progress: Optional[float] = None) -> "RenderSignal":
        return cls(state=normalize_status(status), url=url or None, error=error or None, progress=progress)


@dataclass(frozen=True)
class ClipRenderState:
    status: str
    progress: int = 0
    url: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def from_clip(cls, clip: Clip) -> "ClipRenderState":
        return cls(status=clip.status, progress=clip.progress or 0, url=clip.url, error=clip.error)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_CLIP_STATUSES

    def changes_from(self, other: "ClipRenderState") -> Dict[str, Any]:
        """column values that differ from other"""
        changes = {}
        for name in ("status", "progress", "url", "error"):
            if getattr(self, name) != getattr(other, name):
                changes[name] = getattr(self, name)
        return changes


def _in_flight_progress(current: int, signal: RenderSignal) -> int:
    progress = max(current, ADVISORY_PROGRESS.get(signal.state, ADVISORY_PROGRESS[RenderState.RENDERING]))
    if signal.progress is not None:
        # 100 is reserved for a finished clip
        progress = max(progress, min(int(signal.progress), 99))
    return progress


def reduce(current: ClipRenderState, signal: RenderSignal) -> ClipRenderState:
    if current.is_terminal:
        return current

    if signal.state == RenderState.DONE and signal.url:
        return ClipRenderState(status=ClipStatus.COMPLETED.value, progress=100, url=signal.url, error=None)

    if signal.state == RenderState.FAILED:
        return replace(
            current,
            status=ClipStatus.FAILED.value,
            url=None,
            error=signal.error or DEFAULT_FAILURE_MESSAGE,
        )

    # queued, rendering, or a "done" that carries no output url yet
    return replace(
        current,
        status=ClipStatus.RENDERING.value,
        progress=_in_flight_progress(current.progress, signal),
    )


@dataclass(frozen=True)
class Transition:
    before: ClipRenderState
    after: ClipRenderState

    @property
    def changed(self) -> bool:
        return self.before != self.after

    @property
    def completed(self) -> bool:
        """true only for the signal that actually finished the clip"""
        return self.changed and self.after.status == ClipStatus.COMPLETED.value
