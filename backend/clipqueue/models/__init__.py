from .jobs import Job, JobType, JobPriority, JobStatus, PRIORITY_RANK
from .videos import Video
from .clips import Clip, ClipStatus, TERMINAL_CLIP_STATUSES

__all__ = [
    "Job", "JobType", "JobPriority", "JobStatus", "PRIORITY_RANK",
    "Video",
    "Clip", "ClipStatus", "TERMINAL_CLIP_STATUSES",
]
