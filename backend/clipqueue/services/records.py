"""clip and video row accessors, no business rules"""
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from clipqueue.models import Clip, Video


class RecordStore:

    def __init__(self, engine: Optional[Engine] = None):
        if engine is None:
            from clipqueue.core.db import engine as default_engine
            engine = default_engine
        self.engine = engine

    # clips

    def get_clip(self, clip_id: UUID) -> Optional[Clip]:
        with Session(self.engine) as session:
            return session.get(Clip, clip_id)

    def create_clip(self, clip: Clip) -> Clip:
        with Session(self.engine) as session:
            session.add(clip)
            session.commit()
            session.refresh(clip)
            return clip

    def update_clip(
        self,
        clip_id: UUID,
        changes: Dict[str, Any],
        expected_status: Optional[str] = None,
        expected_progress: Optional[int] = None,
    ) -> Optional[Clip]:
        """
        apply changes to one clip row

        with expected_status / expected_progress the write only happens while
        the row still holds those values; returns None when the guard fails or
        the clip is gone.
        """
        changes = dict(changes)
        changes.setdefault("updated_at", datetime.utcnow())
        stmt = update(Clip).where(Clip.id == clip_id)
        if expected_status is not None:
            stmt = stmt.where(Clip.status == expected_status)
        if expected_progress is not None:
            stmt = stmt.where(Clip.progress == expected_progress)
        stmt = stmt.values(**changes).execution_options(synchronize_session=False)
        with Session(self.engine) as session:
            result = session.execute(stmt)
            if result.rowcount != 1:
                session.rollback()
                return None
            session.commit()
            return session.get(Clip, clip_id)

    def find_clip_by_render_reference(self, render_reference: str) -> Optional[Clip]:
        with Session(self.engine) as session:
            return session.exec(
                select(Clip).where(Clip.render_reference == render_reference)
            ).first()

    def find_clip_for_segment(
        self, job_id: UUID, video_id: UUID, start_time: float, end_time: float, platform: str
    ) -> Optional[Clip]:
        """clip a generate_clips job already created for this exact segment, if any"""
        with Session(self.engine) as session:
            return session.exec(
                select(Clip)
                .where(
                    Clip.job_id == job_id,
                    Clip.video_id == video_id,
                    Clip.start_time == start_time,
                    Clip.end_time == end_time,
                    Clip.platform == platform,
                )
                .order_by(Clip.created_at.desc())
            ).first()

    # videos

    def get_video(self, video_id: UUID) -> Optional[Video]:
        with Session(self.engine) as session:
            return session.get(Video, video_id)

    def create_video(self, video: Video) -> Video:
        with Session(self.engine) as session:
            session.add(video)
            session.commit()
            session.refresh(video)
            return video

    def update_video(self, video_id: UUID, changes: Dict[str, Any]) -> Optional[Video]:
        with Session(self.engine) as session:
            video = session.get(Video, video_id)
            if not video:
                return None
            for key, value in changes.items():
                setattr(video, key, value)
            video.updated_at = datetime.utcnow()
            session.add(video)
            session.commit()
            session.refresh(video)
            return video
