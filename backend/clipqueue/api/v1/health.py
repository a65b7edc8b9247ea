from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlmodel import Session, select
from clipqueue.core.config import settings
from clipqueue.core.db import get_session
from clipqueue.models import Clip, Job, Video
from clipqueue.services.log_publisher import get_redis_client
from datetime import datetime

router = APIRouter()


def _count_by(session: Session, column) -> dict:
    rows = session.exec(select(column, func.count()).group_by(column)).all()
    return {value: count for value, count in rows}


@router.get("/")
def health_check():
    """basic liveness check"""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "service": "clipqueue-backend"
    }

@router.get("/ready")
def readiness_check(session: Session = Depends(get_session)):
    """readiness check - verifies database and redis"""
    checks = {}
    all_healthy = True

    # check database
    try:
        session.exec(select(Job.id).limit(1))
        checks["database"] = {"status": "healthy", "message": "connected"}
    except Exception as e:
        checks["database"] = {"status": "unhealthy", "message": str(e)}
        all_healthy = False

    # check redis (log streaming only, not required for dispatching)
    if not settings.REDIS_URL:
        checks["redis"] = {"status": "warning", "message": "not configured"}
    else:
        try:
            get_redis_client().ping()
            checks["redis"] = {"status": "healthy", "message": "connected"}
        except Exception as e:
            checks["redis"] = {"status": "warning", "message": str(e)}

    return {
        "status": "healthy" if all_healthy else "unhealthy",
        "timestamp": datetime.utcnow().isoformat(),
        "checks": checks
    }

@router.get("/metrics")
def get_metrics(session: Session = Depends(get_session)):
    """job, clip and video counts by status"""
    return {
        "timestamp": datetime.utcnow().isoformat(),
        "jobs": _count_by(session, Job.status),
        "clips": _count_by(session, Clip.status),
        "videos": _count_by(session, Video.analysis_status),
    }
