"""
live log stream over redis pub/sub

dashboards subscribe to settings.LOG_CHANNEL. publishing is best effort and
never fails the caller; with REDIS_URL unset it is skipped entirely.
"""
import json
import logging
from datetime import datetime
from typing import Literal, Optional

from clipqueue.core.config import settings

logger = logging.getLogger(__name__)

LogLevel = Literal['INFO', 'WARNING', 'ERROR', 'SUCCESS', 'DEBUG']
LogSource = Literal['queue', 'dispatcher', 'render', 'webhook', 'worker', 'system']

# connected on first publish, not at import
_redis_client = None


def get_redis_client():
    global _redis_client
    if _redis_client is None:
        import redis
        _redis_client = redis.from_url(settings.REDIS_URL)
    return _redis_client


def job_fields(job) -> dict:
    """metadata every job-related log line carries"""
    return {
        'job_id': str(job.id),
        'job_type': job.job_type,
        'priority': job.priority,
        'attempt': f'{job.attempts}/{job.max_attempts}',
    }


def publish_log(
    source: LogSource,
    level: LogLevel,
    message: str,
    metadata: Optional[dict] = None
) -> bool:
    """returns True when the entry reached redis"""
    if not settings.REDIS_URL:
        return False

    entry = {
        "timestamp": datetime.utcnow().isoformat(),
        "source": source,
        "level": level,
        "message": message,
        "metadata": metadata or {}
    }

    try:
        get_redis_client().publish(settings.LOG_CHANNEL, json.dumps(entry, default=str))
        return True
    except Exception as e:
        logger.debug(f"failed to publish log: {e}")
        return False
