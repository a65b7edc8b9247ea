"""
dispatcher: claim one job, run its handler, report back to the queue

process_one() keeps no state between calls and never raises, so it can be
driven by anything (http trigger, cron, the poller in clipqueue.worker).
"""
import logging
from dataclasses import replace
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel

from clipqueue.core.config import settings
from clipqueue.core.errors import UnknownJobTypeError, handle_worker_error
from clipqueue.models.payloads import payload_model_for
from clipqueue.services.handlers import HANDLERS, HandlerContext
from clipqueue.services.log_publisher import publish_log

logger = logging.getLogger(__name__)

MAX_ERROR_MESSAGE = 1000


class DispatchOutcome(BaseModel):
    idle: bool = False
    job_id: Optional[str] = None
    job_type: Optional[str] = None
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


def _error_message(error: Exception) -> str:
    return (str(error) or error.__class__.__name__)[:MAX_ERROR_MESSAGE]


class Dispatcher:

    def __init__(self, context: HandlerContext, handlers: Optional[Dict[str, Callable]] = None):
        self.context = context
        self.queue = context.queue
        self.handlers = handlers if handlers is not None else HANDLERS

    def process_one(self) -> DispatchOutcome:
        try:
            job = self.queue.claim_next()
        except Exception as e:
            logger.error(f"could not claim next job: {e}", exc_info=True)
            return DispatchOutcome(error=_error_message(e))

        if job is None:
            return DispatchOutcome(idle=True)

        job_id, job_type = str(job.id), job.job_type
        logger.info(f"processing job {job_id} of type {job_type}")

        handler = self.handlers.get(job_type)
        if handler is None:
            # the type will never become known, burn the remaining attempts
            error = UnknownJobTypeError(f"Unknown job type: {job_type}")
            self._record_failure(job.id, error, permanent=True)
            return DispatchOutcome(job_id=job_id, job_type=job_type, error=str(error))

        try:
            model = payload_model_for(job_type)
            payload = model.model_validate(job.payload or {}) if model else (job.payload or {})
            result = handler(payload, replace(self.context, job=job))
        except Exception as e:
            handle_worker_error(job_id, e)
            self._record_failure(job.id, e)
            publish_log('dispatcher', 'ERROR', f'job {job_type} failed: {_error_message(e)}', {'job_id': job_id})
            return DispatchOutcome(job_id=job_id, job_type=job_type, error=_error_message(e))

        try:
            self.queue.complete(job.id, result)
        except Exception as e:
            logger.error(f"job {job_id} finished but could not be marked completed: {e}", exc_info=True)
            return DispatchOutcome(job_id=job_id, job_type=job_type, error=_error_message(e))

        return DispatchOutcome(job_id=job_id, job_type=job_type, result=result)

    def _record_failure(self, job_id, error: Exception, permanent: bool = False):
        try:
            self.queue.fail(job_id, _error_message(error), permanent=permanent)
        except Exception as e:
            logger.error(f"could not mark job {job_id} failed: {e}", exc_info=True)


def build_context() -> HandlerContext:
    """wire the production collaborators"""
    from clipqueue.render.reconciler import RenderReconciler
    from clipqueue.render.shotstack import ShotstackClient
    from clipqueue.services.analysis import ContentAnalyzer
    from clipqueue.services.job_queue import JobQueue
    from clipqueue.services.records import RecordStore

    queue = JobQueue()
    records = RecordStore()
    renderer = ShotstackClient()
    reconciler = RenderReconciler(records, queue, renderer)
    return HandlerContext(
        queue=queue,
        records=records,
        reconciler=reconciler,
        renderer=renderer,
        analyzer=ContentAnalyzer(),
        callback_url=settings.RENDER_CALLBACK_URL,
    )


_dispatcher: Optional[Dispatcher] = None


def get_dispatcher() -> Dispatcher:
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = Dispatcher(build_context())
    return _dispatcher
