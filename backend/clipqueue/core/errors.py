import logging
from typing import Callable, Any, Tuple, Type
from functools import wraps
import time

logger = logging.getLogger(__name__)

def retry_with_backoff(
    max_retries: int = 3,
    initial_delay: float = 1.0,
    backoff_factor: float = 2.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
):
    """
    decorator to retry a function with exponential backoff

    only exceptions listed in retry_on are retried, anything else propagates
    on the first failure.

    usage:
        @retry_with_backoff(max_retries=2, initial_delay=0.5, retry_on=(httpx.TransportError,))
        def get_status(self, render_reference):
            # ... code that might fail ...
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            delay = initial_delay
            last_exception = None

            for attempt in range(max_retries):
                try:
                    return func(*args, **kwargs)
                except retry_on as e:
                    last_exception = e
                    if attempt < max_retries - 1:
                        logger.warning(
                            f"{func.__name__} failed (attempt {attempt + 1}/{max_retries}): {str(e)}. "
                            f"retrying in {delay}s..."
                        )
                        time.sleep(delay)
                        delay *= backoff_factor
                    else:
                        logger.error(
                            f"{func.__name__} failed after {max_retries} attempts: {str(e)}"
                        )

            # all retries exhausted
            raise last_exception

        return wrapper
    return decorator


def handle_worker_error(job_id: str, error: Exception):
    """
    centralized error handler for dispatched jobs
    logs the error with its traceback; the caller records the failure on the job
    """
    logger.error(f"job {job_id} failed: {error}", exc_info=error)


class ClipQueueException(Exception):
    """base exception for clipqueue-specific errors"""
    pass


class RenderServiceError(ClipQueueException):
    """raised when the external rendering service call fails"""
    pass


class AnalysisServiceError(ClipQueueException):
    """raised when the content analysis service call fails"""
    pass


class UnknownJobTypeError(ClipQueueException):
    """raised when no handler is registered for a job type"""
    pass


class RecordNotFoundError(ClipQueueException):
    """raised when a handler references a clip or video that does not exist"""
    pass
