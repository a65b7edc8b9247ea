"""
dispatch poller

an external timer for the dispatcher: every tick it drains the queue one
process_one() call at a time, then sleeps. several pollers can run side by
side, the atomic claim keeps them from picking the same job.
"""
import argparse
import logging
import sys
import time
from datetime import datetime, timedelta
from typing import Optional

from clipqueue.core.config import settings
from clipqueue.core.logging_config import configure_logging
from clipqueue.services.dispatcher import Dispatcher
from clipqueue.services.log_publisher import publish_log

logger = logging.getLogger(__name__)

PURGE_EVERY = timedelta(hours=1)


def drain(dispatcher: Dispatcher, max_jobs: int = 50) -> int:
    """run jobs until the queue is idle or max_jobs were processed; returns jobs run"""
    processed = 0
    while processed < max_jobs:
        outcome = dispatcher.process_one()
        if outcome.idle:
            break
        if outcome.job_id is None:
            # claim itself failed, try again next tick
            break
        processed += 1
        if outcome.error:
            logger.warning(f"job {outcome.job_id} ({outcome.job_type}) failed: {outcome.error}")
    return processed


def dispatch_poller(
    dispatcher: Dispatcher,
    poll_seconds: Optional[float] = None,
    max_jobs_per_tick: int = 50,
    ticks: Optional[int] = None,
):
    """tick forever (or `ticks` times), draining the queue on every tick"""
    poll_seconds = poll_seconds if poll_seconds is not None else settings.DISPATCH_POLL_SECONDS
    last_purge = datetime.utcnow()

    publish_log('worker', 'INFO', 'dispatch poller started')
    logger.info(f"dispatch poller started, polling every {poll_seconds}s")

    tick = 0
    while ticks is None or tick < ticks:
        tick += 1
        try:
            processed = drain(dispatcher, max_jobs_per_tick)
            if processed:
                logger.info(f"tick {tick}: processed {processed} jobs")

            if datetime.utcnow() - last_purge >= PURGE_EVERY:
                dispatcher.queue.purge_completed()
                last_purge = datetime.utcnow()
        except Exception as e:
            publish_log('worker', 'ERROR', f'dispatch poller error: {str(e)}')
            logger.error(f"dispatch poller error: {e}", exc_info=True)

        if ticks is None or tick < ticks:
            time.sleep(poll_seconds)


def main(argv=None):
    parser = argparse.ArgumentParser(description="clipqueue dispatch poller")
    parser.add_argument("--once", action="store_true", help="drain the queue once and exit")
    parser.add_argument("--poll-seconds", type=float, default=None)
    parser.add_argument("--max-jobs", type=int, default=50, help="jobs per tick")
    args = parser.parse_args(argv)

    configure_logging()

    from clipqueue.core.db import init_db
    from clipqueue.services.dispatcher import get_dispatcher

    init_db()
    dispatcher = get_dispatcher()

    if args.once:
        processed = drain(dispatcher, args.max_jobs)
        logger.info(f"processed {processed} jobs")
        return 0

    try:
        dispatch_poller(dispatcher, poll_seconds=args.poll_seconds, max_jobs_per_tick=args.max_jobs)
    except KeyboardInterrupt:
        logger.info("dispatch poller stopped by user")
    return 0


if __name__ == "__main__":
    sys.exit(main())
