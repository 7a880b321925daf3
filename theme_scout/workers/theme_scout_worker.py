"""Theme scout queue worker process entrypoint."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
from contextlib import suppress

from theme_scout.config import settings
from theme_scout.core.database import close_db
from theme_scout.core.logging import setup_logging
from theme_scout.core.redis import close_redis
from theme_scout.services.scout_task_manager import (
    ScoutTaskManager,
    ScoutTaskWorker,
    get_scout_task_manager,
)

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help=f"Concurrent job slots (default: {settings.theme_scout_task_workers}).",
    )
    parser.add_argument(
        "--poll-timeout",
        type=int,
        default=5,
        help="Redis blocking-pop timeout (seconds).",
    )
    parser.add_argument(
        "--requeue-delay",
        type=float,
        default=1.0,
        help="Delay before requeue when the job's asset is already being scouted.",
    )
    return parser.parse_args(argv)


def build_manager(workers: int | None) -> ScoutTaskManager:
    """Use the shared manager unless the worker count is overridden."""
    if workers is None:
        return get_scout_task_manager()
    return ScoutTaskManager(
        worker_count=workers,
        queue_size=settings.theme_scout_task_queue_size,
    )


async def run_workers(
    *,
    workers: int | None,
    poll_timeout: int,
    requeue_delay: float,
) -> None:
    """Start the worker pool and block until a shutdown signal arrives."""
    setup_logging()

    manager = build_manager(workers)
    worker = ScoutTaskWorker(
        manager=manager,
        poll_timeout_seconds=poll_timeout,
        requeue_delay_seconds=requeue_delay,
    )
    await worker.start()
    logger.info(
        "Theme scout worker process started",
        extra={"worker_count": manager.worker_count},
    )

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _request_stop() -> None:
        if not stop_event.is_set():
            logger.info("Shutdown signal received")
            stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        with suppress(NotImplementedError):
            loop.add_signal_handler(sig, _request_stop)

    try:
        await stop_event.wait()
    finally:
        logger.info("Stopping theme scout worker process")
        await worker.stop()
        await close_redis()
        await close_db()


def main(argv: list[str] | None = None) -> int:
    """Run the worker process."""
    args = parse_args(argv)
    try:
        asyncio.run(
            run_workers(
                workers=args.workers,
                poll_timeout=args.poll_timeout,
                requeue_delay=args.requeue_delay,
            )
        )
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
