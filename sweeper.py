import asyncio
import logging

from fastapi.concurrency import run_in_threadpool

from errors import ServiceError
from lifecycle import PostLifecycle

logger = logging.getLogger(__name__)


async def run_expiry_sweeper(lifecycle: PostLifecycle, interval_seconds: float) -> None:
    """Expire overdue open posts every interval until cancelled."""
    logger.info(f"Expiry sweeper started (every {interval_seconds}s)")
    while True:
        try:
            await run_in_threadpool(lifecycle.expire_overdue)
        except ServiceError as e:
            logger.error(f"Expiry sweep failed: {e.detail}")
        except Exception:
            logger.exception("Expiry sweep failed unexpectedly")
        await asyncio.sleep(interval_seconds)


def start_expiry_sweeper(lifecycle: PostLifecycle, interval_seconds: float):
    if interval_seconds <= 0:
        logger.info("Expiry sweeper disabled")
        return None
    return asyncio.create_task(run_expiry_sweeper(lifecycle, interval_seconds))


async def stop_expiry_sweeper(task) -> None:
    if task is None:
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
