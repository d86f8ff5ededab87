"""Perpetual poll loops driven by a live interval cell."""
import asyncio
import logging
from typing import Awaitable, Callable

from statuspulse.core.logging import poller_ctx
from statuspulse.workers.intervals import IntervalCell

logger = logging.getLogger(__name__)


async def _wait_interval(cell: IntervalCell, stop_event: asyncio.Event) -> None:
    """
    Sleep for the cell's current interval.

    A value published mid-wait restarts the wait with the new interval.
    Returns early when the stop event is set.
    """
    while not stop_event.is_set():
        version = cell.version
        changed = asyncio.create_task(cell.wait_changed(version, cell.get()))
        stopped = asyncio.create_task(stop_event.wait())
        try:
            await asyncio.wait({changed, stopped}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (changed, stopped):
                if not task.done():
                    task.cancel()
            await asyncio.gather(changed, stopped, return_exceptions=True)

        if stopped.done() and not stopped.cancelled():
            return
        if changed.cancelled() or not changed.result():
            return  # interval elapsed
        logger.info(f"Interval changed to {cell.get()}s, restarting wait")


async def poll_loop(
    name: str,
    cell: IntervalCell,
    pass_fn: Callable[[], Awaitable[object]],
    stop_event: asyncio.Event,
) -> None:
    """
    Run ``pass_fn`` forever, one pass at a time.

    The first pass runs immediately. Any exception from a pass is logged and
    the loop carries on with the next cycle. The stop event is honoured only
    between passes, so an in-flight pass always finishes.
    """
    token = poller_ctx.set(name)
    logger.info(f"Starting {name} poller (interval {cell.get()}s)")
    try:
        while not stop_event.is_set():
            try:
                await pass_fn()
            except Exception as e:
                logger.error(f"{name} poll pass failed: {e}", exc_info=True)

            await _wait_interval(cell, stop_event)
    finally:
        logger.info(f"Stopped {name} poller")
        poller_ctx.reset(token)


def start_scheduler(
    name: str,
    cell: IntervalCell,
    pass_fn: Callable[[], Awaitable[object]],
    stop_event: asyncio.Event,
) -> asyncio.Task:
    """Start a poll loop as a background task and return the task."""
    return asyncio.create_task(poll_loop(name, cell, pass_fn, stop_event), name=f"poller:{name}")
