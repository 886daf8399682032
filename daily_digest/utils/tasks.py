"""Daily Digest — Supervised background tasks.

The timer trigger returns immediately and lets the delivery run finish
in the background. Every such task is kept referenced until it completes
and any exception it raises ends up in the log, never on the caller.

Usage:
    spawn_supervised(service.run_scheduled(), name="cron")
    await drain_tasks()  # on shutdown
"""

from __future__ import annotations

import asyncio
from typing import Any, Coroutine

from daily_digest.utils.logger import get_logger

logger = get_logger(__name__)

_running: set[asyncio.Task] = set()


def _on_done(task: asyncio.Task) -> None:
    _running.discard(task)
    if task.cancelled():
        logger.warning("Task '%s' was cancelled", task.get_name())
        return
    error = task.exception()
    if error is not None:
        logger.error(
            "Task '%s' failed: %s: %s",
            task.get_name(), type(error).__name__, error,
        )


def spawn_supervised(coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task:
    """Schedule a coroutine to run to completion, logging any fault.

    Must be called from inside a running event loop.

    Args:
        coro: The coroutine to run.
        name: Task name used in log lines.

    Returns:
        The created task (already tracked; callers need not keep it).
    """
    task = asyncio.get_running_loop().create_task(coro, name=name)
    _running.add(task)
    task.add_done_callback(_on_done)
    return task


async def drain_tasks(timeout: float = 60.0) -> None:
    """Wait for in-flight supervised tasks, cancelling whatever is left.

    Args:
        timeout: Seconds to wait before cancelling the remaining tasks.
    """
    if not _running:
        return
    pending = set(_running)
    logger.info("Waiting for %d background task(s)...", len(pending))
    _, still_running = await asyncio.wait(pending, timeout=timeout)
    for task in still_running:
        task.cancel()
