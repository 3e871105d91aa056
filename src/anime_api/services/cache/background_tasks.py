"""Process-wide supervisor for fire-and-forget cache work.

Cache writes and separated-child stores are scheduled here instead of being
awaited by the request. Each job runs on its own ``asyncio.Task`` with its own
timeout, so cancelling the request that scheduled it does not cancel the write.
Job failures are logged and dropped.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

from anime_api.core.logger import LogFormat

DEFAULT_TASK_TIMEOUT_SECONDS = 5.0

# Module-level shared supervisor container (avoids global statement)
_supervisor_holder: dict[str, BackgroundTaskSupervisor] = {}


class BackgroundTaskSupervisor:
    """Owns detached background tasks until they finish."""

    def __init__(self, logger: logging.Logger | None = None, default_timeout: float = DEFAULT_TASK_TIMEOUT_SECONDS) -> None:
        """Initialize the supervisor.

        Args:
            logger: Logger for job failures
            default_timeout: Per-job timeout in seconds when ``spawn`` gets none

        """
        self.logger = logger or logging.getLogger(__name__)
        self.default_timeout = default_timeout
        self._tasks: set[asyncio.Task[None]] = set()
        self._closed = False

    @property
    def pending(self) -> int:
        """Number of jobs still running."""
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str, timeout: float | None = None) -> asyncio.Task[None] | None:
        """Schedule ``coro`` as a detached job.

        Args:
            coro: Coroutine to run
            name: Job name used in logs and as the task name
            timeout: Seconds before the job is abandoned

        Returns:
            The created task, or None when the supervisor is shut down.

        """
        if self._closed:
            coro.close()
            self.logger.warning("Supervisor is shut down, dropping job %s", LogFormat.key(name))
            return None
        task = asyncio.create_task(self._run(coro, name, timeout or self.default_timeout), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, coro: Coroutine[Any, Any, Any], name: str, timeout: float) -> None:
        try:
            await asyncio.wait_for(coro, timeout=timeout)
        except TimeoutError:
            self.logger.warning("Background job %s timed out after %.1fs", LogFormat.key(name), timeout)
        except asyncio.CancelledError:
            self.logger.debug("Background job %s cancelled", name)
            raise
        except Exception:
            self.logger.exception("Background job %s failed", name)

    async def drain(self, timeout: float | None = None) -> bool:
        """Wait for the jobs pending at call time.

        Args:
            timeout: Maximum seconds to wait (None waits indefinitely)

        Returns:
            True if every job finished within the timeout.

        """
        if not self._tasks:
            return True
        _, still_pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        if still_pending:
            self.logger.warning("%s background jobs still pending after drain", LogFormat.number(len(still_pending)))
        return not still_pending

    async def shutdown(self, timeout: float | None = None) -> None:
        """Drain pending jobs, then cancel whatever is left."""
        await self.drain(timeout)
        self._closed = True
        leftovers = list(self._tasks)
        for task in leftovers:
            task.cancel()
        if leftovers:
            await asyncio.gather(*leftovers, return_exceptions=True)


def get_task_supervisor() -> BackgroundTaskSupervisor:
    """Get or create the shared supervisor."""
    if "supervisor" not in _supervisor_holder:
        _supervisor_holder["supervisor"] = BackgroundTaskSupervisor()
    return _supervisor_holder["supervisor"]


def reset_task_supervisor() -> None:
    """Forget the shared supervisor (tests and process shutdown)."""
    _supervisor_holder.pop("supervisor", None)
