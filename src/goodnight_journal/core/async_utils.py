"""Async helpers: running blocking remote calls off the event loop, and
debouncing repeated requests."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Hashable, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous function in a worker thread without blocking the loop.

    Used to wrap the blocking remote repository and reachability probe.

    Example:
        entries = await run_sync(remote.fetch_completed_since, user_id, since)
    """
    return await asyncio.to_thread(func, *args, **kwargs)


class Debouncer:
    """Coalesce bursts of requests for the same key into one action.

    ``schedule(key, action)`` waits *delay* seconds and then runs
    *action*.  Scheduling the same key again while the earlier action is
    still waiting cancels it.  Once an action has started it is shielded:
    a newer request or ``cancel()`` will not interrupt it mid-write.
    ``run_now(key)`` skips the wait for the latest request.

    Args:
        delay: Seconds to wait before running the latest action.
    """

    def __init__(self, delay: float) -> None:
        self.delay = delay
        self._waiting: dict[Hashable, asyncio.Task] = {}
        self._actions: dict[Hashable, Callable[[], Awaitable[Any]]] = {}
        self._running: set[asyncio.Task] = set()

    def schedule(
        self, key: Hashable, action: Callable[[], Awaitable[T]]
    ) -> asyncio.Task:
        """Schedule *action* for *key*, superseding any waiting one."""
        previous = self._waiting.pop(key, None)
        if previous is not None and not previous.done():
            previous.cancel()
            logger.debug("Superseded pending action for %r", key)
        task = asyncio.ensure_future(self._run_later(key, action))
        self._waiting[key] = task
        self._actions[key] = action
        return task

    def cancel(self, key: Hashable) -> bool:
        """Cancel a still-waiting action.  Returns ``True`` if one was cancelled."""
        self._actions.pop(key, None)
        task = self._waiting.pop(key, None)
        if task is None or task.done():
            return False
        return task.cancel()

    async def run_now(self, key: Hashable) -> Any:
        """Run the still-waiting action for *key* immediately.

        Returns the action's result, or ``None`` if nothing was waiting.
        Exceptions from the action propagate.
        """
        action = self._actions.pop(key, None)
        task = self._waiting.pop(key, None)
        if action is None or task is None or task.done():
            return None
        task.cancel()
        return await action()

    def pending(self, key: Hashable) -> bool:
        task = self._waiting.get(key)
        return task is not None and not task.done()

    async def flush(self) -> None:
        """Wait for every waiting and running action to finish."""
        tasks = [*self._waiting.values(), *self._running]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _run_later(
        self, key: Hashable, action: Callable[[], Awaitable[T]]
    ) -> T:
        await asyncio.sleep(self.delay)
        if self._waiting.get(key) is asyncio.current_task():
            del self._waiting[key]
            del self._actions[key]
        inner = asyncio.ensure_future(action())
        self._running.add(inner)
        inner.add_done_callback(self._running.discard)
        return await asyncio.shield(inner)
