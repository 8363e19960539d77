"""Network reachability monitoring.

``ConnectivityMonitor`` turns a stream of level readings ("reachable" /
"unreachable") into discrete, edge-triggered ``ReachabilityEvent``s.  An
event is delivered to every subscriber queue once per transition into
the reachable state; repeated "reachable" readings while already
reachable produce nothing.

The initial state is unknown, so the first reachable reading after
start-up counts as a transition.  The engine uses this to sync on launch
when the network is already up.

Readings come from any source: the host platform's path monitor can call
``report()`` directly, or ``watch()`` can poll an
``HttpReachabilityProbe``.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

import requests

from goodnight_journal.core.async_utils import run_sync
from goodnight_journal.models import utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReachabilityEvent:
    """The network became reachable at ``at``."""

    at: dt.datetime = field(default_factory=utc_now)


class ConnectivityMonitor:
    """Edge-triggered reachability notifications on asyncio queues."""

    def __init__(self) -> None:
        self._reachable: bool | None = None
        self._subscribers: list[asyncio.Queue[ReachabilityEvent]] = []

    @property
    def is_reachable(self) -> bool | None:
        """Last reported state; ``None`` before the first reading."""
        return self._reachable

    def subscribe(self) -> asyncio.Queue[ReachabilityEvent]:
        """Return a new queue that receives every future event."""
        queue: asyncio.Queue[ReachabilityEvent] = asyncio.Queue()
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[ReachabilityEvent]) -> None:
        """Stop delivering events to *queue*.  No-op if not subscribed."""
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    def report(self, reachable: bool) -> bool:
        """Record a reading; return ``True`` if it emitted an event."""
        previous = self._reachable
        self._reachable = reachable
        if not reachable or previous is True:
            if previous is True and not reachable:
                logger.info("Network became unreachable")
            return False

        event = ReachabilityEvent()
        logger.info("Network became reachable")
        for queue in self._subscribers:
            queue.put_nowait(event)
        return True

    async def watch(
        self,
        probe: Callable[[], bool],
        interval: float,
        stop: asyncio.Event,
    ) -> None:
        """Poll *probe* every *interval* seconds until *stop* is set.

        The probe is blocking and runs in a worker thread.
        """
        while not stop.is_set():
            reachable = await run_sync(probe)
            self.report(reachable)
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass


class HttpReachabilityProbe:
    """Blocking reachability check: can an HTTP request reach *url*?

    Any HTTP response, including error statuses, counts as reachable;
    only transport failures count as unreachable.

    Args:
        url: Endpoint to probe.
        timeout: Request timeout in seconds.
    """

    def __init__(self, url: str, timeout: float = 5.0) -> None:
        self.url = url
        self.timeout = timeout

    def __call__(self) -> bool:
        try:
            requests.head(self.url, timeout=self.timeout, allow_redirects=False)
        except requests.RequestException as exc:
            logger.debug("Reachability probe to %s failed: %s", self.url, exc)
            return False
        return True
