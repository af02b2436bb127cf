"""Idle-traffic watchdog for a processor session.

The processor only talks when something changes, so a silently dead
link looks exactly like a quiet house. The watchdog notices long
silences and sends a cheap query to provoke a reply; if the link is
gone, the write eventually fails and the connection is torn down.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

_LOGGER = logging.getLogger(__name__)

DEFAULT_IDLE_THRESHOLD = 40.0
DEFAULT_CHECK_INTERVAL = 25.0


class Watchdog:
    """Track traffic recency and probe an idle link.

    One instance per connection. ``touch()`` is called for every chunk
    received. The periodic check only runs between ``start()`` and
    ``stop()``, and only probes while ``is_ready()`` is true.
    """

    def __init__(
        self,
        probe: Callable[[], object],
        is_ready: Callable[[], bool],
        idle_threshold: float = DEFAULT_IDLE_THRESHOLD,
        check_interval: float = DEFAULT_CHECK_INTERVAL,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        """Initialize the watchdog.

        Args:
            probe: Called once per lapsed check to send the keepalive query
            is_ready: Returns True while the session is ready
            idle_threshold: Seconds without traffic before probing
            check_interval: Seconds between checks
            loop: Event loop, defaults to the running loop
        """
        self._loop = loop or asyncio.get_running_loop()
        self._probe = probe
        self._is_ready = is_ready
        self._idle_threshold = idle_threshold
        self._check_interval = check_interval

        self._last_traffic_at = self._loop.time()
        self._handle: asyncio.TimerHandle | None = None
        self._running = False
        self._probe_count = 0

    @property
    def last_traffic_at(self) -> float:
        """Return loop time of the last received traffic."""
        return self._last_traffic_at

    @property
    def idle_for(self) -> float:
        """Return seconds since the last received traffic."""
        return self._loop.time() - self._last_traffic_at

    @property
    def expired(self) -> bool:
        """Return True if the idle threshold has lapsed."""
        return self.idle_for >= self._idle_threshold

    @property
    def probe_count(self) -> int:
        """Return number of probes sent."""
        return self._probe_count

    @property
    def running(self) -> bool:
        """Return True while periodic checks are scheduled."""
        return self._running

    def touch(self) -> None:
        """Record that traffic was received."""
        self._last_traffic_at = self._loop.time()

    def start(self) -> None:
        """Start periodic checks."""
        if self._running:
            return
        self._running = True
        self._schedule()
        _LOGGER.debug(
            "Watchdog started (idle=%ss, interval=%ss)",
            self._idle_threshold,
            self._check_interval,
        )

    def stop(self) -> None:
        """Stop periodic checks."""
        self._running = False
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _schedule(self) -> None:
        self._handle = self._loop.call_later(self._check_interval, self._check)

    def _check(self) -> None:
        """Run one watchdog cycle."""
        self._handle = None
        if not self._running:
            return

        if self._is_ready() and self.expired:
            _LOGGER.debug("No traffic for %.1fs, probing", self.idle_for)
            self._probe_count += 1
            self._probe()
            # Reset regardless of any reply
            self.touch()

        self._schedule()
