"""
Execution — sudo credential keep-alive.

Long builds outlive sudo's credential cache (15 minutes by default),
which would stall a later ``sudo make install`` on a password prompt.
A background thread refreshes the cache until told to stop.

The thread is tied to the pipeline's lifetime: use it as a context
manager and it is stopped on success, failure, and interrupt alike.
"""

from __future__ import annotations

import logging
import os
import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.core.context import RunContext

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 60.0
REFRESH_TIMEOUT = 10


class SudoKeepAlive:
    """Periodically run ``sudo -n -v`` on a daemon thread."""

    def __init__(
        self,
        ctx: RunContext,
        interval: float = DEFAULT_INTERVAL,
        is_root: bool | None = None,
    ):
        self._is_root = os.geteuid() == 0 if is_root is None else is_root
        self._ctx = ctx
        self._interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self.refreshes = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self._thread is not None:
            return
        if self._is_root:
            logger.debug("Running as root — sudo keep-alive not needed")
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._loop,
            name="sudo-keepalive",
            daemon=True,
        )
        self._thread.start()
        logger.debug("sudo keep-alive started (every %.0fs)", self._interval)

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            # A refresh in flight is bounded by REFRESH_TIMEOUT
            self._thread.join()
            logger.debug("sudo keep-alive stopped after %d refreshes", self.refreshes)
        self._thread = None

    def _loop(self) -> None:
        while not self._stop.wait(self._interval):
            receipt = self._ctx.run("keepalive:sudo", ["sudo", "-n", "-v"], timeout=REFRESH_TIMEOUT)
            self.refreshes += 1
            if not receipt.ok:
                logger.debug("sudo refresh failed: %s", receipt.error)

    def __enter__(self) -> SudoKeepAlive:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()
