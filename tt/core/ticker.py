"""Cancellable repeating callbacks used to drive the elapsed-time display.

The ticker only says *when* to recompute.  What gets shown is always derived
from the wall clock, so a late or skipped firing never loses time.
"""

import asyncio

from tt.common.logger import log


class TickerHandle:
    """Ownership token for one active ticking process. ``cancel()`` runs the underlying stop exactly once."""

    def __init__(self, stop):
        self._stop = stop

    @property
    def active(self):
        return self._stop is not None

    def cancel(self):
        if self._stop is None:
            return
        stop, self._stop = self._stop, None
        stop()


class Ticker:
    """Base class. Subclasses schedule ``callback`` every ``interval`` seconds until the handle is cancelled."""

    def __init__(self, interval=1.0):
        self.interval = float(interval)

    def start(self, callback) -> TickerHandle:
        raise NotImplementedError


# Ticks on the running asyncio loop. Deadlines are chained off the previous deadline (so the cadence does not creep),
# and if the loop was blocked or the host slept through several deadlines, those firings are dropped, not replayed.
class AsyncioTicker(Ticker):

    def start(self, callback):
        loop = asyncio.get_running_loop()
        interval = self.interval
        pending = {"call": None, "next_at": loop.time() + interval}

        def fire():
            now = loop.time()
            next_at = pending["next_at"] + interval
            if next_at <= now:
                next_at = now + interval
            pending["next_at"] = next_at
            pending["call"] = loop.call_at(next_at, fire)
            try:
                callback()
            except Exception:
                log.exception("Ticker callback raised, continuing to tick")

        def stop():
            if pending["call"] is not None:
                pending["call"].cancel()
                pending["call"] = None

        pending["call"] = loop.call_at(pending["next_at"], fire)
        return TickerHandle(stop)
