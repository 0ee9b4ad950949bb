"""The running-timer engine.

TimerReconciler is the single owner of TimerEngineState.  UI code talks to it
through the transition coroutines (start / pause / resume / stop / refresh),
the synchronous ``absorb()``, and read-only TimerView objects delivered to
subscribers.

Every request to the server is tagged with a sequence number.  Absorption is
last-write-wins by *call order*: a response older than the last absorbed one is
dropped.  Optimistic effects (the display freezing while a pause or stop is in flight)
are derived from the set of in-flight requests, so rolling back a failed
request is just re-deriving local state without it.
"""

from dataclasses import dataclass

from tt.common.logger import log
from tt.core.errors import AlreadyRunning, InvalidTransition, StaleResponse, TimerError
from tt.core.ticker import AsyncioTicker
from tt.core.timer_state import TimerEngineState, TimerStatus, TimerView
from tt.util.misc import utc_now

# Status each transition leads to. Used to judge validity while requests are still in flight.
_TARGETS = {
    "start": TimerStatus.RUNNING,
    "pause": TimerStatus.PAUSED,
    "resume": TimerStatus.RUNNING,
    "stop": TimerStatus.IDLE,
}


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of one engine operation. Expected failures land in ``error`` instead of being raised."""

    operation: str
    seq: int | None
    view: TimerView
    error: TimerError | None = None
    discarded: StaleResponse | None = None

    @property
    def ok(self):
        return self.error is None

    @property
    def stale(self):
        return self.discarded is not None

    def unwrap(self):
        if self.error is not None:
            raise self.error
        return self.view


class TimerReconciler:

    def __init__(self, authority, ticker=None, clock=utc_now, on_absorb=None):
        self._authority = authority
        self._ticker = ticker or AsyncioTicker()
        self._clock = clock
        self._on_absorb = on_absorb
        self._state = TimerEngineState()
        self._subscribers = []

        self._seq = 0
        self._last_absorbed = 0
        self._in_flight = {}

    #region === Read-only views ===

    @property
    def view(self):
        return self._state.view(pending=self.pending)

    @property
    def current(self):
        return self._state.current

    @property
    def status(self):
        return self._state.status

    # The newest in-flight transition that can still be absorbed, if any. Refreshes don't count, they never change
    # what the user asked for, and requests older than the last absorbed response are already lost.
    @property
    def pending(self):
        transitions = [seq for seq, op in self._in_flight.items() if op in _TARGETS and seq > self._last_absorbed]
        return self._in_flight[max(transitions)] if transitions else None

    # Confirmed status, overridden by where the newest in-flight transition is headed.
    @property
    def effective_status(self):
        op = self.pending
        return _TARGETS[op] if op is not None else self._state.status

    # A running timer holds its display while the newest request in flight (pause or stop) takes it out of Running.
    @property
    def _frozen(self):
        return self._state.status is TimerStatus.RUNNING and self.effective_status is not TimerStatus.RUNNING

    @property
    def busy(self):
        return any(op in _TARGETS for op in self._in_flight.values())

    @property
    def ticking(self):
        return self._state.ticking

    def subscribe(self, callback):
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)
        return unsubscribe

    #endregion === Read-only views ===

    #region === Absorption ===

    # Replaces local state with a server snapshot. A direct call counts as the newest call, so anything still in
    # flight will be discarded when it lands.
    def absorb(self, snapshot):
        self._absorb(self._next_seq(), snapshot)
        return self.view

    def _absorb(self, seq, snapshot):
        if snapshot is not None and snapshot.is_terminal:
            snapshot = None
        previous = self._state.current
        try:
            now = self._clock()
            displayed = 0 if snapshot is None else snapshot.elapsed_at(now)
        except BaseException:
            self._cancel_ticking()
            raise
        if snapshot is not None and snapshot.is_running and snapshot.started_at > now:
            log.warning(f"Timer {snapshot.id} started {(snapshot.started_at - now).total_seconds():.1f}s in the future, local clock is behind the server")

        self._state.current = snapshot
        self._state.displayed_elapsed_seconds = displayed
        self._last_absorbed = seq
        self._sync_ticking()
        log.debug(f"Absorbed #{seq}: {self._state.status} at {displayed}s (timer {None if snapshot is None else snapshot.id})")

        self._notify()
        if self._on_absorb is not None and snapshot != previous:
            self._on_absorb(snapshot)

    #endregion === Absorption ===

    #region === Transitions ===

    async def start(self, subject):
        rejection = self._check_can_start()
        if rejection is not None:
            return rejection
        return await self._dispatch("start", lambda: self._authority.start(subject))

    async def start_for_task(self, task_id):
        rejection = self._check_can_start()
        if rejection is not None:
            return rejection
        return await self._dispatch("start", lambda: self._authority.start_for_task(task_id))

    async def pause(self):
        rejection = self._check("pause", TimerStatus.RUNNING)
        if rejection is not None:
            return rejection
        timer_id = self._state.current.id
        return await self._dispatch("pause", lambda: self._authority.pause(timer_id))

    async def resume(self):
        rejection = self._check("resume", TimerStatus.PAUSED)
        if rejection is not None:
            return rejection
        timer_id = self._state.current.id
        return await self._dispatch("resume", lambda: self._authority.resume(timer_id))

    async def stop(self, mark_task_complete=False):
        rejection = self._check("stop", TimerStatus.RUNNING, TimerStatus.PAUSED)
        if rejection is not None:
            return rejection
        timer_id = self._state.current.id
        return await self._dispatch("stop", lambda: self._authority.stop(timer_id, mark_task_complete=mark_task_complete))

    # Stops the timer and asks the server to mark its task as complete.
    async def complete(self):
        return await self.stop(mark_task_complete=True)

    # Re-reads the running timer from the server (load, reconnect, polling).
    async def refresh(self):
        return await self._dispatch("refresh", self._authority.running)

    def _check_can_start(self):
        status = self.effective_status
        if status is TimerStatus.RUNNING:
            return self._rejected("start", AlreadyRunning())
        if status is not TimerStatus.IDLE:
            return self._rejected("start", InvalidTransition("start", status))
        return None

    def _check(self, operation, *allowed):
        status = self.effective_status
        if status not in allowed:
            return self._rejected(operation, InvalidTransition(operation, status))
        current = self._state.current
        if current is None or current.id is None:
            return self._rejected(operation, InvalidTransition(
                operation, status, f"Cannot {operation} before the server has confirmed a timer"))
        return None

    def _rejected(self, operation, error):
        log.info(f"Rejected {operation}: {error}")
        return TransitionResult(operation, None, self.view, error=error)

    async def _dispatch(self, operation, request):
        # Bring the display up to date before a pause or stop freezes it
        if self._state.ticking:
            self._state.recompute(self._clock())
        seq = self._next_seq()
        self._in_flight[seq] = operation
        log.info(f"Dispatching {operation} as request #{seq}")
        self._settle()

        try:
            snapshot = await request()
        except TimerError as e:
            del self._in_flight[seq]
            log.warning(f"Request #{seq} ({operation}) failed, rolling back to last confirmed state: {e!r}")
            self._settle()
            return TransitionResult(operation, seq, self.view, error=e)
        except BaseException:
            del self._in_flight[seq]
            log.warning(f"Request #{seq} ({operation}) aborted, rolling back to last confirmed state")
            self._settle()
            raise

        del self._in_flight[seq]
        if seq < self._last_absorbed:
            stale = StaleResponse(seq, self._last_absorbed)
            log.info(f"{operation}: {stale}")
            self._settle()
            return TransitionResult(operation, seq, self.view, discarded=stale)

        self._absorb(seq, snapshot)
        return TransitionResult(operation, seq, self.view)

    def _next_seq(self):
        self._seq += 1
        return self._seq

    # Re-derives everything local from the last absorbed snapshot plus whatever is still in flight.
    def _settle(self):
        if not self._frozen:
            self._state.recompute(self._clock())
        self._sync_ticking()
        self._notify()

    #endregion === Transitions ===

    #region === Ticking ===

    # The only place a ticker is started or cancelled. Ticking runs exactly while the confirmed timer is running and
    # nothing in flight is taking it out of Running.
    def _sync_ticking(self):
        should_tick = self._state.status is TimerStatus.RUNNING and not self._frozen
        if should_tick and not self._state.ticking:
            self._cancel_ticking()
            self._state.ticker_handle = self._ticker.start(self._tick)
            log.debug("Started ticking")
        elif not should_tick and self._state.ticker_handle is not None:
            self._cancel_ticking()
            log.debug("Stopped ticking")

    def _cancel_ticking(self):
        handle, self._state.ticker_handle = self._state.ticker_handle, None
        if handle is not None:
            handle.cancel()

    def _tick(self):
        if self._state.status is not TimerStatus.RUNNING:
            self._cancel_ticking()
            return
        before = self._state.displayed_elapsed_seconds
        if self._state.recompute(self._clock()) != before:
            self._notify()

    #endregion === Ticking ===

    def _notify(self):
        view = self.view
        for callback in list(self._subscribers):
            try:
                callback(view)
            except Exception:
                log.exception("Timer observer raised while handling an update")

    # Releases the ticker and observers. The reconciler is unusable afterwards.
    def close(self):
        self._cancel_ticking()
        self._subscribers.clear()
