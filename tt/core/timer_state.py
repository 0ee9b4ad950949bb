from dataclasses import dataclass
from enum import Enum

from tt.util.misc import format_elapsed


class TimerStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"

    def __str__(self):
        return self.value


# Frozen, read-only picture of the engine handed to observers. Nothing in here can be used to mutate the engine.
@dataclass(frozen=True)
class TimerView:
    displayed_elapsed_seconds: int = 0
    is_running: bool = False
    is_paused: bool = False
    subject: object = None
    timer_id: str | None = None
    pending: str | None = None

    @property
    def status(self):
        if self.is_running:
            return TimerStatus.RUNNING
        if self.is_paused:
            return TimerStatus.PAUSED
        return TimerStatus.IDLE

    @property
    def formatted(self):
        return format_elapsed(self.displayed_elapsed_seconds)

    @property
    def label(self):
        return self.subject.display_name if self.subject is not None else ""


# This object holds the engine's local state for the one timer an employee may have. Only TimerReconciler touches
# it; `current` is whatever snapshot was last absorbed and everything else is derived from it.
class TimerEngineState:

    def __init__(self):
        self.current = None
        self.displayed_elapsed_seconds = 0
        self.ticker_handle = None

    @property
    def status(self):
        if self.current is None:
            return TimerStatus.IDLE
        if self.current.is_running:
            return TimerStatus.RUNNING
        if self.current.is_paused:
            return TimerStatus.PAUSED
        return TimerStatus.IDLE

    @property
    def ticking(self):
        return self.ticker_handle is not None and self.ticker_handle.active

    # Recomputes the displayed value from the wall clock. Never increments.
    def recompute(self, now):
        if self.current is None:
            self.displayed_elapsed_seconds = 0
        else:
            self.displayed_elapsed_seconds = self.current.elapsed_at(now)
        return self.displayed_elapsed_seconds

    def view(self, pending=None):
        current = self.current
        return TimerView(
            displayed_elapsed_seconds=self.displayed_elapsed_seconds,
            is_running=current is not None and current.is_running,
            is_paused=current is not None and current.is_paused,
            subject=None if current is None else current.subject,
            timer_id=None if current is None else current.id,
            pending=pending,
        )
