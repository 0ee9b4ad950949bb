"""Error taxonomy for the timer engine.

Expected failures never escape a transition as raised exceptions; they travel
back to the caller inside a ``TransitionResult``.  The classes still derive
from ``Exception`` so ``TransitionResult.unwrap()`` can raise them.
"""


class TimerError(Exception):
    """Base class for every failure the timer engine knows how to report."""


class InvalidTransition(TimerError):
    """The operation is illegal in the engine's current (effective) status."""

    def __init__(self, operation, status, message=None):
        self.operation = operation
        self.status = status
        super().__init__(message or f"Cannot {operation} while timer is {status}")


class AlreadyRunning(InvalidTransition):
    """A timer is already running for this employee, locally or on the server."""

    def __init__(self, message=None, status="running"):
        super().__init__("start", status,
                         message or "There is already a running timer for this employee")


class NetworkFailure(TimerError):
    """The request never produced a usable answer (connection, timeout)."""


class AuthorityUnavailable(NetworkFailure):
    """The server answered, but with a 5xx."""

    def __init__(self, status_code, message=None):
        self.status_code = status_code
        super().__init__(message or f"Timer service unavailable (HTTP {status_code})")


class AuthorityRejected(TimerError):
    """The server refused the request for a business reason (4xx)."""

    def __init__(self, status_code, message=None):
        self.status_code = status_code
        super().__init__(message or f"Timer service rejected the request (HTTP {status_code})")


class MalformedSnapshot(TimerError):
    """A payload could not be turned into a valid TimerSnapshot."""


class StaleResponse(TimerError):
    """A response arrived after a newer one was absorbed. Only ever logged/reported, never raised."""

    def __init__(self, seq, last_absorbed):
        self.seq = seq
        self.last_absorbed = last_absorbed
        super().__init__(f"Discarded response #{seq}, already absorbed #{last_absorbed}")
