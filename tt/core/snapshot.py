"""Server-issued timer snapshots. Pure data, no I/O."""

import math
from dataclasses import dataclass
from datetime import datetime

from tt.core.errors import MalformedSnapshot
from tt.util.misc import format_timestamp, parse_timestamp


# The API either sends a bare id or a populated {_id, name, ...} document for references.
def _ref_id(value):
    if isinstance(value, dict):
        value = value.get("_id")
    return None if value is None else str(value)

def _ref_name(value):
    if isinstance(value, dict):
        return value.get("name")
    return None


@dataclass(frozen=True)
class SubjectRef:
    """What a timer is being run against: a task, or a miscellaneous activity."""

    task_id: str | None = None
    task_name: str | None = None
    client_id: str | None = None
    client_name: str | None = None
    package_id: str | None = None
    description: str | None = None
    miscellaneous: bool = False

    @classmethod
    def task(cls, task_id, client_id=None, package_id=None, description=None, task_name=None):
        return cls(task_id=str(task_id), task_name=task_name,
                   client_id=None if client_id is None else str(client_id),
                   package_id=None if package_id is None else str(package_id),
                   description=description)

    @classmethod
    def misc(cls, description=None, client_id=None):
        return cls(miscellaneous=True, description=description,
                   client_id=None if client_id is None else str(client_id))

    @classmethod
    def from_payload(cls, entry):
        miscellaneous = bool(entry.get("isMiscellaneous", False))
        description = entry.get("miscellaneousDescription") if miscellaneous else entry.get("description")
        return cls(
            task_id=_ref_id(entry.get("taskId")),
            task_name=_ref_name(entry.get("taskId")),
            client_id=_ref_id(entry.get("clientId")),
            client_name=_ref_name(entry.get("clientId")),
            package_id=_ref_id(entry.get("packageId")),
            description=description,
            miscellaneous=miscellaneous,
        )

    # Body for POST /time-entries/start
    def to_start_payload(self, employee_id=None):
        payload = {}
        if employee_id is not None:
            payload["employeeId"] = employee_id
        if self.client_id is not None:
            payload["clientId"] = self.client_id
        if self.miscellaneous:
            payload["isMiscellaneous"] = True
            if self.description is not None:
                payload["miscellaneousDescription"] = self.description
            return payload
        if self.task_id is not None:
            payload["taskId"] = self.task_id
        if self.package_id is not None:
            payload["packageId"] = self.package_id
        if self.description is not None:
            payload["description"] = self.description
        return payload

    @property
    def display_name(self):
        if self.miscellaneous:
            return self.description or "Miscellaneous"
        return self.task_name or "a task"


@dataclass(frozen=True)
class TimerSnapshot:
    """An authoritative description of a time entry at one point in time.

    ``accumulated_seconds`` counts everything before the current run segment;
    while running, the segment length is derived from ``started_at`` and the
    wall clock, never from a local counter.
    """

    id: str | None
    accumulated_seconds: int = 0
    is_running: bool = False
    is_paused: bool = False
    started_at: datetime | None = None
    subject: SubjectRef | None = None

    def __post_init__(self):
        if isinstance(self.accumulated_seconds, bool) or not isinstance(self.accumulated_seconds, int):
            raise MalformedSnapshot(f"accumulated_seconds must be an int, got {self.accumulated_seconds!r}")
        if self.accumulated_seconds < 0:
            raise MalformedSnapshot(f"accumulated_seconds must be non-negative, got {self.accumulated_seconds}")
        if self.is_running and self.is_paused:
            raise MalformedSnapshot(f"Timer '{self.id}' cannot be both running and paused")
        if self.is_running and self.started_at is None:
            raise MalformedSnapshot(f"Running timer '{self.id}' has no start timestamp")
        if self.started_at is not None and self.started_at.tzinfo is None:
            raise MalformedSnapshot(f"Timer '{self.id}' start timestamp must be timezone-aware")

    # Parses one time entry document as returned by the API. None (or an empty document) means "no timer".
    @classmethod
    def from_payload(cls, entry):
        if not entry:
            return None
        if not isinstance(entry, dict):
            raise MalformedSnapshot(f"Expected a time entry object, got {type(entry).__name__}")

        raw_seconds = entry.get("accumulatedSeconds") or 0
        try:
            accumulated = int(raw_seconds)
        except (TypeError, ValueError) as e:
            raise MalformedSnapshot(f"Invalid accumulatedSeconds {raw_seconds!r}") from e

        is_running = bool(entry.get("isRunning", False))
        started_raw = entry.get("timerStartedAt")
        try:
            started_at = parse_timestamp(started_raw)
        except (TypeError, ValueError) as e:
            raise MalformedSnapshot(f"Invalid timerStartedAt {started_raw!r}") from e

        entry_id = entry.get("_id", entry.get("id"))
        return cls(
            id=None if entry_id is None else str(entry_id),
            accumulated_seconds=accumulated,
            is_running=is_running,
            is_paused=bool(entry.get("isPaused", False)),
            started_at=started_at if is_running else None,
            subject=SubjectRef.from_payload(entry),
        )

    # Same wire shape that from_payload() reads, used for the local cache.
    def to_payload(self):
        payload = {
            "_id": self.id,
            "accumulatedSeconds": self.accumulated_seconds,
            "isRunning": self.is_running,
            "isPaused": self.is_paused,
            "timerStartedAt": format_timestamp(self.started_at),
        }
        subject = self.subject
        if subject is not None:
            payload["isMiscellaneous"] = subject.miscellaneous
            if subject.miscellaneous:
                payload["miscellaneousDescription"] = subject.description
            else:
                payload["description"] = subject.description
            if subject.task_id is not None:
                payload["taskId"] = {"_id": subject.task_id, "name": subject.task_name}
            if subject.client_id is not None:
                payload["clientId"] = {"_id": subject.client_id, "name": subject.client_name}
            if subject.package_id is not None:
                payload["packageId"] = subject.package_id
        return payload

    @property
    def is_terminal(self):
        return not self.is_running and not self.is_paused

    def segment_seconds(self, now):
        """Whole seconds of the current run segment. A start slightly in the future (clock skew) counts as 0."""
        if not self.is_running:
            return 0
        return max(0, math.floor((now - self.started_at).total_seconds()))

    def elapsed_at(self, now):
        return self.accumulated_seconds + self.segment_seconds(now)
