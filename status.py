"""
Job status events for sheet generation.

A sheet job moves through requested -> started -> processing (one event
per stage) -> completed, or stops at failed. Events serialize to JSON
objects keyed by "status":

    {"status": "requested"}
    {"status": "processing", "description": "building trellis"}
    {"status": "failed", "description": "basemap", "error": "timed out"}
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional


class StatusError(ValueError):
    """Raised for a status payload that can not be parsed."""


@dataclass(frozen=True)
class Requested:
    name = "requested"


@dataclass(frozen=True)
class Started:
    name = "started"


@dataclass(frozen=True)
class Processing:
    description: str
    name = "processing"


@dataclass(frozen=True)
class Failed:
    description: str
    error: str
    name = "failed"


@dataclass(frozen=True)
class Completed:
    name = "completed"


def failed(description: str, error: BaseException) -> Failed:
    return Failed(description=description, error=str(error) or type(error).__name__)


def to_dict(status) -> dict:
    data = {"status": status.name}
    if isinstance(status, Processing):
        data["description"] = status.description
    elif isinstance(status, Failed):
        data["description"] = status.description
        data["error"] = status.error
    return data


def to_json(status) -> str:
    return json.dumps(to_dict(status))


def from_dict(data: dict):
    """Parse a status dict back into an event."""
    name = str(data.get("status", "")).lower()
    if name == Requested.name:
        return Requested()
    if name == Started.name:
        return Started()
    if name == Completed.name:
        return Completed()
    if name == Processing.name:
        return Processing(description=data.get("description", ""))
    if name == Failed.name:
        return Failed(description=data.get("description", ""), error=data.get("error", ""))
    raise StatusError(f"Unknown status type: {name}")


def from_json(text: str):
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise StatusError(f"invalid status json: {e}") from e
    if not isinstance(data, dict):
        raise StatusError(f"status must be an object, got {type(data).__name__}")
    return from_dict(data)


class StatusSink(ABC):
    """Receives status events for a job."""

    @abstractmethod
    def emit(self, job: str, status) -> None:
        pass


class NullStatusSink(StatusSink):
    def emit(self, job: str, status) -> None:
        pass


class PrintStatusSink(StatusSink):
    """Prints status events the way the rest of the tooling logs progress."""

    def emit(self, job: str, status) -> None:
        if isinstance(status, Processing):
            print(f"  [{job}] {status.description}...")
        elif isinstance(status, Failed):
            print(f"  [{job}] FAILED during {status.description}: {status.error}")
        else:
            print(f"[{job}] {status.name}")


@dataclass
class CollectingStatusSink(StatusSink):
    """Keeps every event, mainly for tests and callers polling a job."""
    events: List[tuple] = field(default_factory=list)

    def emit(self, job: str, status) -> None:
        self.events.append((job, status))

    def statuses(self, job: Optional[str] = None) -> list:
        return [status for j, status in self.events if job is None or j == job]

    def last(self, job: Optional[str] = None):
        statuses = self.statuses(job)
        return statuses[-1] if statuses else None
