"""Structured build events and the reporter contract that consumes them."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Protocol

from .stats import BuildStats


class EventKind(str, Enum):
    STAGE_STARTED = "stage_started"
    STAGE_FINISHED = "stage_finished"
    FILE_ERROR = "file_error"
    FILE_WARNING = "file_warning"
    BUILD_FINISHED = "build_finished"
    BUILD_FAILED = "build_failed"


@dataclass(frozen=True)
class BuildEvent:
    """A single observation emitted by the pipeline."""

    kind: EventKind
    stage: str | None = None
    message: str = ""
    path: str | None = None
    stats: BuildStats | None = None


class Reporter(Protocol):
    """Presentation layer for build events."""

    def handle(self, event: BuildEvent) -> None:
        ...


class EventSink:
    """Fans events out to every registered reporter."""

    def __init__(self, reporters: Iterable[Reporter] | None = None) -> None:
        self._reporters: List[Reporter] = list(reporters or [])

    def subscribe(self, reporter: Reporter) -> None:
        self._reporters.append(reporter)

    def emit(self, event: BuildEvent) -> None:
        for reporter in self._reporters:
            reporter.handle(event)


__all__ = ["BuildEvent", "EventKind", "EventSink", "Reporter"]
