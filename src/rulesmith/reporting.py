"""
Structured event collection for a composition run.

The resolver, merger and installer each receive a Reporter and append
events to it instead of printing. The caller owns the reporter and decides
how to render it (the CLI uses rich; tests inspect the events directly).
Every event is mirrored to the standard logging module.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import enum as _enum
import logging as _logging
import typing as _typing


class Level(str, _enum.Enum):
    """Severity of a reported event."""

    DEBUG = "debug"
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


_LOG_LEVELS = {
    Level.DEBUG: _logging.DEBUG,
    Level.INFO: _logging.INFO,
    Level.SUCCESS: _logging.INFO,
    Level.WARNING: _logging.WARNING,
    Level.ERROR: _logging.ERROR,
}


@_dataclasses.dataclass(frozen=True)
class Event:
    """One reported event."""

    level: Level
    message: str
    source: str = ""
    """Pipeline stage that produced the event (resolver, merger, installer...)."""

    def to_dict(self) -> dict[str, str]:
        return {"level": self.level.value, "message": self.message, "source": self.source}


class Reporter:
    """
    Caller-owned sink for pipeline events.

    Create one per run and pass it explicitly to each component.
    """

    def __init__(self, logger: _logging.Logger | None = None) -> None:
        self._events: list[Event] = []
        self._logger = logger or _logging.getLogger("rulesmith")

    def emit(self, level: Level, message: str, *, source: str = "") -> Event:
        """Record an event and mirror it to the logger."""
        event = Event(level=level, message=message, source=source)
        self._events.append(event)
        self._logger.log(_LOG_LEVELS[level], "[%s] %s", source or "-", message)
        return event

    def debug(self, message: str, *, source: str = "") -> Event:
        return self.emit(Level.DEBUG, message, source=source)

    def info(self, message: str, *, source: str = "") -> Event:
        return self.emit(Level.INFO, message, source=source)

    def success(self, message: str, *, source: str = "") -> Event:
        return self.emit(Level.SUCCESS, message, source=source)

    def warning(self, message: str, *, source: str = "") -> Event:
        return self.emit(Level.WARNING, message, source=source)

    def error(self, message: str, *, source: str = "") -> Event:
        return self.emit(Level.ERROR, message, source=source)

    @property
    def events(self) -> list[Event]:
        """All events in emission order."""
        return list(self._events)

    @property
    def warnings(self) -> list[str]:
        """Messages of all warning events."""
        return [e.message for e in self._events if e.level is Level.WARNING]

    @property
    def errors(self) -> list[str]:
        """Messages of all error events."""
        return [e.message for e in self._events if e.level is Level.ERROR]

    def filter(
        self,
        *,
        level: Level | None = None,
        source: str | None = None,
    ) -> _typing.Iterator[Event]:
        """Iterate events matching the given level and/or source."""
        for event in self._events:
            if level is not None and event.level is not level:
                continue
            if source is not None and event.source != source:
                continue
            yield event

    def __len__(self) -> int:
        return len(self._events)

    def __bool__(self) -> bool:
        """A reporter is a sink; it is truthy even before the first event."""
        return True
