"""Event channel between the engine and the presentation layer.

The engine publishes structured events (hook output, conflicts, preserved
directories); apps subscribe and decide how to display them.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import field

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    "action": logging.INFO,
    "info": logging.INFO,
    "conflict": logging.WARNING,
    "warn": logging.WARNING,
    "debug": logging.DEBUG,
}


@dataclass(frozen=True)
class LogEvent:
    level: str
    id: str
    message: str
    data: dict = field(default_factory=dict)


class EventChannel:
    """Fan-out of install events to subscribers (also mirrored to logging)."""

    def __init__(self):
        self._subscribers: list[Callable[[LogEvent], None]] = []
        self.history: list[LogEvent] = []

    def subscribe(self, callback: Callable[[LogEvent], None]) -> None:
        self._subscribers.append(callback)

    def emit(self, level: str, id: str, message: str, **data) -> LogEvent:
        event = LogEvent(level=level, id=id, message=message, data=data)
        self.history.append(event)
        logger.log(_LOG_LEVELS.get(level, logging.INFO), f"{id} {message}")

        for callback in self._subscribers:
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Event subscriber failed on {id}: {e}")
        return event

    def of_level(self, level: str) -> list[LogEvent]:
        return [e for e in self.history if e.level == level]
