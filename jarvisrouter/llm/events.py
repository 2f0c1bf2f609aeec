"""Structured routing events.

The orchestrator reports what it does to an injected sink. Formatting and
persistence are up to the sink; the default one writes through ``logging``.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

SERVICE_ATTEMPTED = "service_attempted"
SERVICE_SUCCEEDED = "service_succeeded"
SERVICE_FAILED = "service_failed"
SERVICE_SKIPPED = "service_skipped"
ALL_SERVICES_EXHAUSTED = "all_services_exhausted"


class EventSink(Protocol):
    """Receiver of routing events."""

    def emit(self, event: str, **fields: Any) -> None:
        ...


class LoggingEventSink:
    """Writes events to a logger, failures at WARNING and the rest at INFO."""

    _WARNING_EVENTS = {SERVICE_FAILED, SERVICE_SKIPPED, ALL_SERVICES_EXHAUSTED}

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._logger = logger or logging.getLogger("jarvisrouter.events")

    def emit(self, event: str, **fields: Any) -> None:
        level = logging.WARNING if event in self._WARNING_EVENTS else logging.INFO
        details = " ".join(f"{key}={value}" for key, value in fields.items())
        self._logger.log(level, f"{event} {details}".strip(), extra={"event": event, "fields": fields})


@dataclass
class RecordedEvent:
    event: str
    fields: Dict[str, Any]
    timestamp: float = field(default_factory=time.monotonic)


class RecordingEventSink:
    """Keeps events in memory, mostly for tests and diagnostics."""

    def __init__(self) -> None:
        self.events: List[RecordedEvent] = []

    def emit(self, event: str, **fields: Any) -> None:
        self.events.append(RecordedEvent(event=event, fields=dict(fields)))

    def names(self) -> List[str]:
        return [e.event for e in self.events]

    def of(self, event: str) -> List[RecordedEvent]:
        return [e for e in self.events if e.event == event]

    def clear(self) -> None:
        self.events.clear()
