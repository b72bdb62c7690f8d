import logging
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AuditEvent:
    action: str  # "add-thread", "delete-reply", ...
    actor_id: int
    target_id: int
    summary: str = ""


class AuditSink(Protocol):
    def emit(self, event: AuditEvent) -> None: ...


class LoggingAuditSink:
    """Default sink: hands events to the logging system and keeps nothing."""

    def emit(self, event: AuditEvent) -> None:
        logger.info("%s by actor %s on %s: %s", event.action, event.actor_id, event.target_id, event.summary)


class MemoryAuditSink:
    def __init__(self) -> None:
        self.events: list[AuditEvent] = []

    def emit(self, event: AuditEvent) -> None:
        self.events.append(event)

    def actions(self) -> list[str]:
        return [event.action for event in self.events]
