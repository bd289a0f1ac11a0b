"""Ingestion pipeline: raw line -> activity event -> delivery queue."""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

from claw_activity.logging import get_logger
from claw_activity.parsing.log_lines import parse_log_line
from claw_activity.parsing.session import ParseError, SessionRecordParser

if TYPE_CHECKING:
    from claw_activity.delivery.queue import DeliveryQueue
    from claw_activity.models import ActivityEvent

log = get_logger("claw_activity.pipeline")

SourceMode = Literal["log", "session"]


class ActivityPipeline:
    """Parses lines from a source and queues the resulting events.

    ``log`` mode applies the gateway log rules; ``session`` mode decodes
    JSON session records. Most lines produce no event.
    """

    def __init__(self, queue: DeliveryQueue, mode: SourceMode = "log") -> None:
        if mode not in ("log", "session"):
            raise ValueError(f"Unknown source mode: {mode}")
        self._queue = queue
        self._mode = mode
        self._session_parser = SessionRecordParser()
        self.lines_seen = 0
        self.events_queued = 0
        self.parse_errors = 0

    @property
    def mode(self) -> SourceMode:
        return self._mode

    def parse(self, line: str) -> ActivityEvent | None:
        """Parse one line for the configured mode.

        Raises:
            ParseError: In session mode, for lines that are not JSON objects.
        """
        if self._mode == "session":
            return self._session_parser.parse(line)
        return parse_log_line(line)

    def handle_line(self, line: str) -> None:
        """Parse ``line`` and queue its event, if any."""
        self.lines_seen += 1
        try:
            event = self.parse(line)
        except ParseError as exc:
            self.parse_errors += 1
            log.warning("session_record_unparseable", error=str(exc), preview=line[:100])
            return

        if event is None:
            return

        self.events_queued += 1
        log.debug("activity_parsed", event_type=event.type)
        self._queue.enqueue(event)
