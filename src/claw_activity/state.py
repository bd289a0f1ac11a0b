"""Process-wide streaming state.

Everything the relay shares between its inbound webhook, its delivery
loop and its chat commands lives on one ``StreamState`` object that is
passed explicitly to each component. All access happens on the event
loop thread, so no locking is needed.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from claw_activity.constants import DEFAULT_BACKOFF_SECONDS, DEFAULT_POST_DELAY_SECONDS
from claw_activity.delivery.queue import DeliveryQueue
from claw_activity.logging import get_logger

if TYPE_CHECKING:
    from claw_activity.delivery.rate_limiter import SlidingWindowRateLimiter
    from claw_activity.delivery.sinks import Sink
    from claw_activity.models import ActivityEvent

log = get_logger("claw_activity.state")


class StreamState:
    """Delivery queue, rate limiter and the streaming on/off switch."""

    def __init__(
        self,
        sink: Sink,
        limiter: SlidingWindowRateLimiter,
        *,
        streaming_enabled: bool = True,
        post_delay: float = DEFAULT_POST_DELAY_SECONDS,
        backoff: float = DEFAULT_BACKOFF_SECONDS,
    ) -> None:
        self.queue = DeliveryQueue(
            sink,
            limiter,
            is_enabled=self.is_enabled,
            post_delay=post_delay,
            backoff=backoff,
        )
        self.streaming_enabled = streaming_enabled
        self.started_at = datetime.now(UTC)
        self.received = 0

    @property
    def limiter(self) -> SlidingWindowRateLimiter:
        return self.queue.limiter

    @property
    def uptime_seconds(self) -> float:
        return (datetime.now(UTC) - self.started_at).total_seconds()

    def is_enabled(self) -> bool:
        return self.streaming_enabled

    def toggle_streaming(self) -> bool:
        """Flip the streaming switch and return the new value."""
        self.streaming_enabled = not self.streaming_enabled
        log.info("streaming_toggled", enabled=self.streaming_enabled)
        return self.streaming_enabled

    def submit(self, event: ActivityEvent) -> bool:
        """Queue an event for delivery unless streaming is disabled.

        Returns:
            True if the event was queued, False if it was dropped.
        """
        self.received += 1
        if not self.streaming_enabled:
            log.info("activity_skipped_stream_disabled", event_type=event.type)
            return False
        self.queue.enqueue(event)
        return True

    def snapshot(self) -> dict[str, Any]:
        """Status summary used by the health endpoint and chat commands."""
        return {
            "status": "ok",
            "uptime_seconds": round(self.uptime_seconds, 1),
            "started_at": self.started_at.isoformat(),
            "streaming_enabled": self.streaming_enabled,
            "queue_depth": self.queue.depth,
            "received": self.received,
            "delivered": self.queue.delivered,
            "failed": self.queue.failed,
            "rate_limit": {
                "posts": self.limiter.occupancy(),
                "max_per_minute": self.limiter.limit,
            },
        }
