"""Rate-limited, best-effort delivery of activity events."""

from claw_activity.delivery.queue import DeliveryQueue
from claw_activity.delivery.rate_limiter import SlidingWindowRateLimiter
from claw_activity.delivery.sinks import (
    DeliveryAck,
    DeliveryError,
    DiscordChannelSink,
    DiscordWebhookSink,
    Sink,
    WebhookSink,
)

__all__ = [
    "DeliveryAck",
    "DeliveryError",
    "DeliveryQueue",
    "DiscordChannelSink",
    "DiscordWebhookSink",
    "Sink",
    "SlidingWindowRateLimiter",
    "WebhookSink",
]
