"""FIFO delivery queue with a single rate-limited drain loop.

Producers call ``enqueue`` from anywhere on the event loop. The first
enqueue on an idle queue starts the drain task; the task exits once the
queue is empty and a later enqueue starts a new one. Only one drain task
is ever active, so events leave in exactly the order they arrived.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from claw_activity.constants import DEFAULT_BACKOFF_SECONDS, DEFAULT_POST_DELAY_SECONDS
from claw_activity.delivery.sinks import DeliveryError
from claw_activity.logging import get_logger

if TYPE_CHECKING:
    from claw_activity.delivery.rate_limiter import SlidingWindowRateLimiter
    from claw_activity.delivery.sinks import Sink
    from claw_activity.models import ActivityEvent

log = get_logger("claw_activity.delivery.queue")


class DeliveryQueue:
    """Unbounded in-memory queue drained into a sink at a bounded rate.

    Delivery is at-most-once: a failed delivery is logged and the event
    is dropped, never requeued.
    """

    def __init__(
        self,
        sink: Sink,
        limiter: SlidingWindowRateLimiter,
        *,
        is_enabled: Callable[[], bool] | None = None,
        post_delay: float = DEFAULT_POST_DELAY_SECONDS,
        backoff: float = DEFAULT_BACKOFF_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._sink = sink
        self._limiter = limiter
        self._is_enabled = is_enabled or (lambda: True)
        self._post_delay = post_delay
        self._backoff = backoff
        self._sleep = sleep
        self._events: deque[ActivityEvent] = deque()
        self._processing = False
        self._task: asyncio.Task[None] | None = None
        self._inflight: asyncio.Future[None] | None = None
        self.delivered = 0
        self.failed = 0
        self.dropped = 0

    # ------------------------------------------------------------------
    # Public surface
    # ------------------------------------------------------------------

    @property
    def depth(self) -> int:
        return len(self._events)

    @property
    def is_processing(self) -> bool:
        return self._processing

    @property
    def limiter(self) -> SlidingWindowRateLimiter:
        return self._limiter

    def __len__(self) -> int:
        return len(self._events)

    def enqueue(self, event: ActivityEvent) -> None:
        """Append an event and make sure a drain loop is running."""
        self._events.append(event)
        if not self._processing:
            self._processing = True
            self._task = asyncio.get_running_loop().create_task(self._drain())

    async def wait_idle(self) -> None:
        """Wait until the current drain loop (if any) has emptied the queue."""
        while self._task is not None and not self._task.done():
            await asyncio.shield(self._task)

    async def close(self) -> None:
        """Stop draining. Events still queued are discarded.

        A delivery already in flight is left to finish or fail on its own;
        only the drain loop's waits are cancelled.
        """
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if self._events:
            log.info("delivery_queue_discarded", count=len(self._events))
            self._events.clear()
        inflight = self._inflight
        if inflight is not None and not inflight.done():
            await inflight

    # ------------------------------------------------------------------
    # Drain loop
    # ------------------------------------------------------------------

    async def _wait_for_slot(self) -> bool:
        """Back off until the limiter admits. False if streaming went off."""
        log.info(
            "rate_limit_reached",
            queue_depth=len(self._events),
            limit=self._limiter.limit,
        )
        while True:
            await self._sleep(self._backoff)
            if not self._is_enabled():
                return False
            if self._limiter.admit():
                return True

    async def _drain(self) -> None:
        try:
            while self._events:
                if not self._is_enabled():
                    dropped = self._events.popleft()
                    self.dropped += 1
                    log.debug("activity_dropped_stream_disabled", event_type=dropped.type)
                    continue

                if not self._limiter.admit() and not await self._wait_for_slot():
                    # Dropped at the top of the loop without taking a slot.
                    continue

                event = self._events.popleft()
                self._inflight = asyncio.ensure_future(self._deliver(event))
                await asyncio.shield(self._inflight)
                self._inflight = None
                await self._sleep(self._post_delay)
        finally:
            self._processing = False

    async def _deliver(self, event: ActivityEvent) -> None:
        try:
            ack = await self._sink.deliver(event)
        except DeliveryError as exc:
            self.failed += 1
            log.error(
                "activity_delivery_failed",
                event_type=event.type,
                error=str(exc),
                status=exc.status,
                body=exc.body,
            )
            return
        except Exception as exc:
            self.failed += 1
            log.exception("activity_delivery_crashed", event_type=event.type, error=str(exc))
            return
        self.delivered += 1
        log.info("activity_delivered", event_type=event.type, message_id=ack.message_id)
