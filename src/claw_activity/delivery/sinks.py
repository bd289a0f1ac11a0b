"""Sink adapters that deliver one activity event to an external endpoint.

Sinks never retry. A failed delivery raises ``DeliveryError`` and the
caller decides what to do with the event (the delivery queue drops it).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

import discord
import httpx

from claw_activity.constants import WEBHOOK_SECRET_HEADER, WEBHOOK_TIMEOUT_SECONDS
from claw_activity.logging import get_logger

if TYPE_CHECKING:
    from claw_activity.formatting import ActivityFormatter
    from claw_activity.models import ActivityEvent

log = get_logger("claw_activity.delivery.sinks")

_MAX_ERROR_BODY = 500


class DeliveryError(Exception):
    """A delivery attempt failed (non-2xx response or transport error)."""

    def __init__(self, message: str, *, status: int | None = None, body: str | None = None):
        super().__init__(message)
        self.status = status
        self.body = body


@dataclass(frozen=True)
class DeliveryAck:
    """Successful delivery receipt."""

    message_id: str | None = None


class Sink(Protocol):
    """Anything that can deliver an activity event."""

    async def deliver(self, event: ActivityEvent) -> DeliveryAck: ...


async def _post_json(
    url: str,
    payload: dict[str, Any],
    headers: dict[str, str],
    timeout: float,
) -> httpx.Response:
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            resp = await client.post(url, json=payload, headers=headers)
    except httpx.RequestError as exc:
        raise DeliveryError(f"request to {url} failed: {exc}") from exc
    if not 200 <= resp.status_code < 300:
        body = resp.text[:_MAX_ERROR_BODY]
        raise DeliveryError(
            f"HTTP {resp.status_code}: {body}",
            status=resp.status_code,
            body=body,
        )
    return resp


class WebhookSink:
    """Posts the event's wire form to an activity webhook (e.g. the relay)."""

    def __init__(
        self,
        url: str,
        secret: str | None = None,
        timeout: float = WEBHOOK_TIMEOUT_SECONDS,
    ) -> None:
        self._url = url
        self._secret = secret
        self._timeout = timeout

    @property
    def url(self) -> str:
        return self._url

    async def deliver(self, event: ActivityEvent) -> DeliveryAck:
        headers = {"Content-Type": "application/json"}
        if self._secret:
            headers[WEBHOOK_SECRET_HEADER] = self._secret
        await _post_json(self._url, event.to_dict(), headers, self._timeout)
        log.debug("webhook_delivered", event_type=event.type, url=self._url)
        return DeliveryAck()


class DiscordWebhookSink:
    """Posts a rendered message to a Discord webhook URL."""

    def __init__(
        self,
        url: str,
        formatter: ActivityFormatter,
        timeout: float = WEBHOOK_TIMEOUT_SECONDS,
    ) -> None:
        self._url = url
        self._formatter = formatter
        self._timeout = timeout

    async def deliver(self, event: ActivityEvent) -> DeliveryAck:
        payload = self._formatter.render(event)
        await _post_json(
            self._url, payload, {"Content-Type": "application/json"}, self._timeout
        )
        return DeliveryAck()


class DiscordChannelSink:
    """Sends a rendered message to a channel through the bot's connection."""

    def __init__(
        self,
        client: discord.Client,
        channel_id: int,
        formatter: ActivityFormatter,
    ) -> None:
        self._client = client
        self._channel_id = channel_id
        self._formatter = formatter

    async def _resolve_channel(self) -> discord.abc.Messageable:
        channel = self._client.get_channel(self._channel_id)
        if channel is None:
            try:
                channel = await self._client.fetch_channel(self._channel_id)
            except discord.DiscordException as exc:
                raise DeliveryError(f"channel {self._channel_id} not reachable: {exc}") from exc
        if not isinstance(channel, discord.abc.Messageable):
            raise DeliveryError(f"channel {self._channel_id} cannot receive messages")
        return channel

    async def deliver(self, event: ActivityEvent) -> DeliveryAck:
        channel = await self._resolve_channel()
        payload = self._formatter.render(event)
        try:
            if "embeds" in payload:
                sent = await channel.send(
                    embeds=[discord.Embed.from_dict(e) for e in payload["embeds"]]
                )
            else:
                sent = await channel.send(payload["content"])
        except discord.HTTPException as exc:
            raise DeliveryError(
                f"Discord rejected message: {exc.text or exc}",
                status=exc.status,
                body=exc.text,
            ) from exc
        except discord.DiscordException as exc:
            raise DeliveryError(f"Discord send failed: {exc}") from exc
        return DeliveryAck(message_id=str(sent.id))
