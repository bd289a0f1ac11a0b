"""Relay HTTP server.

Accepts activity events on an inbound webhook, queues them for delivery
and reports health. Built on aiohttp so it shares the event loop with the
Discord client.

Endpoints:
    POST /webhook            - Submit an activity event
    POST /webhook/activity   - Same as /webhook
    GET  /health             - Health, queue depth and rate-limit usage
"""

from __future__ import annotations

import hmac
import json
from typing import TYPE_CHECKING

from aiohttp import web
from pydantic import ValidationError

from claw_activity.constants import WEBHOOK_SECRET_HEADER
from claw_activity.logging import get_logger
from claw_activity.models import event_from_dict

if TYPE_CHECKING:
    from claw_activity.state import StreamState

log = get_logger("claw_activity.server")


class AuthError(Exception):
    """Inbound request did not carry the shared webhook secret."""


class RelayServer:
    """aiohttp application that feeds inbound events into the stream state."""

    def __init__(self, state: StreamState, secret: str | None = None) -> None:
        self._state = state
        self._secret = secret
        self._runner: web.AppRunner | None = None

    def _check_auth(self, request: web.Request) -> None:
        """Verify the shared secret header.

        Raises:
            AuthError: If a secret is configured and the header does not match.
        """
        if not self._secret:
            return
        provided = request.headers.get(WEBHOOK_SECRET_HEADER, "")
        if not hmac.compare_digest(provided.encode(), self._secret.encode()):
            raise AuthError("webhook secret mismatch")

    def create_app(self) -> web.Application:
        """Create the aiohttp application."""
        app = web.Application()
        app.router.add_post("/webhook", self.handle_webhook)
        app.router.add_post("/webhook/activity", self.handle_webhook)
        app.router.add_get("/health", self.handle_health)
        return app

    async def handle_health(self, request: web.Request) -> web.Response:
        """Health check; never requires auth."""
        return web.json_response(self._state.snapshot())

    async def handle_webhook(self, request: web.Request) -> web.Response:
        """Validate and queue one activity event."""
        try:
            self._check_auth(request)
        except AuthError:
            log.warning("webhook_auth_failed", remote=request.remote, path=request.path)
            return web.json_response({"error": "Unauthorized"}, status=401)

        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return web.json_response({"error": "Invalid JSON body"}, status=400)

        try:
            event = event_from_dict(body)
        except ValidationError as exc:
            log.warning(
                "webhook_event_rejected",
                event_type=body.get("type") if isinstance(body, dict) else None,
                errors=exc.error_count(),
            )
            return web.json_response(
                {"error": "Invalid activity event", "detail": exc.errors(include_url=False)},
                status=400,
                dumps=lambda obj: json.dumps(obj, default=str),
            )

        log.debug("webhook_received", event_type=event.type)
        if not self._state.submit(event):
            return web.json_response({"ok": True, "status": "disabled"})
        return web.json_response(
            {"ok": True, "status": "queued", "queue_depth": self._state.queue.depth}
        )

    async def start(self, host: str = "0.0.0.0", port: int = 3000) -> None:
        """Start listening."""
        self._runner = web.AppRunner(self.create_app(), access_log=None)
        await self._runner.setup()
        site = web.TCPSite(self._runner, host, port)
        await site.start()
        log.info("relay_server_started", host=host, port=port)

    async def stop(self) -> None:
        """Stop listening and release the port."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            log.info("relay_server_stopped")
