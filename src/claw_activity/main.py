"""Entry points for Claw Activity Stream.

``claw-activity-relay`` runs the inbound webhook and streams events into
Discord. ``claw-activity-parser`` tails the agent runtime's log or session
files and posts the activity it finds.
"""

import asyncio
import contextlib
import signal

from claw_activity.config import Settings, get_settings
from claw_activity.delivery.queue import DeliveryQueue
from claw_activity.delivery.rate_limiter import SlidingWindowRateLimiter
from claw_activity.delivery.sinks import DiscordWebhookSink, Sink, WebhookSink
from claw_activity.discord.bot import ActivityStreamBot
from claw_activity.formatting import ActivityFormatter
from claw_activity.logging import get_logger, setup_logging
from claw_activity.pipeline import ActivityPipeline
from claw_activity.server import RelayServer
from claw_activity.sources.watcher import SourceWatcher, WatchError
from claw_activity.state import StreamState


def _install_stop_handlers(stop: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)


def build_parser_sink(settings: Settings) -> Sink:
    """Where the parser sends events: a Discord webhook if set, else the relay."""
    if settings.discord_webhook_url:
        return DiscordWebhookSink(
            settings.discord_webhook_url, ActivityFormatter(settings.message_style)
        )
    return WebhookSink(settings.webhook_url, secret=settings.secret)


async def relay_main() -> None:
    """Run the webhook relay and the Discord bot until interrupted."""
    setup_logging()
    log = get_logger("claw_activity.main")
    settings = get_settings()

    formatter = ActivityFormatter(settings.message_style)
    limiter = SlidingWindowRateLimiter(limit=settings.rate_limit_per_minute)
    bot: ActivityStreamBot | None = None

    if settings.discord_token is not None and settings.activity_channel_id is not None:
        bot = ActivityStreamBot(
            channel_id=settings.activity_channel_id,
            formatter=formatter,
            admin_user_id=settings.admin_user_id,
            guild_id=settings.guild_id,
        )
        sink: Sink = bot.sink
    elif settings.discord_webhook_url:
        sink = DiscordWebhookSink(settings.discord_webhook_url, formatter)
    else:
        log.error("no_discord_target_configured")
        raise SystemExit(
            "Set DISCORD_TOKEN and ACTIVITY_CHANNEL_ID, or DISCORD_WEBHOOK_URL"
        )

    state = StreamState(
        sink,
        limiter,
        post_delay=settings.post_delay_seconds,
        backoff=settings.backoff_seconds,
    )
    if bot is not None:
        bot.attach_state(state)

    server = RelayServer(state, secret=settings.secret)
    await server.start(settings.host, settings.port)
    log.info(
        "relay_started",
        port=settings.port,
        target="discord_bot" if bot else "discord_webhook",
        rate_limit=settings.rate_limit_per_minute,
        auth=bool(settings.secret),
    )

    stop = asyncio.Event()
    _install_stop_handlers(stop)
    bot_task: asyncio.Task[None] | None = None
    if bot is not None:
        assert settings.discord_token is not None
        bot_task = asyncio.create_task(bot.start(settings.discord_token.get_secret_value()))
        bot_task.add_done_callback(lambda _: stop.set())

    try:
        await stop.wait()
        log.info("shutdown_requested")
    finally:
        await server.stop()
        await state.queue.close()
        if bot is not None:
            await bot.close()
        if bot_task is not None and bot_task.done() and not bot_task.cancelled():
            exc = bot_task.exception()
            if exc is not None:
                log.error("bot_stopped_with_error", error=str(exc))
        log.info("relay_stopped")


async def parser_main() -> None:
    """Tail the configured source and forward its activity until interrupted."""
    setup_logging()
    log = get_logger("claw_activity.main")
    settings = get_settings()

    queue = DeliveryQueue(
        build_parser_sink(settings),
        SlidingWindowRateLimiter(limit=settings.rate_limit_per_minute),
        post_delay=settings.post_delay_seconds,
        backoff=settings.backoff_seconds,
    )
    pipeline = ActivityPipeline(queue, mode=settings.source_mode)

    if settings.source_mode == "session":
        watcher = SourceWatcher(
            pipeline.handle_line,
            directory=settings.sessions_dir,
            force_polling=settings.force_polling,
        )
        source = settings.sessions_dir
    else:
        watcher = SourceWatcher(
            pipeline.handle_line,
            files=[settings.log_path],
            fatal_errors=True,
            force_polling=settings.force_polling,
        )
        source = settings.log_path

    log.info(
        "parser_started",
        mode=settings.source_mode,
        source=source,
        target="discord_webhook" if settings.discord_webhook_url else settings.webhook_url,
    )

    stop = asyncio.Event()
    _install_stop_handlers(stop)
    stop_task = asyncio.create_task(stop.wait())
    stop_task.add_done_callback(lambda _: watcher.stop())

    try:
        await watcher.run()
    except WatchError as e:
        log.error("parser_source_failed", error=str(e))
        raise SystemExit(1) from e
    finally:
        stop_task.cancel()
        await queue.close()
        log.info(
            "parser_stopped",
            lines=pipeline.lines_seen,
            events=pipeline.events_queued,
            delivered=queue.delivered,
            failed=queue.failed,
        )


def run_relay() -> None:
    """Run the relay."""
    asyncio.run(relay_main())


def run_parser() -> None:
    """Run the parser."""
    asyncio.run(parser_main())


if __name__ == "__main__":
    run_relay()
