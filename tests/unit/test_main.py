"""Unit tests for the entry point wiring."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from claw_activity.config import Settings
from claw_activity.delivery.sinks import DiscordWebhookSink, WebhookSink
from claw_activity.main import build_parser_sink, parser_main, relay_main
from claw_activity.sources.watcher import WatchError


def _settings(**overrides) -> Settings:
    defaults = {"_env_file": None}
    defaults.update(overrides)
    return Settings(**defaults)


class TestBuildParserSink:
    """Tests for choosing the parser's sink."""

    def test_relay_webhook_by_default(self, monkeypatch):
        monkeypatch.delenv("DISCORD_WEBHOOK_URL", raising=False)
        sink = build_parser_sink(_settings(webhook_url="http://relay/webhook", webhook_secret="s"))

        assert isinstance(sink, WebhookSink)
        assert sink.url == "http://relay/webhook"

    def test_discord_webhook_when_configured(self):
        sink = build_parser_sink(_settings(discord_webhook_url="https://discord.test/hook"))
        assert isinstance(sink, DiscordWebhookSink)


class TestRelayMain:
    """Tests for relay_main startup checks."""

    async def test_requires_a_discord_target(self, monkeypatch):
        for var in ("DISCORD_TOKEN", "ACTIVITY_CHANNEL_ID", "DISCORD_WEBHOOK_URL"):
            monkeypatch.delenv(var, raising=False)

        with (
            patch("claw_activity.main.setup_logging"),
            patch("claw_activity.main.get_settings", return_value=_settings()),
        ):
            with pytest.raises(SystemExit):
                await relay_main()


class TestParserMain:
    """Tests for parser_main wiring."""

    async def test_session_mode_watches_directory(self, tmp_path):
        settings = _settings(source_mode="session", sessions_dir=str(tmp_path))
        watcher = MagicMock()
        watcher.run = AsyncMock()

        with (
            patch("claw_activity.main.setup_logging"),
            patch("claw_activity.main.get_settings", return_value=settings),
            patch("claw_activity.main.SourceWatcher", return_value=watcher) as mock_cls,
        ):
            await parser_main()

        kwargs = mock_cls.call_args.kwargs
        assert kwargs["directory"] == str(tmp_path)
        watcher.run.assert_awaited_once()

    async def test_log_mode_failure_exits(self, tmp_path):
        settings = _settings(source_mode="log", log_path=str(tmp_path / "gateway.log"))
        watcher = MagicMock()
        watcher.run = AsyncMock(side_effect=WatchError("gone"))

        with (
            patch("claw_activity.main.setup_logging"),
            patch("claw_activity.main.get_settings", return_value=settings),
            patch("claw_activity.main.SourceWatcher", return_value=watcher) as mock_cls,
        ):
            with pytest.raises(SystemExit):
                await parser_main()

        kwargs = mock_cls.call_args.kwargs
        assert kwargs["files"] == [str(tmp_path / "gateway.log")]
        assert kwargs["fatal_errors"] is True
