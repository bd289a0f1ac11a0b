"""Unit tests for structlog setup in claw_activity.logging."""

import logging
from logging.handlers import RotatingFileHandler
from unittest.mock import MagicMock, patch

import pytest
import structlog

from claw_activity.logging import get_logger, setup_logging


@pytest.fixture(autouse=True)
def _reset_root_logger():
    """Reset root logger state before and after each test."""
    saved_handlers = logging.root.handlers[:]
    saved_level = logging.root.level
    logging.root.handlers.clear()
    logging.root.setLevel(logging.WARNING)
    yield
    logging.root.handlers.clear()
    logging.root.handlers.extend(saved_handlers)
    logging.root.setLevel(saved_level)


def _settings(level="INFO", development=False, log_dir=None, error_file=False) -> MagicMock:
    settings = MagicMock()
    settings.log_level = level
    settings.is_development = development
    settings.log_to_file = log_dir is not None
    if log_dir is not None:
        settings.log_directory = str(log_dir)
        settings.log_file_path = str(log_dir / "claw_activity.log")
        settings.error_log_file_path = str(log_dir / "claw_activity_error.log")
        settings.log_file_max_bytes = 1048576
        settings.log_file_backup_count = 3
        settings.log_error_file_enabled = error_file
    return settings


def _file_handlers() -> list[RotatingFileHandler]:
    return [h for h in logging.root.handlers if isinstance(h, RotatingFileHandler)]


class TestSetupLogging:
    """Tests for console configuration."""

    @pytest.mark.parametrize(
        ("level", "expected"),
        [("DEBUG", logging.DEBUG), ("warning", logging.WARNING), ("NONEXISTENT", logging.INFO)],
    )
    def test_basic_config_level(self, level, expected):
        with patch("claw_activity.logging.get_settings", return_value=_settings(level)):
            with patch("claw_activity.logging.logging.basicConfig") as mock_basic:
                setup_logging()

        mock_basic.assert_called_once_with(format="%(message)s", level=expected, handlers=[])

    def test_console_handler_uses_processor_formatter(self):
        with patch("claw_activity.logging.get_settings", return_value=_settings()):
            setup_logging()

        console = [h for h in logging.root.handlers if type(h) is logging.StreamHandler]
        assert len(console) == 1
        assert isinstance(console[0].formatter, structlog.stdlib.ProcessorFormatter)

    def test_configures_structlog(self):
        with patch("claw_activity.logging.get_settings", return_value=_settings()):
            with patch("claw_activity.logging.structlog.configure") as mock_configure:
                setup_logging()

        kwargs = mock_configure.call_args.kwargs
        assert kwargs["context_class"] is dict
        assert kwargs["cache_logger_on_first_use"] is True

    def test_development_uses_console_renderer(self):
        with patch(
            "claw_activity.logging.get_settings", return_value=_settings(development=True)
        ):
            with patch("claw_activity.logging.structlog.dev.ConsoleRenderer") as mock_renderer:
                setup_logging()

        mock_renderer.assert_called_once_with(colors=True)

    def test_production_uses_json_renderer(self, tmp_path):
        with patch(
            "claw_activity.logging.get_settings", return_value=_settings(log_dir=tmp_path)
        ):
            with patch("claw_activity.logging.structlog.processors.JSONRenderer") as mock_renderer:
                setup_logging()

        # Console and file formatters.
        assert mock_renderer.call_count == 2

    def test_repeated_setup_does_not_duplicate_handlers(self, tmp_path):
        foreign = logging.NullHandler()
        logging.root.addHandler(foreign)
        settings = _settings(log_dir=tmp_path, error_file=True)
        with patch("claw_activity.logging.get_settings", return_value=settings):
            setup_logging()
            setup_logging()

        console = [h for h in logging.root.handlers if type(h) is logging.StreamHandler]
        assert len(console) == 1
        assert len(_file_handlers()) == 2
        assert foreign in logging.root.handlers

    @pytest.mark.parametrize("name", ["discord", "httpx", "aiohttp.access", "watchfiles"])
    def test_noisy_loggers_quietened(self, name):
        with patch("claw_activity.logging.get_settings", return_value=_settings("DEBUG")):
            setup_logging()

        assert logging.getLogger(name).level == logging.WARNING


class TestFileLogging:
    """Tests for rotating file handlers."""

    def test_no_file_handler_by_default(self):
        with patch("claw_activity.logging.get_settings", return_value=_settings()):
            setup_logging()

        assert _file_handlers() == []

    def test_creates_directory_and_handler(self, tmp_path):
        log_dir = tmp_path / "new_logs"
        with patch("claw_activity.logging.get_settings", return_value=_settings(log_dir=log_dir)):
            setup_logging()

        assert log_dir.is_dir()
        handlers = _file_handlers()
        assert len(handlers) == 1
        assert handlers[0].maxBytes == 1048576
        assert handlers[0].backupCount == 3

    def test_error_file_handler_at_warning(self, tmp_path):
        settings = _settings(log_dir=tmp_path, error_file=True)
        with patch("claw_activity.logging.get_settings", return_value=settings):
            setup_logging()

        handlers = _file_handlers()
        assert len(handlers) == 2
        assert [h.level for h in handlers].count(logging.WARNING) == 1

    def test_directory_failure_disables_file_logging(self, tmp_path):
        settings = _settings(log_dir=tmp_path / "denied")
        with patch("claw_activity.logging.get_settings", return_value=settings):
            with patch("claw_activity.logging.Path.mkdir", side_effect=PermissionError("denied")):
                setup_logging()

        assert settings.log_to_file is False
        assert _file_handlers() == []

    def test_handler_failure_is_not_fatal(self, tmp_path):
        with patch("claw_activity.logging.get_settings", return_value=_settings(log_dir=tmp_path)):
            with patch(
                "claw_activity.logging.RotatingFileHandler",
                side_effect=PermissionError("cannot write"),
            ):
                setup_logging()

        assert _file_handlers() == []


class TestGetLogger:
    """Tests for get_logger and rendered output."""

    def test_returns_logger(self):
        assert get_logger("claw_activity.test") is not None

    def test_event_rendered_as_json(self, capsys):
        with patch("claw_activity.logging.get_settings", return_value=_settings()):
            setup_logging()

        get_logger("claw_activity.test").info("activity_delivered", event_type="info")

        out = capsys.readouterr().out
        assert '"event": "activity_delivered"' in out
        assert '"event_type": "info"' in out
