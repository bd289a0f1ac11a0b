"""Unit tests for file tailing and the source watcher."""

from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from watchfiles import Change

from claw_activity.sources.watcher import FileTailer, SourceWatcher, WatchError, is_session_file


def _append(path: Path, text: str) -> None:
    with path.open("a", encoding="utf-8") as f:
        f.write(text)


class TestFileTailer:
    """Tests for FileTailer."""

    def test_existing_content_skipped(self, tmp_path):
        log = tmp_path / "gateway.log"
        log.write_text("old line\n")
        tailer = FileTailer(log)

        assert tailer.read_lines() == []
        _append(log, "new line\n")
        assert tailer.read_lines() == ["new line"]

    def test_from_start_reads_everything(self, tmp_path):
        log = tmp_path / "s.jsonl"
        log.write_text("one\ntwo\n")
        assert FileTailer(log, from_start=True).read_lines() == ["one", "two"]

    def test_partial_line_held_back(self, tmp_path):
        log = tmp_path / "gateway.log"
        log.write_text("")
        tailer = FileTailer(log)
        tailer.read_lines()

        _append(log, "par")
        assert tailer.read_lines() == []
        _append(log, "tial\nnext")
        assert tailer.read_lines() == ["partial"]
        _append(log, "\n")
        assert tailer.read_lines() == ["next"]

    def test_blank_lines_and_crlf(self, tmp_path):
        log = tmp_path / "gateway.log"
        log.write_text("")
        tailer = FileTailer(log)
        tailer.read_lines()

        _append(log, "a\r\n\n   \nb\n")
        assert tailer.read_lines() == ["a", "b"]

    def test_missing_file_then_created(self, tmp_path):
        log = tmp_path / "later.log"
        tailer = FileTailer(log)

        assert tailer.read_lines() == []
        assert tailer.is_open is False
        log.write_text("first\n")
        assert tailer.read_lines() == ["first"]

    def test_truncation_restarts_from_top(self, tmp_path):
        log = tmp_path / "gateway.log"
        log.write_text("aaaa\nbbbb\n")
        tailer = FileTailer(log)
        tailer.read_lines()

        log.write_text("c\n")
        assert tailer.read_lines() == ["c"]

    def test_rotation_drains_old_then_follows_new(self, tmp_path):
        log = tmp_path / "gateway.log"
        log.write_text("")
        tailer = FileTailer(log)
        tailer.read_lines()

        _append(log, "last\n")
        log.rename(tmp_path / "gateway.log.1")
        log.write_text("fresh\n")

        assert tailer.read_lines() == ["last", "fresh"]

    def test_deleted_file_drained_and_reopened(self, tmp_path):
        log = tmp_path / "gateway.log"
        log.write_text("")
        tailer = FileTailer(log)
        tailer.read_lines()

        _append(log, "bye\n")
        log.unlink()
        assert tailer.read_lines() == ["bye"]
        assert tailer.is_open is False

        log.write_text("again\n")
        assert tailer.read_lines() == ["again"]

    def test_unreadable_path_raises(self, tmp_path):
        # A directory cannot be opened as a file.
        with pytest.raises(WatchError):
            FileTailer(tmp_path).read_lines()


class TestIsSessionFile:
    """Tests for is_session_file."""

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("abc.jsonl", True),
            ("abc.deleted.2024.jsonl", False),
            ("abc.json", False),
            ("sessions.json", False),
        ],
    )
    def test_names(self, name, expected):
        assert is_session_file(Path(name)) is expected


class TestSourceWatcherSessions:
    """Tests for session directory mode."""

    async def test_new_session_file_read_from_start(self, tmp_path):
        lines = []
        watcher = SourceWatcher(lines.append, directory=tmp_path)
        watcher.start_tailers()

        session = tmp_path / "new.jsonl"
        session.write_text('{"type":"session"}\n')
        await watcher.handle_changes({(Change.added, str(session))})

        assert lines == ['{"type":"session"}']
        assert session.resolve() in watcher.tailed_paths

    async def test_existing_session_only_new_lines(self, tmp_path):
        session = tmp_path / "old.jsonl"
        session.write_text("history\n")
        lines = []
        watcher = SourceWatcher(lines.append, directory=tmp_path)
        watcher.start_tailers()

        _append(session, "live\n")
        await watcher.handle_changes({(Change.modified, str(session))})

        assert lines == ["live"]

    async def test_deleted_and_foreign_files_ignored(self, tmp_path):
        lines = []
        watcher = SourceWatcher(lines.append, directory=tmp_path)
        watcher.start_tailers()

        deleted = tmp_path / "x.deleted.1.jsonl"
        deleted.write_text("gone\n")
        other = tmp_path / "notes.txt"
        other.write_text("nope\n")
        await watcher.handle_changes(
            {(Change.added, str(deleted)), (Change.added, str(other))}
        )

        assert lines == []
        assert watcher.tailed_paths == []

    async def test_removed_session_file_forgotten(self, tmp_path):
        session = tmp_path / "abc.jsonl"
        session.write_text("")
        lines = []
        watcher = SourceWatcher(lines.append, directory=tmp_path)
        watcher.start_tailers()

        _append(session, "last words\n")
        marked = tmp_path / "abc.jsonl.deleted.2024-01-01"
        session.rename(marked)
        await watcher.handle_changes(
            {(Change.deleted, str(session)), (Change.added, str(marked))}
        )

        assert lines == ["last words"]
        assert watcher.tailed_paths == []

    async def test_configured_file_kept_after_delete(self, tmp_path):
        log = tmp_path / "gateway.log"
        log.write_text("")
        watcher = SourceWatcher(lambda line: None, files=[log])
        watcher.start_tailers()

        log.unlink()
        await watcher.handle_changes({(Change.deleted, str(log))})

        assert watcher.tailed_paths == [log.resolve()]

    def test_missing_directory_raises(self, tmp_path):
        watcher = SourceWatcher(lambda line: None, directory=tmp_path / "nope")
        with pytest.raises(WatchError):
            watcher.start_tailers()


class TestSourceWatcherFiles:
    """Tests for explicit file mode and error handling."""

    async def test_async_handler_awaited(self, tmp_path):
        log = tmp_path / "gateway.log"
        log.write_text("")
        handler = AsyncMock()
        watcher = SourceWatcher(handler, files=[log])
        watcher.start_tailers()

        _append(log, "hello\n")
        await watcher.handle_changes({(Change.modified, str(log))})

        handler.assert_awaited_once_with("hello")

    async def test_changes_to_other_files_ignored(self, tmp_path):
        log = tmp_path / "gateway.log"
        log.write_text("")
        lines = []
        watcher = SourceWatcher(lines.append, files=[log])
        watcher.start_tailers()

        await watcher.handle_changes({(Change.modified, str(tmp_path / "other.log"))})
        assert lines == []

    async def test_failure_drops_tailer(self, tmp_path):
        log = tmp_path / "gateway.log"
        log.write_text("")
        watcher = SourceWatcher(lambda line: None, files=[log])
        watcher.start_tailers()

        with patch.object(FileTailer, "read_lines", side_effect=WatchError("io")):
            await watcher.handle_changes({(Change.modified, str(log))})

        assert watcher.tailed_paths == []

    async def test_failure_is_fatal_when_requested(self, tmp_path):
        log = tmp_path / "gateway.log"
        log.write_text("")
        watcher = SourceWatcher(lambda line: None, files=[log], fatal_errors=True)
        watcher.start_tailers()

        with patch.object(FileTailer, "read_lines", side_effect=WatchError("io")):
            with pytest.raises(WatchError):
                await watcher.handle_changes({(Change.modified, str(log))})


class TestSourceWatcherRun:
    """Tests for run with the change stream patched out."""

    async def test_run_dispatches_batches(self, tmp_path):
        log = tmp_path / "gateway.log"
        log.write_text("")
        lines = []
        watcher = SourceWatcher(lines.append, files=[log])
        seen_kwargs = {}

        async def fake_awatch(*roots, **kwargs):
            seen_kwargs.update(kwargs, roots=roots)
            _append(log, "one\ntwo\n")
            yield {(Change.modified, str(log))}

        with patch("claw_activity.sources.watcher.awatch", fake_awatch):
            await watcher.run()

        assert lines == ["one", "two"]
        assert seen_kwargs["roots"] == (log.parent.resolve(),)
        assert seen_kwargs["recursive"] is False

    async def test_stop_sets_event(self, tmp_path):
        watcher = SourceWatcher(lambda line: None, files=[tmp_path / "a.log"])
        watcher.stop()
        assert watcher._stop_event.is_set()
