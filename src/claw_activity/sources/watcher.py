"""Tailing of append-only log and session files.

``FileTailer`` follows one file the way ``tail -F -n 0`` does: it starts
at the end, survives truncation and rotation, and only ever hands out
complete, newline-terminated lines.

``SourceWatcher`` drives any number of tailers from filesystem change
notifications (watchfiles) and, in session mode, starts tailing new
``.jsonl`` files as they appear in the sessions directory.
"""

from __future__ import annotations

import asyncio
import inspect
import os
from collections.abc import Awaitable, Callable, Iterable
from pathlib import Path
from typing import BinaryIO

from watchfiles import Change, awatch

from claw_activity.constants import DELETED_SESSION_MARKER, SESSION_FILE_SUFFIX
from claw_activity.logging import get_logger

log = get_logger("claw_activity.sources.watcher")

LineHandler = Callable[[str], Awaitable[None] | None]


class WatchError(OSError):
    """A tailed file could not be read."""


class FileTailer:
    """Reads lines appended to one file."""

    def __init__(self, path: str | Path, *, from_start: bool = False) -> None:
        self.path = Path(path)
        self._start_at_end = not from_start
        self._handle: BinaryIO | None = None
        self._inode: int | None = None
        self._offset = 0
        self._partial = b""

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    def _open(self) -> bool:
        try:
            handle = self.path.open("rb")
        except FileNotFoundError:
            # Anything written once the file shows up is new.
            self._start_at_end = False
            return False
        except OSError as exc:
            raise WatchError(f"cannot open {self.path}: {exc}") from exc

        self._handle = handle
        self._inode = os.fstat(handle.fileno()).st_ino
        self._partial = b""
        if self._start_at_end:
            self._offset = handle.seek(0, os.SEEK_END)
        else:
            self._offset = 0
        # Only the very first open skips existing content.
        self._start_at_end = False
        return True

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None
        self._partial = b""

    def _read_available(self) -> list[str]:
        if self._handle is None:
            return []
        try:
            data = self._handle.read()
        except OSError as exc:
            raise WatchError(f"cannot read {self.path}: {exc}") from exc
        if not data:
            return []
        self._offset += len(data)
        *complete, self._partial = (self._partial + data).split(b"\n")
        lines = []
        for raw in complete:
            line = raw.decode("utf-8", errors="replace").rstrip("\r")
            if line.strip():
                lines.append(line)
        return lines

    def read_lines(self) -> list[str]:
        """Return the complete lines appended since the previous call.

        Raises:
            WatchError: If the file exists but cannot be opened or read.
        """
        if self._handle is None and not self._open():
            return []

        try:
            st = os.stat(self.path)
        except FileNotFoundError:
            # Rotated away: finish the old handle, then wait for a new file.
            lines = self._read_available()
            self.close()
            return lines
        except OSError as exc:
            raise WatchError(f"cannot stat {self.path}: {exc}") from exc

        if st.st_ino != self._inode:
            lines = self._read_available()
            self.close()
            if self._open():
                lines.extend(self._read_available())
            return lines

        if st.st_size < self._offset and self._handle is not None:
            log.info("source_file_truncated", path=str(self.path))
            self._handle.seek(0)
            self._offset = 0
            self._partial = b""

        return self._read_available()


def is_session_file(path: Path) -> bool:
    """Active session files: ``*.jsonl`` that are not marked deleted."""
    return path.name.endswith(SESSION_FILE_SUFFIX) and DELETED_SESSION_MARKER not in path.name


class SourceWatcher:
    """Tails a set of files and forwards each new line to ``on_line``.

    A tailer that fails is logged and dropped without affecting the
    others, unless ``fatal_errors`` is set, in which case the failure ends
    ``run``.
    """

    def __init__(
        self,
        on_line: LineHandler,
        *,
        files: Iterable[str | Path] = (),
        directory: str | Path | None = None,
        fatal_errors: bool = False,
        force_polling: bool = False,
    ) -> None:
        self._on_line = on_line
        self._files = [Path(f).expanduser().resolve() for f in files]
        self._directory = Path(directory).expanduser().resolve() if directory else None
        self._fatal_errors = fatal_errors
        self._force_polling = force_polling
        self._tailers: dict[Path, FileTailer] = {}
        self._stop_event = asyncio.Event()

    @property
    def tailed_paths(self) -> list[Path]:
        return sorted(self._tailers)

    def stop(self) -> None:
        """Ask ``run`` to return after the current batch of changes."""
        self._stop_event.set()

    def _watch_roots(self) -> list[Path]:
        roots = {f.parent for f in self._files}
        if self._directory is not None:
            roots.add(self._directory)
        return sorted(roots)

    def add_file(self, path: Path, *, from_start: bool = False) -> FileTailer:
        """Start tailing ``path`` (no-op if already tailed)."""
        path = path.resolve()
        tailer = self._tailers.get(path)
        if tailer is None:
            tailer = FileTailer(path, from_start=from_start)
            self._tailers[path] = tailer
        return tailer

    def _remove(self, tailer: FileTailer) -> None:
        tailer.close()
        self._tailers.pop(tailer.path, None)

    def start_tailers(self) -> None:
        """Create tailers for the configured files and existing session files.

        Existing content is skipped; only lines written from now on count.

        Raises:
            WatchError: If the sessions directory does not exist.
        """
        for path in self._files:
            self.add_file(path)
        if self._directory is not None:
            if not self._directory.is_dir():
                raise WatchError(f"sessions directory not found: {self._directory}")
            for path in sorted(self._directory.iterdir()):
                if is_session_file(path):
                    self.add_file(path)
            if not self._tailers:
                log.warning("no_session_files_yet", directory=str(self._directory))

        # Open now so that the end-of-file position is taken at startup.
        for tailer in list(self._tailers.values()):
            try:
                tailer.read_lines()
            except WatchError as exc:
                self._fail(tailer, exc)

    def _fail(self, tailer: FileTailer, exc: WatchError) -> None:
        log.error("source_watch_failed", path=str(tailer.path), error=str(exc))
        self._remove(tailer)
        if self._fatal_errors:
            raise exc

    async def drain(self, tailer: FileTailer) -> None:
        """Forward whatever complete lines ``tailer`` has."""
        try:
            lines = await asyncio.to_thread(tailer.read_lines)
        except WatchError as exc:
            self._fail(tailer, exc)
            return
        for line in lines:
            result = self._on_line(line)
            if inspect.isawaitable(result):
                await result

    async def handle_changes(self, changes: Iterable[tuple[Change, str]]) -> None:
        """Dispatch one batch of filesystem changes to the tailers."""
        touched: dict[Path, FileTailer] = {}
        deleted: set[Path] = set()
        for change, raw_path in changes:
            path = Path(raw_path).resolve()
            if (
                change == Change.added
                and self._directory is not None
                and path.parent == self._directory
                and is_session_file(path)
                and path not in self._tailers
            ):
                log.info("new_source_file", path=str(path))
                self.add_file(path, from_start=True)
            elif change == Change.deleted:
                deleted.add(path)
            tailer = self._tailers.get(path)
            if tailer is not None:
                touched[path] = tailer

        for path in sorted(touched):
            if path in self._tailers:
                await self.drain(touched[path])

        # Session files come and go; configured files are waited for.
        for path in deleted:
            tailer = self._tailers.get(path)
            if tailer is not None and path not in self._files and not path.exists():
                log.info("source_file_removed", path=str(path))
                self._remove(tailer)

    async def run(self) -> None:
        """Tail until ``stop`` is called.

        Raises:
            WatchError: On startup failure, or on any tailer failure when
                ``fatal_errors`` is set.
        """
        self.start_tailers()
        roots = self._watch_roots()
        log.info(
            "source_watcher_started",
            roots=[str(r) for r in roots],
            files=len(self._tailers),
        )
        try:
            async for changes in awatch(
                *roots,
                stop_event=self._stop_event,
                watch_filter=None,
                recursive=False,
                force_polling=self._force_polling,
            ):
                await self.handle_changes(changes)
        finally:
            for tailer in list(self._tailers.values()):
                tailer.close()
            log.info("source_watcher_stopped")
