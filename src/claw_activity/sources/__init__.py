"""Sources of raw activity: tailed log and session files."""

from claw_activity.sources.watcher import FileTailer, SourceWatcher, WatchError

__all__ = ["FileTailer", "SourceWatcher", "WatchError"]
