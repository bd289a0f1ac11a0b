"""Shared utilities for Claw Activity Stream."""

from datetime import UTC, datetime

from claw_activity.constants import ELLIPSIS


def utc_now_iso() -> str:
    """Current UTC time as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso_timestamp(value: str) -> datetime | None:
    """Parse an ISO-8601 string, returning None when it is not one."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def truncate(text: object, max_length: int) -> str:
    """Cut ``text`` at ``max_length`` characters and append an ellipsis.

    Text that already fits is returned unchanged. ``None`` becomes an
    empty string; anything else is stringified first.
    """
    if text is None:
        return ""
    s = str(text)
    if len(s) <= max_length:
        return s
    return s[:max_length] + ELLIPSIS


def format_uptime(seconds: float) -> str:
    """Render a duration as ``"1h 2m 3s"``."""
    total = max(int(seconds), 0)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours}h {minutes}m {secs}s"
