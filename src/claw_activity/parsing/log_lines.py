"""Free-text gateway log line parsing.

Each rule pairs a regex with a builder that maps the match to an activity
event. Rules are tried in order and the first match wins, so a line that
fits two patterns is always classified by the earlier rule.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass

from claw_activity.constants import RAW_LINE_MAX_CHARS, SESSION_LINE_MAX_CHARS
from claw_activity.models import ActivityEvent, ErrorEvent, InfoEvent, ProcessEvent, ToolCallEvent
from claw_activity.utils import truncate, utc_now_iso

_TIMESTAMP_PREFIX = re.compile(r"^(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z)")
_FAILED_TOOL_NAME = re.compile(r'tool "(\w+)"')


@dataclass(frozen=True)
class LineRule:
    """One ordered pattern rule.

    ``guard`` is an extra predicate on the whole line; the rule only
    matches when the pattern matches and the guard (if any) passes.
    """

    name: str
    pattern: re.Pattern[str]
    build: Callable[[re.Match[str], str, str], ActivityEvent]
    guard: Callable[[str], bool] | None = None

    def match(self, line: str) -> re.Match[str] | None:
        if self.guard is not None and not self.guard(line):
            return None
        return self.pattern.search(line)


# ---------------------------------------------------------------------------
# Builders: (match, line, timestamp) -> event
# ---------------------------------------------------------------------------


def _discord_message(m: re.Match[str], line: str, ts: str) -> ActivityEvent:
    return ProcessEvent(
        message=f"Discord {m.group(2)} event",
        metadata={"duration": f"{float(m.group(1)):.2f}s", "event": m.group(2)},
        timestamp=ts,
    )


def _tool_call(m: re.Match[str], line: str, ts: str) -> ActivityEvent:
    return ToolCallEvent(tool=m.group(1), result={"status": "completed"}, timestamp=ts)


def _tool_failed(m: re.Match[str], line: str, ts: str) -> ActivityEvent:
    name = _FAILED_TOOL_NAME.search(line)
    return ErrorEvent(
        tool=name.group(1) if name else "unknown",
        error="Tool execution failed",
        metadata={"raw": truncate(line, RAW_LINE_MAX_CHARS)},
        timestamp=ts,
    )


def _agent_wait(m: re.Match[str], line: str, ts: str) -> ActivityEvent:
    return ProcessEvent(
        message="Agent wait time",
        metadata={"wait_time": f"{m.group(1)}ms"},
        timestamp=ts,
    )


def _session_memory(m: re.Match[str], line: str, ts: str) -> ActivityEvent:
    return InfoEvent(message="Session memory hook triggered", timestamp=ts)


def _gateway_restart(m: re.Match[str], line: str, ts: str) -> ActivityEvent:
    return ProcessEvent(message="Gateway restart requested", timestamp=ts)


def _slow_listener(m: re.Match[str], line: str, ts: str) -> ActivityEvent:
    listener, duration, event = m.group(1), float(m.group(2)), m.group(3)
    return ProcessEvent(
        message=f"Slow {listener}",
        metadata={"listener": listener, "event": event, "duration": f"{duration:.0f}ms"},
        timestamp=ts,
    )


def _lane_error(m: re.Match[str], line: str, ts: str) -> ActivityEvent:
    return ErrorEvent(
        error="Lane task error",
        metadata={"raw": truncate(line, RAW_LINE_MAX_CHARS)},
        timestamp=ts,
    )


def _nested_agent(m: re.Match[str], line: str, ts: str) -> ActivityEvent:
    return ProcessEvent(
        message="Nested agent session",
        metadata={"session": truncate(line, SESSION_LINE_MAX_CHARS)},
        timestamp=ts,
    )


# Order matters: earlier rules shadow later ones.
LINE_RULES: tuple[LineRule, ...] = (
    LineRule(
        "discord_message",
        re.compile(r"DiscordMessageListener took (\d+\.?\d*) seconds for event (\w+)"),
        _discord_message,
    ),
    LineRule(
        "tool_call",
        re.compile(r"\[tools\] (\w+)(?: started| completed| failed)", re.IGNORECASE),
        _tool_call,
        guard=lambda line: "failed" not in line,
    ),
    LineRule("tool_failed", re.compile(r"\[tools\] exec failed:", re.IGNORECASE), _tool_failed),
    LineRule("agent_wait", re.compile(r"agent\.wait (\d+)ms", re.IGNORECASE), _agent_wait),
    LineRule(
        "session_memory",
        re.compile(r"\[session-memory\] Hook triggered", re.IGNORECASE),
        _session_memory,
    ),
    LineRule(
        "gateway_restart",
        re.compile(r"gateway tool: restart requested", re.IGNORECASE),
        _gateway_restart,
    ),
    LineRule(
        "slow_listener",
        re.compile(r"Slow listener detected: (\w+) took (\d+\.?\d*)ms for event (\w+)"),
        _slow_listener,
    ),
    LineRule("lane_error", re.compile(r"lane task error:", re.IGNORECASE), _lane_error),
    LineRule(
        "nested_agent",
        re.compile(r"\[agent:nested\] session=", re.IGNORECASE),
        _nested_agent,
    ),
)


def extract_timestamp(line: str, now: str | None = None) -> str:
    """Leading ISO timestamp of ``line``, else ``now`` (default: current time)."""
    match = _TIMESTAMP_PREFIX.match(line)
    if match:
        return match.group(1)
    return now or utc_now_iso()


def match_rule(line: str, rules: tuple[LineRule, ...] = LINE_RULES) -> LineRule | None:
    """Return the first rule that matches ``line``."""
    for rule in rules:
        if rule.match(line):
            return rule
    return None


def parse_log_line(
    line: str,
    *,
    now: str | None = None,
    rules: tuple[LineRule, ...] = LINE_RULES,
) -> ActivityEvent | None:
    """Turn one gateway log line into an activity event.

    Args:
        line: Raw log line, with or without its trailing newline.
        now: Timestamp to use when the line carries none.
        rules: Ordered rules to try.

    Returns:
        The event built by the first matching rule, or None when no rule
        matches (the common case).
    """
    line = line.rstrip("\r\n")
    if not line.strip():
        return None

    for rule in rules:
        match = rule.match(line)
        if match is not None:
            return rule.build(match, line, extract_timestamp(line, now))
    return None
