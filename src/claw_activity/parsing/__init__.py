"""Parsers that turn raw log lines and session records into activity events."""

from claw_activity.parsing.log_lines import LINE_RULES, LineRule, parse_log_line
from claw_activity.parsing.session import ParseError, SessionRecordParser, parse_session_line

__all__ = [
    "LINE_RULES",
    "LineRule",
    "ParseError",
    "SessionRecordParser",
    "parse_log_line",
    "parse_session_line",
]
