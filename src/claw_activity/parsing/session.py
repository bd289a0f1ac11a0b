"""Structured session record parsing.

Session files are JSON Lines written by the agent runtime. Each record is
dispatched on its ``type`` and, for messages, on the message ``role``.
"""

from __future__ import annotations

import json
from collections import OrderedDict
from typing import Any

from claw_activity.constants import (
    TEXT_OUTPUT_MAX_CHARS,
    THINKING_MAX_CHARS,
    TOOL_CALL_MEMORY_SIZE,
    USER_MESSAGE_MAX_CHARS,
)
from claw_activity.models import (
    ActivityEvent,
    InfoEvent,
    TextOutputEvent,
    ThinkingEvent,
    ToolCallEvent,
    ToolResultEvent,
    UserMessageEvent,
)
from claw_activity.utils import parse_iso_timestamp, truncate, utc_now_iso

UNKNOWN_TOOL_NAME = "tool_result"


class ParseError(ValueError):
    """Raised when a session line is not a JSON object."""


def _first_segment(content: list[Any], segment_type: str, key: str) -> dict[str, Any] | None:
    for segment in content:
        if isinstance(segment, dict) and segment.get("type") == segment_type and segment.get(key):
            return segment
    return None


def _stringify_result(content: Any) -> str:
    """Flatten tool result content into plain text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        texts = [
            str(seg.get("text", ""))
            for seg in content
            if isinstance(seg, dict) and seg.get("type") == "text"
        ]
        if texts:
            return "\n".join(texts)
    if content is None:
        return ""
    return json.dumps(content, ensure_ascii=False)


class SessionRecordParser:
    """Parses session lines into activity events.

    The parser remembers the names of recent tool calls so that a later
    tool result can be labelled with the tool that produced it.
    """

    def __init__(self, memory_size: int = TOOL_CALL_MEMORY_SIZE) -> None:
        self._memory_size = memory_size
        self._tool_names: OrderedDict[str, str] = OrderedDict()

    def parse(self, line: str, *, now: str | None = None) -> ActivityEvent | None:
        """Parse one session line.

        Raises:
            ParseError: If the line is not valid JSON or not a JSON object.
        """
        try:
            record = json.loads(line)
        except json.JSONDecodeError as e:
            raise ParseError(f"invalid JSON: {e.msg}") from e
        if not isinstance(record, dict):
            raise ParseError(f"expected a JSON object, got {type(record).__name__}")

        raw_ts = record.get("timestamp")
        if isinstance(raw_ts, str) and parse_iso_timestamp(raw_ts) is not None:
            timestamp = raw_ts
        else:
            timestamp = now or utc_now_iso()

        record_type = record.get("type")
        if record_type == "message" and isinstance(record.get("message"), dict):
            return self._parse_message(record["message"], timestamp)
        if record_type == "custom":
            return self._parse_custom(record, timestamp)
        if record_type == "session":
            return InfoEvent(message="Session updated", timestamp=timestamp)
        if record_type == "model_change":
            return InfoEvent(message=f"Model changed to {record.get('model')}", timestamp=timestamp)
        return None

    # ------------------------------------------------------------------
    # Message records
    # ------------------------------------------------------------------

    def _parse_message(self, msg: dict[str, Any], timestamp: str) -> ActivityEvent | None:
        role = msg.get("role")
        content = msg.get("content")

        if role == "tool":
            return self._parse_tool_result(msg, timestamp)

        if not isinstance(content, list):
            return None

        if role == "assistant":
            thinking = _first_segment(content, "thinking", "thinking")
            if thinking is not None:
                return ThinkingEvent(
                    reasoning=truncate(thinking["thinking"], THINKING_MAX_CHARS),
                    timestamp=timestamp,
                )

            # Only the first tool call of a record is emitted.
            tool_calls = [
                seg
                for seg in content
                if isinstance(seg, dict)
                and seg.get("type") == "tool_use"
                and seg.get("name")
                and seg.get("id")
            ]
            if tool_calls:
                for call in tool_calls:
                    self._remember_tool(str(call["id"]), str(call["name"]))
                first = tool_calls[0]
                return ToolCallEvent(
                    tool=str(first["name"]),
                    args=first.get("input"),
                    tool_call_id=str(first["id"]),
                    timestamp=timestamp,
                )

            text = _first_segment(content, "text", "text")
            if text is not None:
                return TextOutputEvent(
                    message=truncate(text["text"], TEXT_OUTPUT_MAX_CHARS),
                    timestamp=timestamp,
                )
            return None

        if role == "user":
            text = _first_segment(content, "text", "text")
            if text is not None:
                return UserMessageEvent(
                    message=truncate(text["text"], USER_MESSAGE_MAX_CHARS),
                    timestamp=timestamp,
                )
        return None

    def _parse_tool_result(self, msg: dict[str, Any], timestamp: str) -> ActivityEvent:
        result = _stringify_result(msg.get("content"))
        tool_use_id = msg.get("tool_use_id")
        tool = self._tool_names.get(str(tool_use_id), UNKNOWN_TOOL_NAME)
        # Best-effort: the record carries no reliable status field.
        success = "error" not in result.lower()
        return ToolResultEvent(tool=tool, result=result, success=success, timestamp=timestamp)

    def _remember_tool(self, tool_call_id: str, name: str) -> None:
        self._tool_names[tool_call_id] = name
        self._tool_names.move_to_end(tool_call_id)
        while len(self._tool_names) > self._memory_size:
            self._tool_names.popitem(last=False)

    # ------------------------------------------------------------------
    # Custom records
    # ------------------------------------------------------------------

    def _parse_custom(self, record: dict[str, Any], timestamp: str) -> ActivityEvent | None:
        if record.get("customType") != "model-snapshot":
            return None
        data = record.get("data")
        if not isinstance(data, dict):
            data = {}
        usage = data.get("usage")
        if not isinstance(usage, dict):
            usage = {}
        return InfoEvent(
            message="Model usage snapshot",
            metadata={"model": data.get("model"), "tokens": usage.get("totalTokens")},
            timestamp=timestamp,
        )


def parse_session_line(line: str, *, now: str | None = None) -> ActivityEvent | None:
    """Parse a single session line without tool-name tracking."""
    return SessionRecordParser().parse(line, now=now)
