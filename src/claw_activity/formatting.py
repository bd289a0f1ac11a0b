"""Rendering of activity events into Discord messages.

One formatter covers both presentation styles:

- ``compact``: a single icon-coded text line per event (audit style).
- ``embed``: a Discord embed with a coloured title, description and an
  optional metadata field.

Each style is a mapping from event type to a render function, so adding
a type or tweaking one layout touches a single entry.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from datetime import tzinfo
from typing import Any, Literal

from claw_activity.constants import EMBED_FOOTER_TEXT, MAX_DISCORD_MESSAGE_LENGTH
from claw_activity.models import ActivityEvent, EventType
from claw_activity.utils import parse_iso_timestamp, truncate

MessageStyle = Literal["compact", "embed"]

DEFAULT_ICON = "📡"

TYPE_ICONS: dict[str, str] = {
    EventType.TOOL_CALL: "🔧",
    EventType.TOOL_RESULT: "✓",
    EventType.ERROR: "❌",
    EventType.INFO: "ℹ️",
    EventType.PROCESS: "⚙️",
    EventType.THINKING: "💭",
    EventType.TEXT_OUTPUT: "💬",
    EventType.USER_MESSAGE: "📨",
}

TOOL_ICONS: dict[str, str] = {
    # File operations
    "read": "📂",
    "write": "💾",
    "edit": "✏️",
    # Web
    "web_search": "🔎",
    "web_fetch": "🌐",
    "browser": "🖥️",
    # Memory
    "memory_search": "🧠",
    "memory_get": "🧠",
    # Sessions
    "sessions_list": "📡",
    "sessions_spawn": "📡",
    "sessions_send": "📡",
    "sessions_history": "📡",
    # Messaging
    "message": "💬",
    "send": "💬",
    "react": "💬",
    "delete": "💬",
    # Other
    "exec": "⚡",
    "cron": "🔧",
    "tts": "🔊",
}

DEFAULT_COLOR = 0x34495E

TYPE_COLORS: dict[str, int] = {
    EventType.TOOL_CALL: 0x3498DB,
    EventType.TOOL_RESULT: 0x57F287,
    EventType.ERROR: 0xE74C3C,
    EventType.INFO: 0x95A5A6,
    EventType.PROCESS: 0x1ABC9C,
    EventType.THINKING: 0x9B59B6,
    EventType.TEXT_OUTPUT: 0x5865F2,
    EventType.USER_MESSAGE: 0x5865F2,
}

FAILED_RESULT_COLOR = 0xED4245


def _compact_json(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str)


# ---------------------------------------------------------------------------
# Compact text bodies: event -> text following the icon/time prefix
# ---------------------------------------------------------------------------


def _text_thinking(e: Any) -> str:
    return f" **THINKING**\n{truncate(e.reasoning, 300)}"


def _text_tool_call(e: Any) -> str:
    text = f" `{e.tool}`"
    if e.args:
        text += f" → {truncate(_compact_json(e.args), 150)}"
    return text


def _text_tool_result(e: Any) -> str:
    if e.success:
        return f" `{e.tool}`\n✓ {truncate(e.result, 150)}"
    return f" `{e.tool}`\n❌ {truncate(e.result, 200)}"


def _text_output(e: Any) -> str:
    return f" {truncate(e.message, 300)}"


def _text_user_message(e: Any) -> str:
    return f" {truncate(e.message, 200)}"


def _text_info(e: Any) -> str:
    text = f" {e.message}"
    if e.metadata:
        text += f"\n{_compact_json(e.metadata)}"
    return text


def _text_process(e: Any) -> str:
    text = f" {e.message}"
    if e.metadata:
        text += f" ({_compact_json(e.metadata)})"
    return text


def _text_error(e: Any) -> str:
    text = f" **ERROR**: {e.error or e.message or 'Unknown'}"
    raw = (e.metadata or {}).get("raw")
    if raw:
        text += f"\n`{truncate(raw, 150)}`"
    return text


COMPACT_TEMPLATES: dict[str, Callable[[Any], str]] = {
    EventType.THINKING: _text_thinking,
    EventType.TOOL_CALL: _text_tool_call,
    EventType.TOOL_RESULT: _text_tool_result,
    EventType.TEXT_OUTPUT: _text_output,
    EventType.USER_MESSAGE: _text_user_message,
    EventType.INFO: _text_info,
    EventType.PROCESS: _text_process,
    EventType.ERROR: _text_error,
}


# ---------------------------------------------------------------------------
# Embed descriptions
# ---------------------------------------------------------------------------


def _embed_tool_call(e: Any) -> str:
    text = f"`{e.tool}`"
    if e.args:
        text += f" → {truncate(_compact_json(e.args), 200)}"
    if e.result:
        text += f"\n✅ {truncate(_compact_json(e.result), 150)}"
    return text


def _embed_tool_result(e: Any) -> str:
    marker = "✅" if e.success else "❌"
    return f"`{e.tool}`\n{marker} {truncate(e.result, 150)}"


def _embed_error(e: Any) -> str:
    prefix = f"**{e.tool}**: " if e.tool else ""
    return prefix + (e.error or "Unknown error")


def _embed_process(e: Any) -> str:
    if e.message:
        return str(e.message)
    text = f"`{e.tool}`" if e.tool else ""
    if isinstance(e.result, dict) and e.result.get("status"):
        text += f" - {e.result['status']}"
    return text or "Process update"


EMBED_TEMPLATES: dict[str, Callable[[Any], str]] = {
    EventType.TOOL_CALL: _embed_tool_call,
    EventType.TOOL_RESULT: _embed_tool_result,
    EventType.THINKING: lambda e: truncate(e.reasoning, 300),
    EventType.PROCESS: _embed_process,
    EventType.ERROR: _embed_error,
    EventType.INFO: lambda e: str(e.message),
    EventType.TEXT_OUTPUT: lambda e: truncate(e.message, 300),
    EventType.USER_MESSAGE: lambda e: truncate(e.message, 200),
}


class ActivityFormatter:
    """Renders activity events for Discord in a configurable style."""

    def __init__(
        self,
        style: MessageStyle = "compact",
        *,
        tz: tzinfo | None = None,
        type_icons: Mapping[str, str] | None = None,
        tool_icons: Mapping[str, str] | None = None,
        colors: Mapping[str, int] | None = None,
    ) -> None:
        if style not in ("compact", "embed"):
            raise ValueError(f"Unknown message style: {style}")
        self._style = style
        self._tz = tz
        self._type_icons = {**TYPE_ICONS, **(type_icons or {})}
        self._tool_icons = {**TOOL_ICONS, **(tool_icons or {})}
        self._colors = {**TYPE_COLORS, **(colors or {})}

    @property
    def style(self) -> MessageStyle:
        return self._style

    def icon_for(self, event: ActivityEvent) -> str:
        """Upstream override, then per-tool icon, then per-type icon."""
        if event.icon:
            return event.icon
        if event.type == EventType.TOOL_CALL:
            return self._tool_icons.get(event.tool, self._type_icons[EventType.TOOL_CALL])
        if event.type == EventType.TOOL_RESULT and not event.success:
            return "❌"
        return self._type_icons.get(event.type, DEFAULT_ICON)

    def _clock(self, event: ActivityEvent) -> str:
        parsed = parse_iso_timestamp(event.timestamp)
        if parsed is None:
            return ""
        return parsed.astimezone(self._tz).strftime("%H:%M:%S")

    def render_text(self, event: ActivityEvent) -> str:
        """Compact one-message rendering."""
        text = self.icon_for(event)
        clock = self._clock(event)
        if clock:
            text += f" `[{clock}]`"
        template = COMPACT_TEMPLATES.get(event.type)
        text += template(event) if template else f" {event.type}"
        return truncate(text, MAX_DISCORD_MESSAGE_LENGTH - 3)

    def render_embed(self, event: ActivityEvent) -> dict[str, Any]:
        """Embed rendering as a Discord API embed object."""
        title = event.type.replace("_", " ").upper()
        color = self._colors.get(event.type, DEFAULT_COLOR)
        if event.type == EventType.TOOL_RESULT and not event.success:
            color = FAILED_RESULT_COLOR

        embed: dict[str, Any] = {
            "title": f"{self.icon_for(event)} {title}",
            "color": color,
            "timestamp": event.timestamp,
            "footer": {"text": EMBED_FOOTER_TEXT},
        }
        template = EMBED_TEMPLATES.get(event.type)
        description = template(event) if template else ""
        if description:
            embed["description"] = description

        metadata = getattr(event, "metadata", None)
        if metadata:
            embed["fields"] = [
                {"name": "Meta", "value": truncate(_compact_json(metadata), 150), "inline": True}
            ]
        return embed

    def render(self, event: ActivityEvent) -> dict[str, Any]:
        """Discord message payload for the configured style."""
        if self._style == "embed":
            return {"embeds": [self.render_embed(event)]}
        return {"content": self.render_text(event)}
