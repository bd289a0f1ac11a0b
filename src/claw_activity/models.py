"""Pydantic models for activity events.

An activity event is one observed occurrence in the agent runtime (a tool
call, an error, a chunk of reasoning, ...). Each event type is its own
frozen model; ``ActivityEvent`` is the tagged union over all of them,
discriminated by the ``type`` field.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from claw_activity.utils import parse_iso_timestamp, utc_now_iso

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class EventType(StrEnum):
    """Categories of activity; drives formatting downstream."""

    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    ERROR = "error"
    INFO = "info"
    PROCESS = "process"
    THINKING = "thinking"
    TEXT_OUTPUT = "text_output"
    USER_MESSAGE = "user_message"


# ---------------------------------------------------------------------------
# Base model
# ---------------------------------------------------------------------------


class _EventBase(BaseModel):
    """Fields shared by every activity event."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    timestamp: str = Field(default_factory=utc_now_iso, description="ISO-8601 instant")
    icon: str | None = Field(default=None, description="Presentation override from upstream")

    @field_validator("timestamp")
    @classmethod
    def validate_timestamp(cls, v: str) -> str:
        """Reject anything that is not an ISO-8601 instant."""
        if parse_iso_timestamp(v) is None:
            raise ValueError(f"timestamp must be ISO-8601, got: {v!r}")
        return v

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready wire form without unset optional fields."""
        return self.model_dump(mode="json", exclude_none=True)


# ---------------------------------------------------------------------------
# Event variants
# ---------------------------------------------------------------------------


class ToolCallEvent(_EventBase):
    """The agent invoked a tool."""

    type: Literal["tool_call"] = "tool_call"
    tool: str = Field(min_length=1)
    args: Any = None
    result: Any = None
    tool_call_id: str | None = Field(default=None, alias="toolCallId")


class ToolResultEvent(_EventBase):
    """A tool returned. ``success`` is inferred, see the session parser."""

    type: Literal["tool_result"] = "tool_result"
    tool: str = "tool_result"
    result: str = ""
    success: bool = True


class ErrorEvent(_EventBase):
    type: Literal["error"] = "error"
    error: str = "Unknown error"
    tool: str | None = None
    message: str | None = None
    metadata: dict[str, Any] | None = None


class InfoEvent(_EventBase):
    type: Literal["info"] = "info"
    message: str = ""
    metadata: dict[str, Any] | None = None


class ProcessEvent(_EventBase):
    type: Literal["process"] = "process"
    message: str = ""
    tool: str | None = None
    result: Any = None
    metadata: dict[str, Any] | None = None


class ThinkingEvent(_EventBase):
    type: Literal["thinking"] = "thinking"
    reasoning: str


class TextOutputEvent(_EventBase):
    type: Literal["text_output"] = "text_output"
    message: str


class UserMessageEvent(_EventBase):
    type: Literal["user_message"] = "user_message"
    message: str


ActivityEvent = Annotated[
    ToolCallEvent
    | ToolResultEvent
    | ErrorEvent
    | InfoEvent
    | ProcessEvent
    | ThinkingEvent
    | TextOutputEvent
    | UserMessageEvent,
    Field(discriminator="type"),
]

_EVENT_ADAPTER: TypeAdapter[ActivityEvent] = TypeAdapter(ActivityEvent)


def event_from_dict(data: Any) -> ActivityEvent:
    """Validate a decoded JSON payload into an activity event.

    Raises:
        pydantic.ValidationError: on unknown ``type`` values or bad fields.
    """
    return _EVENT_ADAPTER.validate_python(data)
