"""Event layer: closed set of agent events produced during one streaming turn."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class TextDelta:
    """Incremental assistant text."""

    content: str


@dataclass(frozen=True)
class TextEnd:
    """Marks the end of a text block; carries no wire payload."""


@dataclass(frozen=True)
class ToolStart:
    call_id: str
    name: str
    state: str


@dataclass(frozen=True)
class ToolEnd:
    call_id: str
    name: str
    state: str
    duration_ms: int | None = None


@dataclass(frozen=True)
class ToolError:
    call_id: str
    name: str
    state: str
    error: str
    duration_ms: int | None = None


@dataclass(frozen=True)
class Done:
    """Terminal event; nothing after it is consumed."""


AgentEvent = Union[TextDelta, TextEnd, ToolStart, ToolEnd, ToolError, Done]
