"""Protocol layer: OpenAI-compatible request/response DTOs and message mapping."""

from __future__ import annotations

import time
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from kode_gateway.agent.runtime.agent_config import StopReason
from kode_gateway.core.errors import InvalidRequestError

FinishReason = Literal["stop", "length"]
ToolEventName = Literal["tool:start", "tool:end", "tool:error"]


def new_completion_id() -> str:
    return f"chatcmpl-{uuid4().hex}"


def unix_now() -> int:
    return int(time.time())


class ChatMessage(BaseModel):
    """One inbound message; `content` may be a string, a list of parts or one part object."""

    model_config = ConfigDict(extra="allow")

    role: str
    content: Any = None

    def text_content(self) -> str:
        content = self.content
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            parts: list[str] = []
            for item in content:
                if isinstance(item, str):
                    parts.append(item)
                elif isinstance(item, dict) and "text" in item:
                    parts.append(_as_text(item["text"]))
            return "".join(parts)
        if isinstance(content, dict) and "text" in content:
            return _as_text(content["text"])
        return ""


def _as_text(value: Any) -> str:
    return value if isinstance(value, str) else ""


class ChatCompletionRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    model: str | None = None
    messages: list[ChatMessage] | None = None
    stream: bool = False
    temperature: float | None = None
    max_tokens: int | None = None
    user: str | None = None


def extract_prompt_and_input(request: ChatCompletionRequest) -> tuple[str | None, str]:
    """Return `(system_prompt, input)`; the last system message wins, user texts are joined."""
    if not request.messages:
        raise InvalidRequestError("Messages array is required and must not be empty")

    system_prompt: str | None = None
    user_messages: list[str] = []
    for message in request.messages:
        if message.role == "system":
            system_prompt = message.text_content()
        elif message.role == "user":
            user_messages.append(message.text_content())

    if not user_messages:
        raise InvalidRequestError("At least one user message is required")
    return system_prompt, "\n\n".join(user_messages)


def map_finish_reason(stop_reason: StopReason) -> FinishReason:
    if stop_reason is StopReason.MAX_ITERATIONS:
        return "length"
    return "stop"


class ChatCompletionMessage(BaseModel):
    role: Literal["assistant"] = "assistant"
    content: str


class ChatCompletionChoice(BaseModel):
    index: int = 0
    message: ChatCompletionMessage
    finish_reason: FinishReason


class Usage(BaseModel):
    """Usage is not metered by the gateway; every field stays zero."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatCompletionResponse(BaseModel):
    id: str = Field(default_factory=new_completion_id)
    object: Literal["chat.completion"] = "chat.completion"
    created: int = Field(default_factory=unix_now)
    model: str
    choices: list[ChatCompletionChoice]
    usage: Usage = Field(default_factory=Usage)


class StreamDelta(BaseModel):
    role: str | None = None
    content: str | None = None


class StreamChoice(BaseModel):
    index: int = 0
    delta: StreamDelta = Field(default_factory=StreamDelta)
    finish_reason: FinishReason | None = None


class ChatCompletionChunk(BaseModel):
    id: str
    object: Literal["chat.completion.chunk"] = "chat.completion.chunk"
    created: int
    model: str
    choices: list[StreamChoice]


class ToolEventFrame(BaseModel):
    """Private SSE payload announcing tool lifecycle changes to UI clients."""

    id: str
    event: ToolEventName
    tool_call_id: str
    tool_name: str
    state: str
    error: str | None = None
    duration_ms: int | None = None
    timestamp: int


class ErrorBody(BaseModel):
    message: str
    type: str
    details: str | None = None


class ErrorResponse(BaseModel):
    error: ErrorBody


class ModelCard(BaseModel):
    id: str
    object: Literal["model"] = "model"
    created: int
    owned_by: str = "kode-agent"


class ModelList(BaseModel):
    object: Literal["list"] = "list"
    data: list[ModelCard]


class SessionTurnDto(BaseModel):
    role: Literal["user", "assistant"]
    content: str
    created_at: str


class SessionSummaryDto(BaseModel):
    """Session summary shown in a history list."""

    session_id: str
    title: str
    preview: str | None = None
    model: str
    turn_count: int
    created_at: str
    updated_at: str


class SessionDetailDto(BaseModel):
    session_id: str
    model: str
    system_prompt: str
    turn_count: int
    created_at: str
    updated_at: str
    turns: list[SessionTurnDto] = Field(default_factory=list)
