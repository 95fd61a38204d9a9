"""Translate agent events into OpenAI chat.completion.chunk SSE frames."""

from __future__ import annotations

import json
import time
from collections.abc import AsyncIterator
from typing import Any

from kode_gateway.agent.events.event_types import (
    AgentEvent,
    Done,
    TextDelta,
    TextEnd,
    ToolEnd,
    ToolError,
    ToolStart,
)
from kode_gateway.infra.observability.logger import get_logger, short_text
from kode_gateway.protocol.messages import (
    ChatCompletionChunk,
    StreamChoice,
    StreamDelta,
    ToolEventFrame,
    ToolEventName,
)

logger = get_logger(__name__)

DONE_FRAME = "data: [DONE]\n\n"


def sse_data(payload: dict[str, Any]) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


async def _close_events(events: AsyncIterator[AgentEvent]) -> None:
    aclose = getattr(events, "aclose", None)
    if aclose is not None:
        await aclose()


class WireTranslator:
    """Per-request translator; counters never outlive one stream."""

    def __init__(
        self,
        *,
        completion_id: str,
        model: str,
        created: int,
        session_id: str = "",
        progress_every: int = 10,
    ) -> None:
        self.completion_id = completion_id
        self.model = model
        self.created = created
        self.session_id = session_id
        self._progress_every = max(1, progress_every)
        self.text_chunks = 0
        self.total_chars = 0
        self.tool_events = 0

    def chunk_frame(self, content: str | None, finish_reason: str | None = None) -> str:
        chunk = ChatCompletionChunk(
            id=self.completion_id,
            created=self.created,
            model=self.model,
            choices=[
                StreamChoice(
                    delta=StreamDelta(content=content),
                    finish_reason=finish_reason,
                )
            ],
        )
        payload = chunk.model_dump(mode="json")
        # finish_reason stays as explicit null; empty delta fields are dropped.
        for choice in payload["choices"]:
            choice["delta"] = {key: value for key, value in choice["delta"].items() if value is not None}
        return sse_data(payload)

    def tool_frame(
        self,
        event: ToolEventName,
        *,
        call_id: str,
        name: str,
        state: str,
        error: str | None = None,
        duration_ms: int | None = None,
    ) -> str:
        frame = ToolEventFrame(
            id=self.completion_id,
            event=event,
            tool_call_id=call_id,
            tool_name=name,
            state=state,
            error=error,
            duration_ms=duration_ms,
            timestamp=int(time.time() * 1000),
        )
        return sse_data(frame.model_dump(mode="json", exclude_none=True))

    def closing_frames(self) -> list[str]:
        return [self.chunk_frame(None, finish_reason="stop"), DONE_FRAME]

    def frame_for(self, event: AgentEvent) -> str | None:
        """Map one event to its wire frame; `None` means nothing goes on the wire."""
        if isinstance(event, TextDelta):
            self.text_chunks += 1
            self.total_chars += len(event.content)
            if self.text_chunks <= 3:
                logger.debug(
                    "stream.chunk session_id=%s n=%s content=%s",
                    self.session_id,
                    self.text_chunks,
                    short_text(event.content, limit=80),
                )
            if self.text_chunks % self._progress_every == 0:
                logger.info(
                    "stream.progress session_id=%s chunks=%s chars=%s",
                    self.session_id,
                    self.text_chunks,
                    self.total_chars,
                )
            return self.chunk_frame(event.content)
        if isinstance(event, ToolStart):
            self.tool_events += 1
            logger.info(
                "stream.tool.start session_id=%s tool=%s call_id=%s",
                self.session_id,
                event.name,
                event.call_id,
            )
            return self.tool_frame("tool:start", call_id=event.call_id, name=event.name, state=event.state)
        if isinstance(event, ToolEnd):
            self.tool_events += 1
            logger.info(
                "stream.tool.end session_id=%s tool=%s call_id=%s duration_ms=%s",
                self.session_id,
                event.name,
                event.call_id,
                event.duration_ms or 0,
            )
            return self.tool_frame(
                "tool:end",
                call_id=event.call_id,
                name=event.name,
                state=event.state,
                duration_ms=event.duration_ms,
            )
        if isinstance(event, ToolError):
            self.tool_events += 1
            logger.warning(
                "stream.tool.error session_id=%s tool=%s call_id=%s error=%s",
                self.session_id,
                event.name,
                event.call_id,
                short_text(event.error, limit=160),
            )
            return self.tool_frame(
                "tool:error",
                call_id=event.call_id,
                name=event.name,
                state=event.state,
                error=event.error,
                duration_ms=event.duration_ms,
            )
        if isinstance(event, TextEnd):
            logger.debug("stream.text_end session_id=%s", self.session_id)
            return None
        logger.warning(
            "stream.unhandled_event session_id=%s type=%s",
            self.session_id,
            type(event).__name__,
        )
        return None

    async def translate(self, events: AsyncIterator[AgentEvent]) -> AsyncIterator[str]:
        """Yield one complete frame per mapped event, then the closing stop chunk and [DONE].

        Closing the returned generator early (client gone) closes `events` and skips
        the closing sequence.
        """
        try:
            async for event in events:
                if isinstance(event, Done):
                    logger.debug("stream.done_event session_id=%s", self.session_id)
                    break
                frame = self.frame_for(event)
                if frame is not None:
                    yield frame
        finally:
            await _close_events(events)

        logger.info(
            "stream.finished session_id=%s text_chunks=%s chars=%s tool_events=%s",
            self.session_id,
            self.text_chunks,
            self.total_chars,
            self.tool_events,
        )
        for frame in self.closing_frames():
            yield frame
