"""Drive one chat turn: resolve the session, run the agent, release the handle."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator, AsyncIterator, Mapping
from contextlib import aclosing
from dataclasses import dataclass
from enum import Enum
from typing import Any

from kode_gateway.agent.runtime.engine import AgentEngine, AgentHandle
from kode_gateway.core.config import Settings
from kode_gateway.gateway.session_coordinator import RequestOverrides, SessionCoordinator
from kode_gateway.gateway.session_resolver import resolve_session_id
from kode_gateway.gateway.wire_translator import WireTranslator
from kode_gateway.infra.observability.logger import get_logger
from kode_gateway.protocol.messages import (
    ChatCompletionChoice,
    ChatCompletionMessage,
    ChatCompletionRequest,
    ChatCompletionResponse,
    extract_prompt_and_input,
    map_finish_reason,
    new_completion_id,
    unix_now,
)

logger = get_logger(__name__)


class TurnState(str, Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


_TERMINAL_STATES = {TurnState.COMPLETED, TurnState.CANCELLED, TurnState.FAILED}


@dataclass
class TurnExecution:
    """Per-request turn state; owns the agent handle until `TurnExecutor.release`."""

    stream: bool
    state: TurnState = TurnState.IDLE
    session_id: str | None = None
    input_text: str = ""
    handle: AgentHandle | None = None
    released: bool = False
    frames: AsyncGenerator[str, None] | None = None

    def transition(self, target: TurnState) -> None:
        if self.state in _TERMINAL_STATES:
            return
        logger.debug(
            "turn.transition session_id=%s from=%s to=%s",
            self.session_id or "-",
            self.state.value,
            target.value,
        )
        self.state = target


class TurnExecutor:
    def __init__(
        self,
        *,
        settings: Settings,
        coordinator: SessionCoordinator,
        engine: AgentEngine,
    ) -> None:
        self._settings = settings
        self._coordinator = coordinator
        self._engine = engine

    async def prepare(
        self,
        request: ChatCompletionRequest,
        *,
        path_params: Mapping[str, Any],
        headers: Mapping[str, str],
    ) -> TurnExecution:
        """Idle -> Resolving; on success the caller owns a live handle and must release it."""
        execution = TurnExecution(stream=request.stream)
        execution.transition(TurnState.RESOLVING)
        try:
            system_prompt, input_text = extract_prompt_and_input(request)
            logger.info(
                "turn.input messages=%s input_chars=%s system_prompt_chars=%s",
                len(request.messages or []),
                len(input_text),
                len(system_prompt) if system_prompt else 0,
            )
            handle, session_id = await self._coordinator.resolve(
                resolve_session_id(path_params, headers),
                RequestOverrides(
                    system_prompt=system_prompt,
                    temperature=request.temperature,
                    max_tokens=request.max_tokens,
                ),
            )
        except asyncio.CancelledError:
            execution.transition(TurnState.CANCELLED)
            raise
        except Exception:
            execution.transition(TurnState.FAILED)
            raise
        execution.session_id = session_id
        execution.input_text = input_text
        execution.handle = handle
        return execution

    async def release(self, execution: TurnExecution) -> None:
        """Dispose the agent handle exactly once."""
        if execution.released or execution.handle is None:
            return
        execution.released = True
        await self._engine.dispose(execution.handle)
        logger.debug("turn.released session_id=%s state=%s", execution.session_id, execution.state.value)

    async def run_buffered(self, execution: TurnExecution) -> ChatCompletionResponse:
        execution.transition(TurnState.RUNNING)
        try:
            result = await self._engine.run(execution.handle, execution.input_text)
        except asyncio.CancelledError:
            execution.transition(TurnState.CANCELLED)
            raise
        except Exception:
            execution.transition(TurnState.FAILED)
            raise
        finally:
            await self.release(execution)
        execution.transition(TurnState.COMPLETED)

        logger.info(
            "turn.buffered.done session_id=%s stop_reason=%s response_chars=%s",
            execution.session_id,
            result.stop_reason.value,
            len(result.response_text or ""),
        )
        if not result.response_text:
            logger.warning("turn.buffered.empty_response session_id=%s", execution.session_id)
        return ChatCompletionResponse(
            model=self._settings.default_model,
            choices=[
                ChatCompletionChoice(
                    message=ChatCompletionMessage(content=result.response_text or ""),
                    finish_reason=map_finish_reason(result.stop_reason),
                )
            ],
        )

    async def run_streaming(self, execution: TurnExecution) -> AsyncGenerator[str, None]:
        """Yield SSE frames for one turn; the handle is released on every exit path.

        A failure before the first frame propagates so the caller can still answer
        with an error body. Later failures end the stream without [DONE].
        """
        execution.transition(TurnState.RUNNING)
        translator = WireTranslator(
            completion_id=new_completion_id(),
            model=self._settings.default_model,
            created=unix_now(),
            session_id=execution.session_id or "",
            progress_every=self._settings.stream_progress_every,
        )
        emitted = 0
        try:
            events = self._engine.stream(execution.handle, execution.input_text)
            async with aclosing(translator.translate(events)) as frames:
                async for frame in frames:
                    emitted += 1
                    yield frame
            execution.transition(TurnState.COMPLETED)
        except (asyncio.CancelledError, GeneratorExit):
            execution.transition(TurnState.CANCELLED)
            logger.warning(
                "turn.stream.cancelled session_id=%s frames_text=%s frames_tool=%s",
                execution.session_id,
                translator.text_chunks,
                translator.tool_events,
            )
            raise
        except Exception:
            execution.transition(TurnState.FAILED)
            if not emitted:
                raise
            logger.exception(
                "turn.stream.failed session_id=%s reason=response_already_started frames=%s",
                execution.session_id,
                emitted,
            )
        finally:
            await self.release(execution)

    async def open_stream(self, execution: TurnExecution) -> AsyncIterator[str]:
        """Start the turn and pull its first frame before any response is sent."""
        frames = self.run_streaming(execution)
        execution.frames = frames
        try:
            first = await frames.__anext__()
        except StopAsyncIteration:
            first = None
        return _resume_frames(first, frames)

    async def finish_stream(self, execution: TurnExecution) -> None:
        """Close a stream the response never drained, then release the handle."""
        if execution.frames is not None:
            await execution.frames.aclose()
        await self.release(execution)


async def _resume_frames(first: str | None, rest: AsyncGenerator[str, None]) -> AsyncIterator[str]:
    async with aclosing(rest):
        if first is not None:
            yield first
        async for frame in rest:
            yield frame
