"""Default in-process agent engine backed by an OpenAI-compatible upstream."""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass

import httpx

from kode_gateway.agent.events.event_types import AgentEvent, Done, TextDelta, TextEnd
from kode_gateway.agent.runtime.agent_config import (
    AgentConfig,
    AgentConfigOverrides,
    StopReason,
    TurnResult,
)
from kode_gateway.agent.runtime.session_state import AgentSessionState, SessionStateStore
from kode_gateway.core.errors import SessionNotFoundError
from kode_gateway.infra.llm.openai_compatible_client import OpenAICompatibleClient, UpstreamError
from kode_gateway.infra.observability.logger import get_logger, short_text

logger = get_logger(__name__)

FALLBACK_REPLY = (
    "No language model provider is configured for this gateway. "
    "Set LLM_API_KEY to enable agent replies."
)


@dataclass
class AgentSession:
    """Handle for one live session; released by `LocalAgentEngine.dispose`."""

    session_id: str
    state: AgentSessionState
    disposed: bool = False


def _stop_reason(finish_reason: str | None) -> StopReason:
    if finish_reason == "length":
        return StopReason.MAX_ITERATIONS
    return StopReason.END_TURN


class LocalAgentEngine:
    """Single-call agent: system prompt + persisted history go upstream each turn."""

    def __init__(self, *, store: SessionStateStore, client: OpenAICompatibleClient) -> None:
        self._store = store
        self._client = client

    async def create(self, session_id: str, config: AgentConfig) -> AgentSession:
        state = AgentSessionState(session_id=session_id, config=config)
        self._store.save(state)
        logger.info("engine.create session_id=%s model=%s", session_id, config.model)
        return AgentSession(session_id=session_id, state=state)

    async def resume(self, session_id: str, overrides: AgentConfigOverrides) -> AgentSession:
        state = self._store.load(session_id)
        if state is None:
            raise SessionNotFoundError(session_id)
        state.config = state.config.patched(overrides)
        self._store.save(state)
        logger.info(
            "engine.resume session_id=%s turns=%s model=%s",
            session_id,
            len(state.turns),
            state.config.model,
        )
        return AgentSession(session_id=session_id, state=state)

    async def dispose(self, handle: AgentSession) -> None:
        if handle.disposed:
            return
        handle.disposed = True
        self._store.save(handle.state)
        logger.debug("engine.dispose session_id=%s", handle.session_id)

    async def run(self, handle: AgentSession, text: str) -> TurnResult:
        state = handle.state
        messages = self._begin_turn(state, text)
        if not self._client.enabled:
            state.append_turn("assistant", FALLBACK_REPLY)
            return TurnResult(response_text=FALLBACK_REPLY)

        config = state.config
        try:
            result = await self._client.complete(
                model=config.model,
                messages=messages,
                temperature=config.temperature,
                max_tokens=config.max_tokens,
            )
        except (httpx.HTTPError, UpstreamError) as exc:
            logger.warning(
                "engine.run.failed session_id=%s error=%s",
                handle.session_id,
                short_text(str(exc), limit=200),
            )
            return TurnResult(response_text="", stop_reason=StopReason.ERROR)

        state.append_turn("assistant", result.text)
        return TurnResult(response_text=result.text, stop_reason=_stop_reason(result.finish_reason))

    async def stream(self, handle: AgentSession, text: str) -> AsyncIterator[AgentEvent]:
        state = handle.state
        messages = self._begin_turn(state, text)
        if not self._client.enabled:
            yield TextDelta(FALLBACK_REPLY)
            yield TextEnd()
            state.append_turn("assistant", FALLBACK_REPLY)
            yield Done()
            return

        config = state.config
        pieces: list[str] = []
        async for piece, _finish_reason in self._client.stream(
            model=config.model,
            messages=messages,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
        ):
            if piece:
                pieces.append(piece)
                yield TextDelta(piece)
        yield TextEnd()
        # Only a finished stream becomes history.
        state.append_turn("assistant", "".join(pieces))
        yield Done()

    def _begin_turn(self, state: AgentSessionState, text: str) -> list[dict[str, str]]:
        state.turn_index += 1
        messages: list[dict[str, str]] = []
        if state.config.system_prompt:
            messages.append({"role": "system", "content": state.config.system_prompt})
        messages.extend({"role": turn.role, "content": turn.content} for turn in state.turns)
        messages.append({"role": "user", "content": text})
        state.append_turn("user", text)
        logger.info(
            "engine.turn session_id=%s turn_index=%s history=%s input=%s",
            state.session_id,
            state.turn_index,
            len(state.turns) - 1,
            short_text(text, limit=140),
        )
        return messages
