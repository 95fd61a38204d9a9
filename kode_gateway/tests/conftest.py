"""Test fixtures shared by unit/integration tests."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pytest

from kode_gateway.agent.events.event_types import AgentEvent, Done, TextDelta, TextEnd
from kode_gateway.agent.runtime.agent_config import AgentConfig, AgentConfigOverrides, TurnResult
from kode_gateway.agent.runtime.session_state import AgentSessionState, SessionStateStore
from kode_gateway.core.config import Settings


@dataclass
class ScriptedHandle:
    session_id: str


class ScriptedEngine:
    """In-memory engine that replays a fixed event script and records lifecycle calls."""

    def __init__(
        self,
        *,
        events: list[Any] | None = None,
        result: TurnResult | None = None,
        error: Exception | None = None,
        store: SessionStateStore | None = None,
    ) -> None:
        self.events = list(events) if events is not None else [TextDelta("Hello"), TextEnd(), Done()]
        self.result = result or TurnResult(response_text="Hello")
        self.error = error
        self.store = store
        self.created: list[tuple[str, AgentConfig]] = []
        self.resumed: list[tuple[str, AgentConfigOverrides]] = []
        self.disposed: list[str] = []
        self.inputs: list[str] = []
        self.stream_closed = False

    async def create(self, session_id: str, config: AgentConfig) -> ScriptedHandle:
        self.created.append((session_id, config))
        if self.store is not None:
            self.store.save(AgentSessionState(session_id=session_id, config=config))
        return ScriptedHandle(session_id)

    async def resume(self, session_id: str, overrides: AgentConfigOverrides) -> ScriptedHandle:
        self.resumed.append((session_id, overrides))
        return ScriptedHandle(session_id)

    async def run(self, handle: ScriptedHandle, text: str) -> TurnResult:
        self.inputs.append(text)
        if self.error is not None:
            raise self.error
        return self.result

    async def stream(self, handle: ScriptedHandle, text: str) -> AsyncIterator[AgentEvent]:
        self.inputs.append(text)
        try:
            for event in self.events:
                yield event
            if self.error is not None:
                raise self.error
        finally:
            self.stream_closed = True

    async def dispose(self, handle: ScriptedHandle) -> None:
        self.disposed.append(handle.session_id)


class MemorySessionStore:
    def __init__(self, session_ids: tuple[str, ...] = ()) -> None:
        self.session_ids = set(session_ids)

    def exists(self, session_id: str) -> bool:
        return session_id in self.session_ids


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        default_model="test-model",
        default_system_prompt="default prompt",
        work_dir=tmp_path / "workspace",
        store_dir=tmp_path / ".kode",
        policy_file=tmp_path / "agent_policy.yaml",
        stream_progress_every=2,
    )


@pytest.fixture
def make_engine() -> Callable[..., ScriptedEngine]:
    return ScriptedEngine


@pytest.fixture
def make_store() -> Callable[..., MemorySessionStore]:
    return MemorySessionStore
