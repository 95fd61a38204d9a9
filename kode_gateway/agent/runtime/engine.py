"""Collaborator contracts the gateway drives: the agent engine and the session store."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Protocol

from kode_gateway.agent.events.event_types import AgentEvent
from kode_gateway.agent.runtime.agent_config import AgentConfig, AgentConfigOverrides, TurnResult


class AgentHandle(Protocol):
    session_id: str


class SessionStore(Protocol):
    def exists(self, session_id: str) -> bool: ...


class AgentEngine(Protocol):
    async def create(self, session_id: str, config: AgentConfig) -> AgentHandle: ...

    async def resume(self, session_id: str, overrides: AgentConfigOverrides) -> AgentHandle: ...

    async def run(self, handle: AgentHandle, text: str) -> TurnResult: ...

    def stream(self, handle: AgentHandle, text: str) -> AsyncIterator[AgentEvent]:
        """Lazy, single-pass event sequence for one turn."""
        ...

    async def dispose(self, handle: AgentHandle) -> None: ...
