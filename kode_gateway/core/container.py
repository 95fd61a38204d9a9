"""Composition layer: build and hold long-lived service objects for dependency injection."""

from __future__ import annotations

from dataclasses import dataclass

from kode_gateway.agent.runtime.engine import AgentEngine
from kode_gateway.agent.runtime.local_engine import LocalAgentEngine
from kode_gateway.agent.runtime.session_state import SessionStateStore
from kode_gateway.agent.tools.permission import AgentPolicy, load_agent_policy
from kode_gateway.core.config import Settings
from kode_gateway.gateway.session_coordinator import SessionCoordinator
from kode_gateway.gateway.turn_executor import TurnExecutor
from kode_gateway.infra.llm.openai_compatible_client import (
    OpenAICompatibleClient,
    OpenAICompatibleConfig,
)


@dataclass
class AppContainer:
    """Container object attached to FastAPI app state."""

    settings: Settings
    policy: AgentPolicy
    session_store: SessionStateStore
    engine: AgentEngine
    coordinator: SessionCoordinator
    executor: TurnExecutor
    llm_client: OpenAICompatibleClient | None = None


def build_container(settings: Settings, *, engine: AgentEngine | None = None) -> AppContainer:
    """Construct runtime dependencies in one place; `engine` replaces the local engine."""
    policy = load_agent_policy(settings.policy_file)
    session_store = SessionStateStore(settings.store_dir)
    llm_client: OpenAICompatibleClient | None = None
    if engine is None:
        llm_client = OpenAICompatibleClient(
            OpenAICompatibleConfig(
                api_key=settings.llm_api_key,
                base_url=settings.llm_base_url,
                timeout_seconds=settings.llm_timeout_seconds,
            )
        )
        engine = LocalAgentEngine(store=session_store, client=llm_client)
    coordinator = SessionCoordinator(
        settings=settings,
        policy=policy,
        store=session_store,
        engine=engine,
    )
    executor = TurnExecutor(settings=settings, coordinator=coordinator, engine=engine)
    return AppContainer(
        settings=settings,
        policy=policy,
        session_store=session_store,
        engine=engine,
        coordinator=coordinator,
        executor=executor,
        llm_client=llm_client,
    )
