"""Resume an existing agent session or create a new one for an inbound request."""

from __future__ import annotations

from dataclasses import dataclass

from kode_gateway.agent.runtime.agent_config import (
    ALL_TOOLS,
    AgentConfig,
    AgentConfigOverrides,
    SandboxOptions,
)
from kode_gateway.agent.runtime.engine import AgentEngine, AgentHandle, SessionStore
from kode_gateway.agent.tools.permission import AgentPolicy
from kode_gateway.core.config import Settings
from kode_gateway.core.errors import SessionNotFoundError
from kode_gateway.gateway.session_resolver import generate_session_id
from kode_gateway.infra.observability.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RequestOverrides:
    """Per-request values lifted from the chat completion body."""

    system_prompt: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None


class SessionCoordinator:
    """Owns the create-or-resume decision; callers must dispose the returned handle."""

    def __init__(
        self,
        *,
        settings: Settings,
        policy: AgentPolicy,
        store: SessionStore,
        engine: AgentEngine,
    ) -> None:
        self._settings = settings
        self._policy = policy
        self._store = store
        self._engine = engine

    def build_config(self, overrides: RequestOverrides) -> AgentConfig:
        """Merge process defaults with request values; recomputed on every request."""
        work_dir = str(self._settings.work_dir)
        system_prompt = overrides.system_prompt
        if system_prompt is None:
            system_prompt = self._settings.default_system_prompt
        return AgentConfig(
            model=self._settings.default_model,
            system_prompt=system_prompt,
            temperature=overrides.temperature,
            max_tokens=overrides.max_tokens,
            tools=list(ALL_TOOLS),
            permissions=self._policy.permissions,
            skills=self._policy.skills,
            sandbox=SandboxOptions(
                working_directory=work_dir,
                enforce_boundary=True,
                allow_paths=[work_dir, str(self._settings.store_dir)],
            ),
        )

    async def resolve(
        self,
        session_id: str | None,
        overrides: RequestOverrides,
    ) -> tuple[AgentHandle, str]:
        config = self.build_config(overrides)
        logger.debug(
            "session.config model=%s prompt_chars=%s temperature=%s max_tokens=%s tools=%s work_dir=%s",
            config.model,
            len(config.system_prompt),
            config.temperature,
            config.max_tokens,
            ",".join(config.tools),
            config.sandbox.working_directory if config.sandbox else None,
        )

        if session_id:
            if not self._store.exists(session_id):
                raise SessionNotFoundError(session_id)
            logger.info("session.resume session_id=%s", session_id)
            handle = await self._engine.resume(
                session_id,
                AgentConfigOverrides.from_config(config),
            )
            return handle, session_id

        new_session_id = generate_session_id()
        logger.info("session.create session_id=%s", new_session_id)
        handle = await self._engine.create(new_session_id, config)
        return handle, new_session_id
