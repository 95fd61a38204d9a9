"""Agent configuration, override patches and turn results exchanged with the engine."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields, replace
from enum import Enum
from typing import Any

from kode_gateway.agent.tools.permission import PermissionConfig, SkillsConfig

ALL_TOOLS = ["*"]


@dataclass(frozen=True)
class SandboxOptions:
    working_directory: str
    enforce_boundary: bool = True
    allow_paths: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class AgentConfig:
    """Full configuration a session is created with."""

    model: str
    system_prompt: str
    temperature: float | None = None
    max_tokens: int | None = None
    tools: list[str] = field(default_factory=lambda: list(ALL_TOOLS))
    permissions: PermissionConfig = field(default_factory=PermissionConfig)
    skills: SkillsConfig = field(default_factory=SkillsConfig)
    sandbox: SandboxOptions | None = None

    def patched(self, overrides: "AgentConfigOverrides") -> "AgentConfig":
        """Apply non-null override fields; applying the same patch twice is a no-op."""
        changes = {
            item.name: getattr(overrides, item.name)
            for item in fields(overrides)
            if getattr(overrides, item.name) is not None
        }
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "AgentConfig":
        sandbox = payload.get("sandbox")
        return cls(
            model=str(payload.get("model") or ""),
            system_prompt=str(payload.get("system_prompt") or ""),
            temperature=payload.get("temperature"),
            max_tokens=payload.get("max_tokens"),
            tools=list(payload.get("tools") or ALL_TOOLS),
            permissions=PermissionConfig.from_dict(payload.get("permissions")),
            skills=SkillsConfig.from_dict(payload.get("skills")),
            sandbox=SandboxOptions(**sandbox) if isinstance(sandbox, dict) else None,
        )


@dataclass(frozen=True)
class AgentConfigOverrides:
    """Patch applied to a resumed session; `None` leaves the stored value untouched."""

    model: str | None = None
    system_prompt: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    tools: list[str] | None = None
    permissions: PermissionConfig | None = None
    skills: SkillsConfig | None = None
    sandbox: SandboxOptions | None = None

    @classmethod
    def from_config(cls, config: AgentConfig) -> "AgentConfigOverrides":
        return cls(**{item.name: getattr(config, item.name) for item in fields(config)})


class StopReason(str, Enum):
    END_TURN = "EndTurn"
    MAX_ITERATIONS = "MaxIterations"
    AWAITING_APPROVAL = "AwaitingApproval"
    CANCELLED = "Cancelled"
    ERROR = "Error"


@dataclass(frozen=True)
class TurnResult:
    response_text: str
    stop_reason: StopReason = StopReason.END_TURN
