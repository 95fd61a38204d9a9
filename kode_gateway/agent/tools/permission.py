"""Permission and skill policy loaded from the agent policy YAML file."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

import yaml

from kode_gateway.infra.observability.logger import get_logger

logger = get_logger(__name__)

PermissionMode = Literal["auto", "approval", "readonly"]
_PERMISSION_MODES = {"auto", "approval", "readonly"}


@dataclass(frozen=True)
class PermissionConfig:
    """Tool permission policy handed to the agent engine."""

    mode: PermissionMode = "auto"
    require_approval_tools: list[str] = field(default_factory=list)
    allow_tools: list[str] = field(default_factory=list)
    deny_tools: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, payload: dict[str, Any] | None) -> "PermissionConfig":
        if not isinstance(payload, dict):
            return cls()
        mode = payload.get("mode")
        return cls(
            mode=mode if mode in _PERMISSION_MODES else "auto",
            require_approval_tools=_str_list(payload.get("require_approval_tools")),
            allow_tools=_str_list(payload.get("allow_tools")),
            deny_tools=_str_list(payload.get("deny_tools")),
        )


@dataclass(frozen=True)
class SkillsConfig:
    """Skill discovery policy handed to the agent engine."""

    paths: list[str] = field(default_factory=list)
    include: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, payload: dict[str, Any] | None) -> "SkillsConfig":
        if not isinstance(payload, dict):
            return cls()
        return cls(
            paths=_str_list(payload.get("paths")),
            include=_str_list(payload.get("include")),
            exclude=_str_list(payload.get("exclude")),
        )


@dataclass(frozen=True)
class AgentPolicy:
    permissions: PermissionConfig = field(default_factory=PermissionConfig)
    skills: SkillsConfig = field(default_factory=SkillsConfig)


def _str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def load_agent_policy(policy_file: Path) -> AgentPolicy:
    """Read `permissions:` and `skills:` sections; missing or broken files yield defaults."""
    if not policy_file.exists():
        logger.info("policy.default reason=missing_file path=%s", policy_file)
        return AgentPolicy()
    try:
        raw = yaml.safe_load(policy_file.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("policy.default reason=unreadable path=%s error=%s", policy_file, exc)
        return AgentPolicy()
    if not isinstance(raw, dict):
        return AgentPolicy()
    policy = AgentPolicy(
        permissions=PermissionConfig.from_dict(raw.get("permissions")),
        skills=SkillsConfig.from_dict(raw.get("skills")),
    )
    logger.info(
        "policy.loaded path=%s mode=%s skill_paths=%s",
        policy_file,
        policy.permissions.mode,
        len(policy.skills.paths),
    )
    return policy
