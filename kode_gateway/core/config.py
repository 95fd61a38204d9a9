"""Configuration layer: load gateway settings from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

_DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful assistant. Answer clearly and concisely, "
    "and use the available tools when they help complete the task."
)


def _resolve_path(path_like: str) -> Path:
    candidate = Path(path_like)
    if candidate.is_absolute():
        return candidate
    if candidate.exists():
        return candidate
    project_root = Path(__file__).resolve().parents[2]
    rooted = project_root / candidate
    if rooted.exists():
        return rooted
    return candidate


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Immutable process-wide settings; per-request overrides are applied on top."""

    app_name: str = "Kode Agent Gateway"
    app_version: str = "0.1.0"
    env: str = "dev"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 5124
    cors_allow_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
    default_model: str = "gpt-4o-mini"
    default_system_prompt: str = _DEFAULT_SYSTEM_PROMPT
    work_dir: Path = Path("workspace")
    store_dir: Path = Path(".kode")
    policy_file: Path = Path("config/agent_policy.yaml")
    llm_api_key: str = ""
    llm_base_url: str = "https://api.openai.com/v1"
    llm_timeout_seconds: float = 60.0
    stream_progress_every: int = 10
    log_request_headers: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        """Create settings from process env with deterministic defaults."""
        return cls(
            app_name=os.getenv("APP_NAME", cls.app_name),
            app_version=os.getenv("APP_VERSION", cls.app_version),
            env=os.getenv("APP_ENV", cls.env),
            log_level=os.getenv("LOG_LEVEL", cls.log_level),
            host=os.getenv("HOST", cls.host),
            port=int(os.getenv("PORT", str(cls.port))),
            cors_allow_origins=os.getenv("CORS_ALLOW_ORIGINS", cls.cors_allow_origins),
            default_model=os.getenv("KODE_DEFAULT_MODEL", cls.default_model),
            default_system_prompt=os.getenv(
                "KODE_DEFAULT_SYSTEM_PROMPT", cls.default_system_prompt
            ),
            work_dir=Path(os.getenv("KODE_WORK_DIR", str(cls.work_dir))),
            store_dir=Path(os.getenv("KODE_STORE_DIR", str(cls.store_dir))),
            policy_file=_resolve_path(os.getenv("KODE_POLICY_FILE", str(cls.policy_file))),
            llm_api_key=os.getenv("LLM_API_KEY", cls.llm_api_key),
            llm_base_url=os.getenv("LLM_BASE_URL", cls.llm_base_url),
            llm_timeout_seconds=float(
                os.getenv("LLM_TIMEOUT_SECONDS", str(cls.llm_timeout_seconds))
            ),
            stream_progress_every=int(
                os.getenv("AGENT_STREAM_PROGRESS_EVERY", str(cls.stream_progress_every))
            ),
            log_request_headers=_env_bool("LOG_REQUEST_HEADERS", cls.log_request_headers),
        )
