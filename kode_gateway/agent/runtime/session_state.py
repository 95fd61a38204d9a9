"""Session state and its JSON-file store, keyed by session id."""

from __future__ import annotations

import json
import re
from copy import deepcopy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any, Literal

from kode_gateway.agent.runtime.agent_config import AgentConfig
from kode_gateway.infra.observability.logger import get_logger

logger = get_logger(__name__)

TurnRole = Literal["user", "assistant"]

# Ids double as file names; ids outside this set are unknown to the store.
_SESSION_ID_RE = re.compile(r"[A-Za-z0-9_-]{1,128}")


def is_valid_session_id(session_id: str) -> bool:
    return isinstance(session_id, str) and _SESSION_ID_RE.fullmatch(session_id) is not None


def _utc_now_iso() -> str:
    """Generate UTC ISO8601 timestamp used by session snapshots."""
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


@dataclass
class AgentTurn:
    """One persisted conversation turn."""

    role: TurnRole
    content: str
    created_at: str = field(default_factory=_utc_now_iso)


@dataclass
class AgentSessionState:
    """Persisted session: the config it runs with plus its conversation history."""

    session_id: str
    config: AgentConfig
    turn_index: int = 0
    turns: list[AgentTurn] = field(default_factory=list)
    created_at: str = field(default_factory=_utc_now_iso)
    updated_at: str = field(default_factory=_utc_now_iso)

    def append_turn(self, role: TurnRole, content: str) -> None:
        self.turns.append(AgentTurn(role=role, content=content))
        self.updated_at = _utc_now_iso()

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "config": self.config.to_dict(),
            "turn_index": self.turn_index,
            "turns": [
                {"role": turn.role, "content": turn.content, "created_at": turn.created_at}
                for turn in self.turns
            ],
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "AgentSessionState":
        turns = [
            AgentTurn(
                role=item["role"],
                content=str(item.get("content") or ""),
                created_at=str(item.get("created_at") or _utc_now_iso()),
            )
            for item in payload.get("turns") or []
            if isinstance(item, dict) and item.get("role") in {"user", "assistant"}
        ]
        return cls(
            session_id=str(payload["session_id"]),
            config=AgentConfig.from_dict(payload.get("config") or {}),
            turn_index=int(payload.get("turn_index") or 0),
            turns=turns,
            created_at=str(payload.get("created_at") or _utc_now_iso()),
            updated_at=str(payload.get("updated_at") or _utc_now_iso()),
        )


class SessionStateStore:
    """Thread-safe session store persisted as one JSON file per session."""

    def __init__(self, store_dir: Path) -> None:
        self._dir = store_dir / "sessions"
        self._lock = Lock()
        self._states: dict[str, AgentSessionState] = {}

    def _path(self, session_id: str) -> Path:
        return self._dir / f"{session_id}.json"

    def exists(self, session_id: str) -> bool:
        if not is_valid_session_id(session_id):
            return False
        with self._lock:
            if session_id in self._states:
                return True
            return self._path(session_id).is_file()

    def load(self, session_id: str) -> AgentSessionState | None:
        """Return a deep copy of the stored state, reading from disk on cache miss."""
        if not is_valid_session_id(session_id):
            return None
        with self._lock:
            state = self._states.get(session_id)
            if state is None:
                state = self._read(session_id)
                if state is None:
                    return None
                self._states[session_id] = state
            return deepcopy(state)

    def save(self, state: AgentSessionState) -> None:
        if not is_valid_session_id(state.session_id):
            raise ValueError(f"invalid session id: {state.session_id!r}")
        with self._lock:
            snapshot = deepcopy(state)
            self._states[state.session_id] = snapshot
            self._dir.mkdir(parents=True, exist_ok=True)
            path = self._path(state.session_id)
            tmp_path = path.with_suffix(".json.tmp")
            tmp_path.write_text(
                json.dumps(snapshot.to_dict(), ensure_ascii=False, indent=2),
                encoding="utf-8",
            )
            tmp_path.replace(path)

    def list_snapshots(self, *, limit: int = 50) -> list[AgentSessionState]:
        """Return recent session snapshots sorted by updated_at desc."""
        safe_limit = max(1, min(limit, 200))
        with self._lock:
            if self._dir.is_dir():
                for path in self._dir.glob("*.json"):
                    if path.stem not in self._states:
                        state = self._read(path.stem)
                        if state is not None:
                            self._states[state.session_id] = state
            snapshots = [deepcopy(item) for item in self._states.values()]
        snapshots.sort(key=lambda item: item.updated_at, reverse=True)
        return snapshots[:safe_limit]

    def count(self) -> int:
        with self._lock:
            if not self._dir.is_dir():
                return len(self._states)
            on_disk = {path.stem for path in self._dir.glob("*.json")}
            return len(on_disk | set(self._states))

    def delete(self, session_id: str) -> bool:
        """Delete one session by id; return True when it existed."""
        if not is_valid_session_id(session_id):
            return False
        with self._lock:
            cached = self._states.pop(session_id, None) is not None
            path = self._path(session_id)
            on_disk = path.is_file()
            if on_disk:
                path.unlink()
            return cached or on_disk

    def _read(self, session_id: str) -> AgentSessionState | None:
        path = self._path(session_id)
        if not path.is_file():
            return None
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
            state = AgentSessionState.from_dict(payload)
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
            logger.warning("store.read_failed session_id=%s error=%s", session_id, exc)
            return None
        if state.session_id != session_id:
            logger.warning("store.id_mismatch file=%s payload=%s", session_id, state.session_id)
            return None
        return state
