"""Unit tests for the JSON-file session store."""

from __future__ import annotations

from pathlib import Path

import pytest

from kode_gateway.agent.runtime.agent_config import AgentConfig, SandboxOptions
from kode_gateway.agent.runtime.session_state import AgentSessionState, SessionStateStore


def _state(session_id: str) -> AgentSessionState:
    return AgentSessionState(
        session_id=session_id,
        config=AgentConfig(
            model="test-model",
            system_prompt="prompt",
            temperature=0.2,
            sandbox=SandboxOptions(working_directory="/work", allow_paths=["/work"]),
        ),
    )


def test_save_and_reload_from_disk(tmp_path: Path) -> None:
    store = SessionStateStore(tmp_path)
    state = _state("agt_one")
    state.append_turn("user", "hello")
    state.append_turn("assistant", "hi")
    store.save(state)

    fresh = SessionStateStore(tmp_path)
    assert fresh.exists("agt_one")
    loaded = fresh.load("agt_one")

    assert loaded is not None
    assert loaded.config == state.config
    assert [(turn.role, turn.content) for turn in loaded.turns] == [("user", "hello"), ("assistant", "hi")]
    assert (tmp_path / "sessions" / "agt_one.json").is_file()


def test_load_returns_isolated_copy(tmp_path: Path) -> None:
    store = SessionStateStore(tmp_path)
    store.save(_state("agt_copy"))

    loaded = store.load("agt_copy")
    assert loaded is not None
    loaded.append_turn("user", "not saved")

    again = store.load("agt_copy")
    assert again is not None
    assert again.turns == []


def test_missing_and_corrupt_sessions(tmp_path: Path) -> None:
    store = SessionStateStore(tmp_path)
    assert store.exists("agt_none") is False
    assert store.load("agt_none") is None

    sessions_dir = tmp_path / "sessions"
    sessions_dir.mkdir(parents=True)
    (sessions_dir / "agt_bad.json").write_text("{not json", encoding="utf-8")
    assert store.load("agt_bad") is None


def test_ids_with_foreign_characters_are_unknown(tmp_path: Path) -> None:
    store = SessionStateStore(tmp_path / "store")
    store.save(_state("agt_01M59C"))

    for alias in ("agt_01/M59C!", "agt_01M59C\n", "../agt_01M59C", "!!!", ""):
        assert store.exists(alias) is False
        assert store.load(alias) is None
        assert store.delete(alias) is False

    assert store.exists("agt_01M59C") is True
    with pytest.raises(ValueError):
        store.save(_state("../../escape"))
    assert not (tmp_path / "escape.json").exists()
    assert not (tmp_path / "store" / "sessions" / "escape.json").exists()


def test_file_renamed_to_another_id_is_not_loaded(tmp_path: Path) -> None:
    store = SessionStateStore(tmp_path)
    store.save(_state("agt_original"))
    sessions_dir = tmp_path / "sessions"
    (sessions_dir / "agt_original.json").rename(sessions_dir / "agt_other.json")

    assert SessionStateStore(tmp_path).load("agt_other") is None


def test_list_count_and_delete(tmp_path: Path) -> None:
    store = SessionStateStore(tmp_path)
    older = _state("agt_old")
    older.updated_at = "2026-01-01T00:00:00Z"
    newer = _state("agt_new")
    newer.updated_at = "2026-02-01T00:00:00Z"
    store.save(older)
    store.save(newer)

    assert [item.session_id for item in SessionStateStore(tmp_path).list_snapshots()] == ["agt_new", "agt_old"]
    assert store.list_snapshots(limit=1)[0].session_id == "agt_new"
    assert store.count() == 2

    assert store.delete("agt_old") is True
    assert store.delete("agt_old") is False
    assert store.count() == 1
    assert store.exists("agt_old") is False
