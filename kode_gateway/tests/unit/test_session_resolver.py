"""Unit tests for session id resolution precedence and id minting."""

from __future__ import annotations

import re

from kode_gateway.gateway.session_resolver import generate_session_id, resolve_session_id

_SESSION_ID_RE = re.compile(r"^agt_[0-9A-HJKMNP-TV-Z]{26}$")


def test_route_param_wins_over_headers() -> None:
    session_id = resolve_session_id(
        {"sessionId": "agt_route"},
        {"X-Session-Id": "agt_header", "X-Kode-Agent-Id": "agt_legacy"},
    )
    assert session_id == "agt_route"


def test_session_header_wins_over_legacy_header() -> None:
    session_id = resolve_session_id(
        {},
        {"X-Session-Id": "agt_header", "X-Kode-Agent-Id": "agt_legacy"},
    )
    assert session_id == "agt_header"


def test_legacy_header_is_last_resort() -> None:
    assert resolve_session_id({}, {"X-Kode-Agent-Id": "agt_legacy"}) == "agt_legacy"


def test_blank_values_are_skipped() -> None:
    session_id = resolve_session_id({"sessionId": "  "}, {"X-Session-Id": "", "X-Kode-Agent-Id": " agt_x "})
    assert session_id == "agt_x"


def test_nothing_supplied_means_new_session() -> None:
    assert resolve_session_id({}, {}) is None


def test_generated_id_format() -> None:
    assert _SESSION_ID_RE.match(generate_session_id())


def test_generated_id_encodes_timestamp_prefix() -> None:
    first = generate_session_id(now_ms=0)
    assert first.startswith("agt_0000000000")
    later = generate_session_id(now_ms=32)
    assert later[4:14] == "0000000010"


def test_generated_ids_are_unique() -> None:
    ids = {generate_session_id() for _ in range(10_000)}
    assert len(ids) == 10_000
