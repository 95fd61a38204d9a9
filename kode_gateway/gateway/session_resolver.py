"""Session id resolution from route/headers, and minting of new session ids."""

from __future__ import annotations

import secrets
import time
from collections.abc import Mapping
from typing import Any

SESSION_PATH_PARAM = "sessionId"
SESSION_HEADER = "X-Session-Id"
LEGACY_AGENT_HEADER = "X-Kode-Agent-Id"

SESSION_ID_PREFIX = "agt_"
# Crockford-style base32: no I, L, O, U.
SESSION_ID_ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
_TIME_LENGTH = 10
_RANDOM_LENGTH = 16


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def resolve_session_id(path_params: Mapping[str, Any], headers: Mapping[str, str]) -> str | None:
    """Priority: route `sessionId` > `X-Session-Id` > `X-Kode-Agent-Id`."""
    for candidate in (
        path_params.get(SESSION_PATH_PARAM),
        headers.get(SESSION_HEADER),
        headers.get(LEGACY_AGENT_HEADER),
    ):
        session_id = _clean(candidate)
        if session_id is not None:
            return session_id
    return None


def generate_session_id(now_ms: int | None = None) -> str:
    """`agt_` + 10 timestamp symbols + 16 random symbols."""
    base = len(SESSION_ID_ALPHABET)
    num = int(time.time() * 1000) if now_ms is None else now_ms
    time_part = [""] * _TIME_LENGTH
    for i in range(_TIME_LENGTH - 1, -1, -1):
        time_part[i] = SESSION_ID_ALPHABET[num % base]
        num //= base
    random_part = "".join(secrets.choice(SESSION_ID_ALPHABET) for _ in range(_RANDOM_LENGTH))
    return f"{SESSION_ID_PREFIX}{''.join(time_part)}{random_part}"
