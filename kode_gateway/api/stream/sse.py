"""Stream API layer: SSE response construction for chat completion streams."""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    # Disable proxy buffering (nginx) so every frame reaches the client immediately.
    "X-Accel-Buffering": "no",
}


def sse_response(
    frames: AsyncIterator[str],
    *,
    session_id: str,
    background: BackgroundTask | None = None,
) -> StreamingResponse:
    headers = dict(SSE_HEADERS)
    headers["X-Session-Id"] = session_id
    return StreamingResponse(
        frames,
        status_code=200,
        media_type="text/event-stream",
        headers=headers,
        background=background,
    )
