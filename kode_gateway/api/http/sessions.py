"""HTTP API layer: list, inspect and delete persisted agent sessions."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from kode_gateway.agent.runtime.session_state import AgentSessionState, AgentTurn
from kode_gateway.api.deps import get_container
from kode_gateway.core.container import AppContainer
from kode_gateway.infra.observability.logger import get_logger, short_text
from kode_gateway.protocol.messages import SessionDetailDto, SessionSummaryDto, SessionTurnDto

router = APIRouter(prefix="/v1", tags=["sessions"])
logger = get_logger(__name__)


def _build_title(turns: list[AgentTurn]) -> str:
    for turn in turns:
        if turn.role != "user":
            continue
        title = short_text(turn.content, limit=32)
        if title:
            return title
    return "New chat"


def _build_preview(turns: list[AgentTurn]) -> str | None:
    for turn in reversed(turns):
        preview = short_text(turn.content, limit=72)
        if preview:
            return preview
    return None


def _to_summary(state: AgentSessionState) -> SessionSummaryDto:
    return SessionSummaryDto(
        session_id=state.session_id,
        title=_build_title(state.turns),
        preview=_build_preview(state.turns),
        model=state.config.model,
        turn_count=len(state.turns),
        created_at=state.created_at,
        updated_at=state.updated_at,
    )


def _to_detail(state: AgentSessionState) -> SessionDetailDto:
    return SessionDetailDto(
        session_id=state.session_id,
        model=state.config.model,
        system_prompt=state.config.system_prompt,
        turn_count=len(state.turns),
        created_at=state.created_at,
        updated_at=state.updated_at,
        turns=[
            SessionTurnDto(role=turn.role, content=turn.content, created_at=turn.created_at)
            for turn in state.turns
        ],
    )


@router.get("/sessions", response_model=list[SessionSummaryDto])
def list_sessions(
    limit: int = Query(default=40, ge=1, le=200),
    container: AppContainer = Depends(get_container),
) -> list[SessionSummaryDto]:
    sessions = container.session_store.list_snapshots(limit=limit)
    return [_to_summary(state) for state in sessions]


@router.get("/sessions/{session_id}", response_model=SessionDetailDto)
def get_session(
    session_id: str,
    container: AppContainer = Depends(get_container),
) -> SessionDetailDto:
    state = container.session_store.load(session_id)
    if state is None:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")
    return _to_detail(state)


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_session(
    session_id: str,
    container: AppContainer = Depends(get_container),
) -> Response:
    deleted = container.session_store.delete(session_id)
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")
    logger.info("session.deleted session_id=%s", session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
