"""HTTP API layer: OpenAI-compatible chat completions endpoint."""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response
from starlette.background import BackgroundTask

from kode_gateway.api.deps import get_container
from kode_gateway.api.stream.sse import sse_response
from kode_gateway.core.container import AppContainer
from kode_gateway.core.errors import GatewayError
from kode_gateway.gateway.session_resolver import SESSION_HEADER
from kode_gateway.gateway.turn_executor import TurnExecution
from kode_gateway.infra.observability.logger import get_logger
from kode_gateway.protocol.messages import ChatCompletionRequest, ErrorBody, ErrorResponse

router = APIRouter(prefix="/v1", tags=["chat"])
logger = get_logger(__name__)


def error_response(status_code: int, message: str, error_type: str, details: str | None = None) -> JSONResponse:
    body = ErrorResponse(error=ErrorBody(message=message, type=error_type, details=details))
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", exclude_none=True))


@router.post("/chat/completions")
@router.post("/chat/completions/{sessionId}")
async def chat_completions(
    body: ChatCompletionRequest,
    request: Request,
    container: AppContainer = Depends(get_container),
) -> Response:
    logger.info(
        "chat.request path=%s stream=%s messages=%s",
        request.url.path,
        body.stream,
        len(body.messages or []),
    )
    if container.settings.log_request_headers:
        logger.info(
            "chat.request.headers %s",
            ", ".join(f"{key}={value}" for key, value in request.headers.items()),
        )

    executor = container.executor
    execution: TurnExecution | None = None
    try:
        execution = await executor.prepare(
            body,
            path_params=request.path_params,
            headers=request.headers,
        )
        session_id = execution.session_id or ""
        if execution.stream:
            # The first frame is pulled here so an early failure still gets a 500 body.
            frames = await executor.open_stream(execution)
            logger.info("chat.stream.start session_id=%s", session_id)
            return sse_response(
                frames,
                session_id=session_id,
                background=BackgroundTask(executor.finish_stream, execution),
            )

        completion = await executor.run_buffered(execution)
        logger.info(
            "chat.response session_id=%s id=%s finish_reason=%s",
            session_id,
            completion.id,
            completion.choices[0].finish_reason,
        )
        return JSONResponse(
            content=completion.model_dump(mode="json"),
            headers={SESSION_HEADER: session_id},
        )
    except GatewayError as exc:
        logger.warning("chat.rejected status=%s message=%s", exc.status_code, exc.message)
        return error_response(exc.status_code, exc.message, exc.error_type)
    except asyncio.CancelledError:
        logger.warning("chat.cancelled session_id=%s", execution.session_id if execution else "-")
        if execution is not None:
            await executor.release(execution)
        raise
    except Exception as exc:
        logger.exception("chat.failed session_id=%s", execution.session_id if execution else "-")
        if execution is not None:
            await executor.release(execution)
        return error_response(500, "Internal server error", "server_error", details=str(exc))
