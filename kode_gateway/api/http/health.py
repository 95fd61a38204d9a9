"""HTTP API layer: liveness probe with gateway diagnostics."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from kode_gateway.api.deps import get_container
from kode_gateway.core.container import AppContainer

router = APIRouter(tags=["health"])


@router.get("/health")
def health(container: AppContainer = Depends(get_container)) -> dict:
    settings = container.settings
    llm_client = container.llm_client
    return {
        "status": "ok",
        "env": settings.env,
        "version": settings.app_version,
        "model": settings.default_model,
        "llm_enabled": bool(llm_client and llm_client.enabled),
        "sessions": container.session_store.count(),
    }
