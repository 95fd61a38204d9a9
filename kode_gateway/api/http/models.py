"""HTTP API layer: OpenAI model listing for clients that probe `/v1/models`."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from kode_gateway.api.deps import get_container
from kode_gateway.core.container import AppContainer
from kode_gateway.protocol.messages import ModelCard, ModelList, unix_now

router = APIRouter(prefix="/v1", tags=["models"])


@router.get("/models", response_model=ModelList)
def list_models(container: AppContainer = Depends(get_container)) -> ModelList:
    return ModelList(data=[ModelCard(id=container.settings.default_model, created=unix_now())])
