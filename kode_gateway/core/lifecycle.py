"""Lifecycle hooks for startup diagnostics and shutdown cleanup."""

from __future__ import annotations

from kode_gateway.core.container import AppContainer
from kode_gateway.infra.observability.logger import get_logger

logger = get_logger(__name__)


def on_startup(container: AppContainer) -> None:
    settings = container.settings
    container.settings.work_dir.mkdir(parents=True, exist_ok=True)
    logger.info(
        "gateway.startup model=%s store_dir=%s work_dir=%s sessions=%s llm_enabled=%s",
        settings.default_model,
        settings.store_dir,
        settings.work_dir,
        container.session_store.count(),
        bool(container.llm_client and container.llm_client.enabled),
    )


async def on_shutdown(container: AppContainer) -> None:
    if container.llm_client is not None:
        await container.llm_client.aclose()
    logger.info("Kode agent gateway shutdown complete.")
