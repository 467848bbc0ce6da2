"""Uvicorn launcher."""

from __future__ import annotations

import logging

from ruleguard.config import EngineConfig, load_config

logger = logging.getLogger(__name__)


def run_server(config: EngineConfig | None = None) -> None:
    """Start the HTTP API server with uvicorn."""
    import uvicorn

    from ruleguard.server.app import create_app

    if config is None:
        config = load_config()

    logger.info(f"Starting ruleguard API on {config.host}:{config.port}")
    uvicorn.run(create_app(config), host=config.host, port=config.port)
