"""Serve an ASGI application over HTTP with uvicorn."""

from __future__ import annotations

import logging
from typing import Any

import uvicorn

logger = logging.getLogger(__name__)


def _validate_host_port(host: str, port: int) -> None:
    """Validate host and port parameters."""
    if not host:
        raise ValueError("Host must not be empty")
    if not isinstance(port, int) or port < 1 or port > 65535:
        raise ValueError(f"Port must be between 1 and 65535, got {port}")


async def run_http(app: Any, host: str = "127.0.0.1", port: int = 8000, log_level: str = "info") -> None:
    """Serve ``app`` until the server is stopped."""
    _validate_host_port(host, port)
    logger.info("Starting HTTP server on %s:%d", host, port)
    config = uvicorn.Config(app, host=host, port=port, log_level=log_level)
    await uvicorn.Server(config).serve()
