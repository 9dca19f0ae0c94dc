"""Opik client bootstrap."""
from __future__ import annotations

import logging

import opik

from nous.core.config import settings

logger = logging.getLogger(__name__)

_client: opik.Opik | None = None


def init_opik() -> opik.Opik | None:
    """Create the shared Opik client when tracing is enabled."""
    global _client
    if not settings.opik_enabled:
        logger.info("Opik tracing disabled")
        return None
    if _client is not None:
        return _client
    try:
        _client = opik.Opik(project_name=settings.opik_project, api_key=settings.opik_api_key)
    except Exception:
        logger.exception("Failed to initialise Opik; tracing disabled for this process")
        _client = None
        return None
    logger.info("Opik tracing enabled (project=%s)", settings.opik_project)
    return _client


def get_opik_client() -> opik.Opik | None:
    return _client
