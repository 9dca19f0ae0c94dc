"""Lightweight metric emission."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from nous.observability.client import get_opik_client

logger = logging.getLogger("nous.metrics")


def log_metric(name: str, value: float, metadata: Optional[Dict[str, Any]] = None) -> None:
    """Log a metric sample and mirror it to Opik when tracing is enabled."""
    tags = metadata or {}
    logger.info("metric %s=%s %s", name, value, tags)

    client = get_opik_client()
    if client is None:
        return
    try:
        client.trace(name=f"metric.{name}", metadata={"value": value, **tags}).end()
    except Exception:  # pragma: no cover - metrics are best effort
        logger.debug("Failed to send metric %s to Opik", name, exc_info=True)
