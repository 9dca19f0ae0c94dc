"""Tracing helpers wrapping Opik traces."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from nous.observability.client import get_opik_client

logger = logging.getLogger(__name__)


@contextmanager
def trace(
    name: str,
    metadata: Optional[Dict[str, Any]] = None,
    user_id: Optional[str] = None,
    request_id: Optional[str] = None,
) -> Iterator[Any]:
    """Open an Opik trace for the block, or yield ``None`` when tracing is off.

    Exceptions raised inside the block are recorded on the trace and re-raised.
    """
    client = get_opik_client()
    if client is None:
        yield None
        return

    payload = dict(metadata or {})
    if user_id:
        payload.setdefault("user_id", user_id)
    if request_id:
        payload.setdefault("request_id", request_id)

    try:
        span = client.trace(name=name, metadata=payload)
    except Exception:  # pragma: no cover - tracing must never break a request
        logger.warning("Could not open trace %s", name, exc_info=True)
        yield None
        return

    try:
        yield span
    except Exception as exc:
        _end(span, {"error": type(exc).__name__})
        raise
    else:
        _end(span, None)


def _end(span: Any, output: Optional[Dict[str, Any]]) -> None:
    try:
        span.end(output=output)
    except Exception:  # pragma: no cover
        logger.debug("Failed to close trace", exc_info=True)
