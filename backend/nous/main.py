"""FastAPI application entrypoint."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request

from nous.api.routes import emotions, parse_task, users
from nous.core.config import settings
from nous.core.logging import configure_logging
from nous.observability.client import init_opik

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging(log_level=settings.log_level)
    init_opik()
    logger.info("%s starting (debug=%s)", settings.app_name, settings.debug)
    yield


app = FastAPI(title=settings.app_name, debug=settings.debug, lifespan=lifespan)


@app.middleware("http")
async def attach_request_id(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(uuid4())
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.get("/health", tags=["health"])
def health() -> dict:
    return {"status": "ok"}


app.include_router(users.router)
app.include_router(emotions.router)
app.include_router(parse_task.router)
