"""Natural-language task parser routes."""
from __future__ import annotations

from datetime import datetime
from time import perf_counter
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, HTTPException, Request, status

from nous.api.schemas.parse_task import ParseTaskInfo, ParseTaskRequest
from nous.core.config import settings
from nous.observability.metrics import log_metric
from nous.observability.tracing import trace
from nous.services.task_parser import (
    InvalidInput,
    ParsedTask,
    ParseFailure,
    TextCompleter,
    UpstreamUnavailable,
    get_task_completer,
    parse_utterance,
)

router = APIRouter()

EXAMPLES = [
    "Call mom tomorrow at 3pm",
    "Buy groceries @errands",
    "Finish report #work high priority",
    "Water plants every monday",
    "Quick email to boss about meeting",
    "Read book for 30 min @home low priority",
]


@router.post("/parse-task", response_model=ParsedTask, tags=["parse-task"])
def parse_task(
    payload: ParseTaskRequest,
    request: Request,
    completer: TextCompleter = Depends(get_task_completer),
) -> ParsedTask:
    """Parse free text into a structured task."""
    request_id = getattr(request.state, "request_id", None)
    now = _reference_time(payload.reference_time)
    metadata = {"route": "/parse-task", "text_length": len(payload.input), "request_id": request_id}
    start = perf_counter()

    with trace("parse_task", metadata=metadata, request_id=request_id):
        outcome = parse_utterance(payload.input, now, completer)

    latency_ms = (perf_counter() - start) * 1000
    log_metric("parse_task.latency_ms", latency_ms, metadata={"outcome": outcome.kind})
    log_metric("parse_task.outcome", 1, metadata={"outcome": outcome.kind})

    if isinstance(outcome, InvalidInput):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail={"error": outcome.message})
    if isinstance(outcome, UpstreamUnavailable):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error": "Task parser unavailable", "reason": outcome.reason},
        )
    if isinstance(outcome, ParseFailure):
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error": "Failed to parse task", "raw": outcome.raw},
        )

    log_metric("parse_task.confidence", outcome.task.confidence, metadata={"type": outcome.task.type})
    return outcome.task


@router.get("/parse-task", response_model=ParseTaskInfo, tags=["parse-task"])
def parse_task_info() -> ParseTaskInfo:
    return ParseTaskInfo(
        name="Natural Language Task Parser",
        version="1.0.0",
        description="Parse natural language into structured task data",
        examples=EXAMPLES,
    )


def _reference_time(value: datetime | None) -> datetime:
    tz = ZoneInfo(settings.parser_timezone)
    if value is None:
        return datetime.now(tz)
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value
