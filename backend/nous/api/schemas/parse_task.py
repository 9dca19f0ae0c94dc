"""Schemas for the task parser endpoint."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class ParseTaskRequest(BaseModel):
    input: str = Field(..., max_length=2000)
    reference_time: Optional[datetime] = Field(
        default=None,
        description="Instant used to resolve relative dates; defaults to now in the configured timezone.",
    )


class ParseTaskInfo(BaseModel):
    name: str
    version: str
    description: str
    examples: List[str]
