"""Schemas for user lifecycle endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class UserCreateRequest(BaseModel):
    user_id: Optional[UUID] = None


class UserResponse(BaseModel):
    user_id: UUID
    created_at: Optional[datetime]
    request_id: str
