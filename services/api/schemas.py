from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class UploadResponse(BaseModel):
    success: bool = True
    filename: str
    result: Any = None


class ErrorResponse(BaseModel):
    error: str
    kind: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    status: str
    timestamp: str | None = None
