"""Common schema module."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class APIEnvelope(BaseModel):
    status: str = "ok"
    message: str | None = None


class Pagination(BaseModel):
    limit: int = Field(default=50, ge=1, le=500)
    offset: int = Field(default=0, ge=0)


class PageResponse(BaseModel):
    items: list[Any]
    total: int
    limit: int
    offset: int


class ErrorEnvelope(BaseModel):
    status: str = "error"
    error_code: str
    detail: str
    errors: list[dict[str, Any]] | None = None
