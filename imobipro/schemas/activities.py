"""Activity request/response schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from imobipro.models.enums import ActivityDirection, ActivityType


class ActivityCreateRequest(BaseModel):
    type: ActivityType
    title: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=5000)
    direction: ActivityDirection | None = None
    channel: str | None = Field(default=None, max_length=40)
    details: dict[str, Any] = Field(default_factory=dict)


class ActivityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    contact_id: int
    type: ActivityType
    title: str
    description: str | None = None
    direction: ActivityDirection | None = None
    channel: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    performed_by_id: int | None = None
    created_at: datetime
