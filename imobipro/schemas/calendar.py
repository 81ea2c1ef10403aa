"""Google Calendar connection schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel


class CalendarAuthUrlResponse(BaseModel):
    auth_url: str


class CalendarCallbackRequest(BaseModel):
    code: str
    state: str


class CalendarStatusResponse(BaseModel):
    connected: bool
    calendar_id: str | None = None
    expires_at: datetime | None = None


class CalendarEventsResponse(BaseModel):
    items: list[dict[str, Any]]


class CalendarSyncResponse(BaseModel):
    appointment_id: int
    google_event_id: str | None = None
    synced: bool
