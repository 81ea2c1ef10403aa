"""Appointment schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from imobipro.models.enums import AppointmentStatus


class AppointmentCreateRequest(BaseModel):
    contact_id: int
    agent_id: int | None = None
    property_id: int | None = None
    title: str | None = Field(default=None, max_length=200)
    notes: str | None = Field(default=None, max_length=5000)
    location: str | None = Field(default=None, max_length=255)
    starts_at: datetime
    ends_at: datetime
    sync_calendar: bool = True

    @model_validator(mode="after")
    def _check_window(self) -> "AppointmentCreateRequest":
        if self.ends_at <= self.starts_at:
            raise ValueError("ends_at must be after starts_at.")
        return self


class AppointmentUpdateRequest(BaseModel):
    title: str | None = Field(default=None, max_length=200)
    notes: str | None = Field(default=None, max_length=5000)
    location: str | None = Field(default=None, max_length=255)
    property_id: int | None = None
    starts_at: datetime | None = None
    ends_at: datetime | None = None


class AppointmentStatusRequest(BaseModel):
    status: AppointmentStatus
    note: str | None = Field(default=None, max_length=2000)


class AppointmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    company_id: int
    contact_id: int
    agent_id: int
    property_id: int | None = None
    title: str
    notes: str | None = None
    location: str | None = None
    starts_at: datetime
    ends_at: datetime
    status: AppointmentStatus
    google_event_id: str | None = None
    created_at: datetime | None = None
