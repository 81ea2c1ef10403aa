"""Report template, schedule and run schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from imobipro.models.enums import DeliveryChannel, ReportFrequency, ReportRunStatus, ReportType


class ReportTemplateCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=2000)
    report_type: ReportType
    body: str | None = Field(default=None, max_length=50000)


class ReportTemplateUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=2000)
    body: str | None = Field(default=None, max_length=50000)
    is_active: bool | None = None


class ReportTemplateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None = None
    report_type: ReportType
    body: str
    is_active: bool
    created_at: datetime | None = None


class TemplateValidationRequest(BaseModel):
    report_type: ReportType
    body: str = Field(max_length=50000)


class TemplateValidationResponse(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    variables: list[str] = Field(default_factory=list)


class GenerateReportRequest(BaseModel):
    template_id: int
    period_start: datetime | None = None
    period_end: datetime | None = None


class ReportRunResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    template_id: int | None = None
    scheduled_report_id: int | None = None
    status: ReportRunStatus
    period_start: datetime
    period_end: datetime
    content: str | None = None
    error_message: str | None = None
    created_at: datetime


class ScheduleCreateRequest(BaseModel):
    template_id: int
    name: str | None = Field(default=None, max_length=200)
    frequency: ReportFrequency
    channel: DeliveryChannel
    recipients: list[str] = Field(min_length=1, max_length=50)
    first_run_at: datetime | None = None


class ScheduleUpdateRequest(BaseModel):
    name: str | None = Field(default=None, max_length=200)
    frequency: ReportFrequency | None = None
    channel: DeliveryChannel | None = None
    recipients: list[str] | None = Field(default=None, max_length=50)
    is_active: bool | None = None
    next_run_at: datetime | None = None


class ScheduleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    template_id: int
    name: str
    frequency: ReportFrequency
    channel: DeliveryChannel
    recipients: list[str]
    is_active: bool
    next_run_at: datetime
    last_run_at: datetime | None = None
    anchor_day: int | None = None


class MetricsResponse(BaseModel):
    period_start: datetime
    period_end: datetime
    leads: dict
    appointments: dict
    agents: list[dict]
