"""User management and agent profile schemas."""

from __future__ import annotations

from datetime import datetime, time

from pydantic import BaseModel, ConfigDict, Field

from imobipro.models.enums import UserRole


class AgentProfilePayload(BaseModel):
    timezone: str | None = Field(default=None, max_length=64)
    working_days: list[int] | None = None
    work_start: time | None = None
    work_end: time | None = None
    specializations: list[str] | None = None
    auto_assign_enabled: bool | None = None
    max_open_leads: int | None = Field(default=None, ge=1)
    max_daily_leads: int | None = Field(default=None, ge=1)


class UserCreateRequest(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    full_name: str = Field(min_length=1, max_length=255)
    phone: str | None = Field(default=None, max_length=32)
    password: str = Field(min_length=8, max_length=256)
    role: UserRole
    agent_profile: AgentProfilePayload | None = None


class UserUpdateRequest(BaseModel):
    full_name: str | None = Field(default=None, min_length=1, max_length=255)
    phone: str | None = Field(default=None, max_length=32)
    password: str | None = Field(default=None, min_length=8, max_length=256)
    is_active: bool | None = None


class AgentProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    timezone: str
    working_days: list[int]
    work_start: time
    work_end: time
    specializations: list[str]
    auto_assign_enabled: bool
    max_open_leads: int | None = None
    max_daily_leads: int | None = None
    last_assigned_at: datetime | None = None


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    company_id: int
    email: str
    full_name: str
    phone: str | None = None
    role: UserRole
    is_active: bool
    agent_profile: AgentProfileResponse | None = None
    created_at: datetime | None = None


class AgentWorkloadResponse(BaseModel):
    agent_id: int
    name: str
    is_active: bool
    open_leads: int
    assigned_today: int
    max_open_leads: int
    max_daily_leads: int
    eligible: bool
    reasons: list[str]
