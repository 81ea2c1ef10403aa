"""Property listing schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from imobipro.models.enums import PropertyStatus, PropertyType


class PropertyCreateRequest(BaseModel):
    code: str = Field(min_length=1, max_length=60)
    title: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=10000)
    property_type: PropertyType
    status: PropertyStatus = PropertyStatus.AVAILABLE
    price: int = Field(gt=0)
    city: str | None = Field(default=None, max_length=120)
    neighborhood: str | None = Field(default=None, max_length=120)
    address: str | None = Field(default=None, max_length=255)
    bedrooms: int | None = Field(default=None, ge=0)
    bathrooms: int | None = Field(default=None, ge=0)
    area_m2: float | None = Field(default=None, gt=0)
    agent_id: int | None = None


class PropertyUpdateRequest(BaseModel):
    code: str | None = Field(default=None, min_length=1, max_length=60)
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=10000)
    property_type: PropertyType | None = None
    status: PropertyStatus | None = None
    price: int | None = Field(default=None, gt=0)
    city: str | None = Field(default=None, max_length=120)
    neighborhood: str | None = Field(default=None, max_length=120)
    address: str | None = Field(default=None, max_length=255)
    bedrooms: int | None = Field(default=None, ge=0)
    bathrooms: int | None = Field(default=None, ge=0)
    area_m2: float | None = Field(default=None, gt=0)
    agent_id: int | None = None


class PropertyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    company_id: int
    agent_id: int | None = None
    code: str
    title: str
    description: str | None = None
    property_type: PropertyType
    status: PropertyStatus
    price: int
    city: str | None = None
    neighborhood: str | None = None
    address: str | None = None
    bedrooms: int | None = None
    bathrooms: int | None = None
    area_m2: float | None = None
    created_at: datetime | None = None
