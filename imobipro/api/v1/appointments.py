"""Appointment endpoints for API v1."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Header, Query, status
from sqlalchemy.orm import Session

from imobipro.api.v1._authz import authorize
from imobipro.core.dependencies import get_db_session
from imobipro.models.enums import AppointmentStatus
from imobipro.schemas.appointments import (
    AppointmentCreateRequest,
    AppointmentResponse,
    AppointmentStatusRequest,
    AppointmentUpdateRequest,
)
from imobipro.schemas.calendar import CalendarSyncResponse
from imobipro.schemas.common import PageResponse
from imobipro.services.appointment_service import AppointmentService

router = APIRouter(prefix="/appointments", tags=["appointments"])


@router.post("", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    payload: AppointmentCreateRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> AppointmentResponse:
    context = authorize(authorization, scopes=["appointments.write"], company_header=x_company_id)
    appointment = AppointmentService(db).create_appointment(
        context,
        payload.model_dump(exclude={"sync_calendar"}),
        sync_calendar=payload.sync_calendar,
    )
    return AppointmentResponse.model_validate(appointment)


@router.get("", response_model=PageResponse)
def list_appointments(
    agent_id: int | None = None,
    contact_id: int | None = None,
    status_filter: AppointmentStatus | None = Query(default=None, alias="status"),
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> PageResponse:
    context = authorize(authorization, scopes=["appointments.read"], company_header=x_company_id)
    items, total = AppointmentService(db).list_appointments(
        context,
        agent_id=agent_id,
        contact_id=contact_id,
        status=status_filter,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset,
    )
    return PageResponse(
        items=[AppointmentResponse.model_validate(item).model_dump(mode="json") for item in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{appointment_id}", response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> AppointmentResponse:
    context = authorize(authorization, scopes=["appointments.read"], company_header=x_company_id)
    return AppointmentResponse.model_validate(AppointmentService(db).get_appointment(context, appointment_id))


@router.patch("/{appointment_id}", response_model=AppointmentResponse)
def reschedule_appointment(
    appointment_id: int,
    payload: AppointmentUpdateRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> AppointmentResponse:
    context = authorize(authorization, scopes=["appointments.write"], company_header=x_company_id)
    appointment = AppointmentService(db).reschedule(context, appointment_id, payload.model_dump(exclude_unset=True))
    return AppointmentResponse.model_validate(appointment)


@router.post("/{appointment_id}/status", response_model=AppointmentResponse)
def change_status(
    appointment_id: int,
    payload: AppointmentStatusRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> AppointmentResponse:
    context = authorize(authorization, scopes=["appointments.write"], company_header=x_company_id)
    appointment = AppointmentService(db).change_status(context, appointment_id, payload.status, note=payload.note)
    return AppointmentResponse.model_validate(appointment)


@router.post("/{appointment_id}/sync", response_model=CalendarSyncResponse)
def sync_appointment(
    appointment_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> CalendarSyncResponse:
    context = authorize(authorization, scopes=["appointments.write", "calendar.connect"], company_header=x_company_id)
    event_id = AppointmentService(db).sync_to_calendar(context, appointment_id)
    return CalendarSyncResponse(appointment_id=appointment_id, google_event_id=event_id, synced=event_id is not None)
