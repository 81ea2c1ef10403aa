"""Google Calendar connection endpoints for API v1."""

from __future__ import annotations

from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, Header, Query
from sqlalchemy.orm import Session

from imobipro.api.v1._authz import authorize
from imobipro.core.dependencies import get_db_session
from imobipro.schemas.calendar import (
    CalendarAuthUrlResponse,
    CalendarCallbackRequest,
    CalendarEventsResponse,
    CalendarStatusResponse,
)
from imobipro.schemas.common import APIEnvelope
from imobipro.services.calendar_service import CalendarService
from imobipro.utils.dates import utcnow

router = APIRouter(prefix="/calendar/google", tags=["calendar"])


@router.get("/auth-url", response_model=CalendarAuthUrlResponse)
def auth_url(
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db_session),
) -> CalendarAuthUrlResponse:
    context = authorize(authorization, scopes=["calendar.connect"])
    return CalendarAuthUrlResponse(auth_url=CalendarService(db).authorization_url(context))


@router.get("/callback", response_model=CalendarStatusResponse)
def oauth_callback(
    code: str = Query(min_length=1),
    state: str = Query(min_length=1),
    db: Session = Depends(get_db_session),
) -> CalendarStatusResponse:
    """Redirect target of the Google consent screen; the signed state names the user."""
    credential = CalendarService(db).handle_callback(code, state)
    return CalendarStatusResponse(connected=True, calendar_id=credential.calendar_id, expires_at=credential.expires_at)


@router.post("/callback", response_model=CalendarStatusResponse)
def exchange_code(
    payload: CalendarCallbackRequest,
    db: Session = Depends(get_db_session),
) -> CalendarStatusResponse:
    credential = CalendarService(db).handle_callback(payload.code, payload.state)
    return CalendarStatusResponse(connected=True, calendar_id=credential.calendar_id, expires_at=credential.expires_at)


@router.get("/status", response_model=CalendarStatusResponse)
def calendar_status(
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db_session),
) -> CalendarStatusResponse:
    context = authorize(authorization, scopes=["calendar.connect"])
    return CalendarStatusResponse(**CalendarService(db).status(context))


@router.get("/events", response_model=CalendarEventsResponse)
def list_events(
    time_min: datetime | None = None,
    time_max: datetime | None = None,
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db_session),
) -> CalendarEventsResponse:
    context = authorize(authorization, scopes=["calendar.connect"])
    start = time_min or utcnow()
    end = time_max or start + timedelta(days=7)
    return CalendarEventsResponse(items=CalendarService(db).list_events(context, start, end))


@router.post("/disconnect", response_model=APIEnvelope)
def disconnect(
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db_session),
) -> APIEnvelope:
    context = authorize(authorization, scopes=["calendar.connect"])
    removed = CalendarService(db).disconnect(context)
    return APIEnvelope(message="disconnected" if removed else "not connected")
