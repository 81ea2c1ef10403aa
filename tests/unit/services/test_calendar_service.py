from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from imobipro.auth.jwt import create_state_token
from imobipro.core.config import get_config
from imobipro.core.exceptions import IntegrationError, NotFoundError, ValidationError
from imobipro.models import Appointment, CalendarCredential, Contact
from imobipro.services.appointment_service import AppointmentService
from imobipro.services.calendar_service import CalendarService, appointment_to_event
from imobipro.services.google_calendar_client import GoogleCalendarClient
from imobipro.utils.dates import utcnow


class _FakeGoogle:
    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.fail_revoke = False
        self.fail_create = False

    def build_auth_url(self, state):
        return f"https://accounts.example.com/auth?state={state}"

    def exchange_code(self, code):
        self.calls.append(("exchange", code))
        return {"access_token": "access-1", "refresh_token": "refresh-1", "expires_in": 3600, "scope": "calendar"}

    def refresh_access_token(self, refresh_token):
        self.calls.append(("refresh", refresh_token))
        return {"access_token": "access-2", "expires_in": 3600}

    def revoke_token(self, token):
        self.calls.append(("revoke", token))
        if self.fail_revoke:
            raise IntegrationError("google_calendar request failed: HTTP 400")

    def list_events(self, token, calendar_id, time_min, time_max):
        self.calls.append(("list", token, calendar_id))
        return [{"id": "evt-9", "summary": "Reunião"}]

    def create_event(self, token, calendar_id, event):
        self.calls.append(("create", token, event["summary"]))
        if self.fail_create:
            raise IntegrationError("google_calendar request failed: HTTP 503")
        return {"id": "evt-1"}

    def update_event(self, token, calendar_id, event_id, event):
        self.calls.append(("update", token, event_id))
        return {"id": event_id}

    def delete_event(self, token, calendar_id, event_id):
        self.calls.append(("delete", token, event_id))


def _connect(service, user, expires_at=None):
    credential = CalendarCredential(
        user_id=user.id,
        access_token="access-1",
        refresh_token="refresh-1",
        expires_at=expires_at or utcnow() + timedelta(hours=1),
    )
    service.db.add(credential)
    service.db.commit()
    return credential


def _appointment(db_session, company, agent) -> Appointment:
    contact = Contact(company_id=company.id, name="Rafael Dias", phone="+5511955554444")
    db_session.add(contact)
    db_session.commit()
    start = datetime(2026, 11, 5, 14, 0, tzinfo=timezone.utc)
    appointment = Appointment(
        company_id=company.id,
        contact_id=contact.id,
        agent_id=agent.id,
        title="Visita apartamento",
        starts_at=start,
        ends_at=start + timedelta(hours=1),
    )
    db_session.add(appointment)
    db_session.commit()
    return appointment


def test_callback_stores_tokens_for_state_user(db_session, agent, agent_context):
    google = _FakeGoogle()
    service = CalendarService(db_session, client=google)
    assert "state=" in service.authorization_url(agent_context)
    state = create_state_token(agent.id, agent.company_id, secret=get_config().JWT_SECRET)

    credential = service.handle_callback("auth-code", state)

    assert credential.user_id == agent.id
    assert credential.access_token == "access-1"
    assert credential.refresh_token == "refresh-1"
    assert service.status(agent_context)["connected"] is True


def test_callback_rejects_bad_state(db_session, agent):
    service = CalendarService(db_session, client=_FakeGoogle())
    with pytest.raises(ValidationError):
        service.handle_callback("auth-code", "not-a-token")
    wrong_secret = create_state_token(agent.id, agent.company_id, secret="other-secret")
    with pytest.raises(ValidationError):
        service.handle_callback("auth-code", wrong_secret)


def test_expired_token_is_refreshed(db_session, agent):
    google = _FakeGoogle()
    service = CalendarService(db_session, client=google)
    _connect(service, agent, expires_at=utcnow() - timedelta(minutes=5))

    token, _ = service.access_token_for(agent.id)

    assert token == "access-2"
    assert ("refresh", "refresh-1") in google.calls


def test_sync_creates_then_updates_event(db_session, company, agent):
    google = _FakeGoogle()
    service = CalendarService(db_session, client=google)
    _connect(service, agent)
    appointment = _appointment(db_session, company, agent)

    assert service.sync_appointment(appointment) == "evt-1"
    assert service.sync_appointment(appointment) == "evt-1"
    assert [call[0] for call in google.calls] == ["create", "update"]


def test_sync_is_noop_for_unconnected_agent(db_session, company, agent):
    google = _FakeGoogle()
    appointment = _appointment(db_session, company, agent)
    assert CalendarService(db_session, client=google).sync_appointment(appointment) is None
    assert google.calls == []


def test_calendar_failure_does_not_block_booking(db_session, company, admin_context, agent):
    google = _FakeGoogle()
    google.fail_create = True
    calendar = CalendarService(db_session, client=google)
    _connect(calendar, agent)
    contact = Contact(company_id=company.id, name="Lucas Prado", phone="+5511944443333")
    db_session.add(contact)
    db_session.commit()
    service = AppointmentService(db_session, calendar=calendar)
    start = datetime(2026, 11, 6, 12, 0, tzinfo=timezone.utc)

    appointment = service.create_appointment(
        admin_context,
        {"contact_id": contact.id, "agent_id": agent.id, "starts_at": start, "ends_at": start + timedelta(hours=1)},
    )

    assert appointment.id is not None
    assert appointment.google_event_id is None
    with pytest.raises(IntegrationError):
        service.sync_to_calendar(admin_context, appointment.id)


def test_disconnect_drops_tokens_even_if_revoke_fails(db_session, agent, agent_context):
    google = _FakeGoogle()
    google.fail_revoke = True
    service = CalendarService(db_session, client=google)
    _connect(service, agent)

    assert service.disconnect(agent_context) is True
    assert service.is_connected(agent.id) is False
    assert service.disconnect(agent_context) is False


def test_list_events_requires_connection_and_valid_range(db_session, agent, agent_context):
    service = CalendarService(db_session, client=_FakeGoogle())
    now = utcnow()
    with pytest.raises(NotFoundError):
        service.list_events(agent_context, now, now + timedelta(days=1))
    _connect(service, agent)
    with pytest.raises(ValidationError):
        service.list_events(agent_context, now, now - timedelta(days=1))
    assert service.list_events(agent_context, now, now + timedelta(days=1))[0]["id"] == "evt-9"


def test_event_payload_and_auth_url():
    start = datetime(2026, 11, 5, 14, 0, tzinfo=timezone.utc)
    appointment = Appointment(id=3, title="Visita", notes="Levar chaves", starts_at=start, ends_at=start + timedelta(hours=1))
    event = appointment_to_event(appointment)
    assert event["start"]["dateTime"] == "2026-11-05T14:00:00+00:00"
    assert event["extendedProperties"]["private"]["imobiproAppointmentId"] == "3"

    config = replace(get_config(), GOOGLE_CLIENT_ID="client-id", GOOGLE_CLIENT_SECRET="client-secret")
    url = GoogleCalendarClient(config=config).build_auth_url("state-token")
    assert url.startswith("https://accounts.google.com/o/oauth2/v2/auth?")
    assert "access_type=offline" in url
    assert "state=state-token" in url
