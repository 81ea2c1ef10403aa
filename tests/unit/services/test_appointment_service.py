from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from imobipro.core.exceptions import ConflictError, InvalidTransitionError, NotFoundError, ValidationError
from imobipro.models import Activity, AppointmentStatus, Contact
from imobipro.models.enums import ActivityType
from imobipro.services.appointment_service import AppointmentService
from imobipro.services.calendar_service import CalendarService

START = datetime(2026, 11, 3, 13, 0, tzinfo=timezone.utc)


class _OfflineCalendar:
    """Google client that fails the test if it is ever called."""

    def __getattr__(self, name):
        raise AssertionError(f"unexpected Google call: {name}")


def _service(db_session) -> AppointmentService:
    return AppointmentService(db_session, calendar=CalendarService(db_session, client=_OfflineCalendar()))


def _contact(db_session, company, agent_id=None) -> Contact:
    contact = Contact(company_id=company.id, name="Paula Reis", phone="+5511966665555", agent_id=agent_id)
    db_session.add(contact)
    db_session.commit()
    return contact


def _book(service, context, contact, agent, start=START, minutes=60):
    return service.create_appointment(
        context,
        {"contact_id": contact.id, "agent_id": agent.id, "starts_at": start, "ends_at": start + timedelta(minutes=minutes)},
    )


def test_create_appointment_defaults(db_session, company, admin_context, agent):
    contact = _contact(db_session, company)

    appointment = _book(_service(db_session), admin_context, contact, agent)

    assert appointment.status == AppointmentStatus.SCHEDULED
    assert appointment.title == "Visita - Paula Reis"
    assert appointment.google_event_id is None


def test_agent_defaults_to_contact_owner(db_session, company, admin_context, agent):
    contact = _contact(db_session, company, agent_id=agent.id)
    appointment = _service(db_session).create_appointment(
        admin_context,
        {"contact_id": contact.id, "starts_at": START, "ends_at": START + timedelta(hours=1)},
    )
    assert appointment.agent_id == agent.id


def test_overlapping_slots_are_rejected(db_session, company, admin_context, agent, other_agent):
    contact = _contact(db_session, company)
    service = _service(db_session)
    _book(service, admin_context, contact, agent)

    with pytest.raises(ConflictError):
        _book(service, admin_context, contact, agent, start=START + timedelta(minutes=30))
    # Back-to-back and other agents are fine.
    _book(service, admin_context, contact, agent, start=START + timedelta(hours=1))
    _book(service, admin_context, contact, other_agent, start=START)


def test_canceled_appointments_free_the_slot(db_session, company, admin_context, agent):
    contact = _contact(db_session, company)
    service = _service(db_session)
    first = _book(service, admin_context, contact, agent)
    service.change_status(admin_context, first.id, AppointmentStatus.CANCELED)

    second = _book(service, admin_context, contact, agent)
    assert second.id != first.id


def test_invalid_window_is_rejected(db_session, company, admin_context, agent):
    contact = _contact(db_session, company)
    with pytest.raises(ValidationError):
        _book(_service(db_session), admin_context, contact, agent, minutes=0)


def test_completion_logs_visit(db_session, company, admin_context, agent):
    contact = _contact(db_session, company)
    service = _service(db_session)
    appointment = _book(service, admin_context, contact, agent)

    service.change_status(admin_context, appointment.id, AppointmentStatus.CONFIRMED)
    service.change_status(admin_context, appointment.id, AppointmentStatus.COMPLETED, note="Gostou da varanda")

    visit = db_session.query(Activity).filter_by(contact_id=contact.id, type=ActivityType.VISIT).one()
    assert visit.details["appointment_id"] == appointment.id
    db_session.refresh(contact)
    assert contact.interaction_count == 1
    with pytest.raises(InvalidTransitionError):
        service.change_status(admin_context, appointment.id, AppointmentStatus.CANCELED)


def test_reschedule_checks_overlap_and_status(db_session, company, admin_context, agent):
    contact = _contact(db_session, company)
    service = _service(db_session)
    first = _book(service, admin_context, contact, agent)
    second = _book(service, admin_context, contact, agent, start=START + timedelta(hours=2))

    with pytest.raises(ConflictError):
        service.reschedule(admin_context, second.id, {"starts_at": START + timedelta(minutes=30), "ends_at": START + timedelta(minutes=90)})

    moved = service.reschedule(admin_context, second.id, {"starts_at": START + timedelta(hours=3), "ends_at": START + timedelta(hours=4)})
    assert moved.starts_at.replace(tzinfo=timezone.utc) == START + timedelta(hours=3)

    service.change_status(admin_context, first.id, AppointmentStatus.NO_SHOW)
    with pytest.raises(ValidationError):
        service.reschedule(admin_context, first.id, {"title": "Nova visita"})


def test_agents_only_see_their_appointments(db_session, company, admin_context, agent_context, other_agent):
    contact = _contact(db_session, company)
    service = _service(db_session)
    foreign = _book(service, admin_context, contact, other_agent)

    with pytest.raises(NotFoundError):
        service.get_appointment(agent_context, foreign.id)
    items, total = service.list_appointments(agent_context)
    assert total == 0
    _, admin_total = service.list_appointments(admin_context)
    assert admin_total == 1
