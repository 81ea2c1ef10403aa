from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from imobipro.core.config import get_config
from imobipro.core.exceptions import NotFoundError, ValidationError
from imobipro.models import Activity, AgentProfile, Contact, LeadStage, PropertyType, User
from imobipro.models.enums import ActivityType
from imobipro.services.assignment_service import (
    ASSIGNED,
    UNASSIGNED,
    AgentCandidate,
    AssignmentService,
    covers_specializations,
    is_within_working_hours,
    pick_agent,
)

# 2026-10-19 is a Monday; Sao Paulo is UTC-3.
MONDAY_NOON = datetime(2026, 10, 19, 15, 0, tzinfo=timezone.utc)


def _profile(**overrides) -> AgentProfile:
    values = {
        "user_id": 1,
        "timezone": "America/Sao_Paulo",
        "working_days": [0, 1, 2, 3, 4],
        "work_start": time(9, 0),
        "work_end": time(18, 0),
        "specializations": [],
    }
    values.update(overrides)
    return AgentProfile(**values)


SAO_PAULO = ZoneInfo("America/Sao_Paulo")


def _local(day: int, hour: int) -> datetime:
    return datetime(2026, 10, day, hour, 0, tzinfo=SAO_PAULO)


def test_working_hours_respect_days_and_window():
    profile = _profile()
    assert is_within_working_hours(profile, MONDAY_NOON) is True
    assert is_within_working_hours(profile, _local(19, 8)) is False
    assert is_within_working_hours(profile, _local(19, 18)) is False
    assert is_within_working_hours(profile, _local(18, 12)) is False


def test_overnight_window_belongs_to_the_opening_day():
    profile = _profile(working_days=[0], work_start=time(22, 0), work_end=time(6, 0))
    assert is_within_working_hours(profile, _local(19, 23)) is True
    # Tuesday 02:00 is still Monday's shift.
    assert is_within_working_hours(profile, datetime(2026, 10, 20, 5, 0, tzinfo=timezone.utc)) is True
    # Monday 02:00 belongs to Sunday's shift, which is off.
    assert is_within_working_hours(profile, datetime(2026, 10, 19, 5, 0, tzinfo=timezone.utc)) is False
    assert is_within_working_hours(profile, MONDAY_NOON) is False


def test_specializations_must_cover_contact_tags():
    assert covers_specializations(_profile(specializations=[]), {"APARTMENT", "PINHEIROS"}) is True
    assert covers_specializations(_profile(specializations=["apartment", "Pinheiros"]), {"APARTMENT", "PINHEIROS"}) is True
    assert covers_specializations(_profile(specializations=["HOUSE"]), {"APARTMENT"}) is False


def test_pick_agent_tie_breaks():
    old = MONDAY_NOON - timedelta(days=3)
    recent = MONDAY_NOON - timedelta(hours=1)
    busy = AgentCandidate(user=User(id=1), profile=_profile(last_assigned_at=None), open_leads=5)
    never = AgentCandidate(user=User(id=4), profile=_profile(last_assigned_at=None), open_leads=2)
    oldest = AgentCandidate(user=User(id=2), profile=_profile(last_assigned_at=old), open_leads=2)
    newest = AgentCandidate(user=User(id=3), profile=_profile(last_assigned_at=recent), open_leads=2)

    assert pick_agent([busy, oldest, newest, never]).user.id == 4
    assert pick_agent([busy, oldest, newest]).user.id == 2

    twin = AgentCandidate(user=User(id=7), profile=_profile(last_assigned_at=old), open_leads=2)
    assert pick_agent([twin, oldest]).user.id == 2

    oldest.reasons.append("inactive")
    assert pick_agent([oldest]) is None


def _contact(db_session, company, name="Lead", **fields) -> Contact:
    contact = Contact(company_id=company.id, name=name, phone=fields.pop("phone", None), **fields)
    db_session.add(contact)
    db_session.commit()
    return contact


def test_assign_contact_picks_least_loaded_agent(db_session, company, agent, other_agent):
    _contact(db_session, company, "Existing", agent_id=agent.id)
    lead = _contact(db_session, company, "New lead")

    result = AssignmentService(db_session).assign_contact(company.id, lead.id, now=MONDAY_NOON)

    assert result.status == ASSIGNED
    assert result.agent_id == other_agent.id
    db_session.refresh(lead)
    assert lead.agent_id == other_agent.id
    activity = db_session.query(Activity).filter_by(contact_id=lead.id, type=ActivityType.ASSIGNMENT).one()
    assert activity.details["agent_id"] == other_agent.id
    assert other_agent.agent_profile.last_assigned_at is not None


def test_assign_contact_leaves_lead_unassigned_when_nobody_is_eligible(db_session, company, make_user):
    make_user("off@imobiliaria.test", working_days=[5, 6], work_start=time(9, 0), work_end=time(18, 0))
    make_user("paused@imobiliaria.test", auto_assign_enabled=False)
    lead = _contact(db_session, company)

    result = AssignmentService(db_session).assign_contact(company.id, lead.id, now=MONDAY_NOON)

    assert result.status == UNASSIGNED
    assert result.candidates_considered == 2
    db_session.refresh(lead)
    assert lead.agent_id is None


def test_caps_exclude_agents(db_session, company, make_user):
    capped = make_user("capped@imobiliaria.test", max_open_leads=1)
    daily = make_user("daily@imobiliaria.test", max_daily_leads=1, assignments_day=date(2026, 10, 19), assignments_today=1)
    _contact(db_session, company, "Open", agent_id=capped.id)
    _contact(db_session, company, "Today", agent_id=daily.id)
    _contact(db_session, company, "Closed", agent_id=daily.id, stage=LeadStage.CONVERTED)

    candidates = {c.user.id: c for c in AssignmentService(db_session).evaluate_agents(company.id, now=MONDAY_NOON)}

    assert candidates[capped.id].reasons == ["open_cap_reached"]
    assert candidates[daily.id].open_leads == 1
    assert candidates[daily.id].assigned_today == 1
    assert candidates[daily.id].reasons == ["daily_cap_reached"]


def test_daily_cap_counts_the_agent_local_day(db_session, company, make_user):
    agent = make_user("local@imobiliaria.test", max_daily_leads=1)
    service = AssignmentService(db_session)
    # 01:00 UTC on Monday is still Sunday evening in Sao Paulo.
    sunday_night = datetime(2026, 10, 19, 1, 0, tzinfo=timezone.utc)
    service.assign_contact(company.id, _contact(db_session, company, "Sunday").id, now=sunday_night)
    assert agent.agent_profile.assignments_day == date(2026, 10, 18)

    [candidate] = service.evaluate_agents(company.id, now=MONDAY_NOON)

    assert candidate.assigned_today == 0
    assert candidate.eligible is True


def test_daily_cap_still_counts_leads_moved_away(db_session, company, admin_context, make_user):
    capped = make_user("capped@imobiliaria.test", max_daily_leads=1)
    paused = make_user("paused@imobiliaria.test", auto_assign_enabled=False)
    first = _contact(db_session, company, "First")
    second = _contact(db_session, company, "Second")
    service = AssignmentService(db_session)

    assert service.assign_contact(company.id, first.id, now=MONDAY_NOON).agent_id == capped.id
    service.reassign_contact(admin_context, first.id, paused.id)
    result = service.assign_contact(company.id, second.id, now=MONDAY_NOON + timedelta(minutes=5))

    assert result.status == UNASSIGNED
    candidates = {c.user.id: c for c in service.evaluate_agents(company.id, now=MONDAY_NOON)}
    assert candidates[capped.id].assigned_today == 1
    assert candidates[capped.id].reasons == ["daily_cap_reached"]


def test_explicit_zero_cap_is_not_replaced_by_default(db_session, company, make_user):
    make_user("zero@imobiliaria.test", max_daily_leads=0)

    [candidate] = AssignmentService(db_session).evaluate_agents(company.id, now=MONDAY_NOON)

    assert candidate.reasons == ["daily_cap_reached"]


def test_config_caps_apply_when_profile_has_none(db_session, company, agent):
    config = replace(get_config(), ASSIGNMENT_MAX_OPEN_LEADS=1)
    _contact(db_session, company, "Open", agent_id=agent.id)

    [candidate] = AssignmentService(db_session, config=config).evaluate_agents(company.id, now=MONDAY_NOON)

    assert "open_cap_reached" in candidate.reasons


def test_specialization_mismatch_skips_agent(db_session, company, make_user):
    houses = make_user("casas@imobiliaria.test", specializations=["HOUSE"])
    flats = make_user("aptos@imobiliaria.test", specializations=["APARTMENT", "MOEMA"])
    lead = _contact(db_session, company, property_type=PropertyType.APARTMENT, preferred_location="Moema")

    result = AssignmentService(db_session).assign_contact(company.id, lead.id, now=MONDAY_NOON)

    assert result.agent_id == flats.id
    assert result.agent_id != houses.id


def test_closed_or_missing_contacts_cannot_be_assigned(db_session, company, agent):
    lost = _contact(db_session, company, stage=LeadStage.LOST)
    service = AssignmentService(db_session)
    with pytest.raises(ValidationError):
        service.assign_contact(company.id, lost.id, now=MONDAY_NOON)
    with pytest.raises(NotFoundError):
        service.assign_contact(company.id, 9999, now=MONDAY_NOON)


def test_manual_reassign_ignores_eligibility_but_requires_active_agent(db_session, company, admin, admin_context, make_user):
    paused = make_user("paused@imobiliaria.test", auto_assign_enabled=False)
    lead = _contact(db_session, company)
    service = AssignmentService(db_session)

    result = service.reassign_contact(admin_context, lead.id, paused.id)
    assert result.agent_id == paused.id

    with pytest.raises(ValidationError):
        service.reassign_contact(admin_context, lead.id, admin.id)

    paused.is_active = False
    db_session.commit()
    with pytest.raises(ValidationError):
        service.reassign_contact(admin_context, lead.id, paused.id)


def test_workload_reports_every_agent(db_session, company, agent, other_agent):
    _contact(db_session, company, "Open", agent_id=agent.id)

    rows = AssignmentService(db_session).workload(company.id, now=MONDAY_NOON)

    by_agent = {row["agent_id"]: row for row in rows}
    assert by_agent[agent.id]["open_leads"] == 1
    assert by_agent[other_agent.id]["open_leads"] == 0
    assert by_agent[agent.id]["eligible"] is True
