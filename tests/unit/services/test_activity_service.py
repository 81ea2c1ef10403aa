from __future__ import annotations

import pytest

from imobipro.core.exceptions import ImmutableRecordError, NotFoundError, ValidationError
from imobipro.models import Activity, Contact
from imobipro.models.enums import ActivityDirection, ActivityType
from imobipro.services.activity_service import ActivityService


def _contact(db_session, company, agent_id=None) -> Contact:
    contact = Contact(company_id=company.id, name="Joao Lima", phone="+5511977776666", agent_id=agent_id)
    db_session.add(contact)
    db_session.commit()
    return contact


def test_interaction_bumps_engagement_and_rescores(db_session, company, admin_context):
    contact = _contact(db_session, company)

    activity = ActivityService(db_session).log_activity(
        admin_context,
        contact.id,
        ActivityType.CALL,
        "Ligação de qualificação",
        direction=ActivityDirection.OUTBOUND,
    )

    assert activity.performed_by_id == admin_context.user_id
    db_session.refresh(contact)
    assert contact.interaction_count == 1
    assert contact.last_interaction_at is not None
    assert contact.lead_score == 2
    score_change = db_session.query(Activity).filter_by(contact_id=contact.id, type=ActivityType.SCORE_CHANGE).one()
    assert score_change.details["current"] == 2


def test_notes_do_not_count_as_interactions(db_session, company, admin_context):
    contact = _contact(db_session, company)
    ActivityService(db_session).log_activity(admin_context, contact.id, ActivityType.NOTE, "Cliente tem dois filhos")
    db_session.refresh(contact)
    assert contact.interaction_count == 0


def test_system_types_cannot_be_logged_by_hand(db_session, company, admin_context):
    contact = _contact(db_session, company)
    service = ActivityService(db_session)
    for activity_type in (ActivityType.STAGE_CHANGE, ActivityType.ASSIGNMENT, ActivityType.SCORE_CHANGE):
        with pytest.raises(ValidationError):
            service.log_activity(admin_context, contact.id, activity_type, "manual")
    with pytest.raises(ValidationError):
        service.log_activity(admin_context, contact.id, ActivityType.NOTE, "   ")


def test_agents_cannot_touch_foreign_contacts(db_session, company, agent_context, other_agent):
    contact = _contact(db_session, company, agent_id=other_agent.id)
    service = ActivityService(db_session)
    with pytest.raises(NotFoundError):
        service.log_activity(agent_context, contact.id, ActivityType.NOTE, "Oi")
    with pytest.raises(NotFoundError):
        service.list_activities(agent_context, contact.id)


def test_activities_are_append_only(db_session, company, admin_context):
    contact = _contact(db_session, company)
    activity = ActivityService(db_session).log_activity(admin_context, contact.id, ActivityType.NOTE, "Original")

    activity.title = "Editado"
    with pytest.raises(ImmutableRecordError):
        db_session.commit()
    db_session.rollback()

    db_session.refresh(activity)
    assert activity.title == "Original"


def test_list_activities_newest_first(db_session, company, admin_context):
    contact = _contact(db_session, company)
    service = ActivityService(db_session)
    first = service.log_activity(admin_context, contact.id, ActivityType.NOTE, "Primeira")
    second = service.log_activity(admin_context, contact.id, ActivityType.NOTE, "Segunda")

    items, total = service.list_activities(admin_context, contact.id)

    assert total == 2
    assert [item.id for item in items] == [second.id, first.id]


def test_failed_commit_leaves_session_usable(db_session, company, admin_context):
    contact = _contact(db_session, company)
    service = ActivityService(db_session)
    activity = service.log_activity(admin_context, contact.id, ActivityType.NOTE, "Original")

    activity.title = "Editado"
    with pytest.raises(ImmutableRecordError):
        service.commit()

    second = service.log_activity(admin_context, contact.id, ActivityType.NOTE, "Depois")
    assert second.id is not None
    assert db_session.get(Activity, activity.id).title == "Original"
