from __future__ import annotations

import pytest

from imobipro.core.exceptions import InvalidTransitionError
from imobipro.models.enums import AppointmentStatus, DealStage, LeadStage
from imobipro.services.state_machine import (
    APPOINTMENT_FLOW,
    DEAL_PIPELINE,
    LEAD_FUNNEL,
    assert_advance,
    assert_mark_lost,
    next_deal_stage,
    next_stage,
    reopen_deal_target,
    reopen_target,
)


def test_funnel_moves_one_step_forward_only():
    assert LEAD_FUNNEL.can_transition(LeadStage.NEW, LeadStage.CONTACTED) is True
    assert LEAD_FUNNEL.can_transition(LeadStage.NEW, LeadStage.QUALIFIED) is False
    assert LEAD_FUNNEL.can_transition(LeadStage.QUALIFIED, LeadStage.CONTACTED) is False
    with pytest.raises(InvalidTransitionError):
        assert_advance(LeadStage.NEW, LeadStage.NEGOTIATING)


def test_next_stage_walks_the_funnel():
    assert next_stage(LeadStage.NEW) == LeadStage.CONTACTED
    assert next_stage(LeadStage.NEGOTIATING) == LeadStage.CONVERTED
    with pytest.raises(InvalidTransitionError):
        next_stage(LeadStage.CONVERTED)
    with pytest.raises(InvalidTransitionError):
        next_stage(LeadStage.LOST)


def test_lost_is_reached_only_through_mark_lost():
    with pytest.raises(InvalidTransitionError):
        assert_advance(LeadStage.CONTACTED, LeadStage.LOST)
    assert_mark_lost(LeadStage.CONTACTED)
    with pytest.raises(InvalidTransitionError):
        assert_mark_lost(LeadStage.CONVERTED)
    with pytest.raises(InvalidTransitionError):
        assert_mark_lost(LeadStage.LOST)


def test_reopen_restores_previous_stage_or_new():
    assert reopen_target(LeadStage.LOST, LeadStage.INTERESTED) == LeadStage.INTERESTED
    assert reopen_target(LeadStage.LOST, None) == LeadStage.NEW
    with pytest.raises(InvalidTransitionError):
        reopen_target(LeadStage.CONTACTED, None)


def test_appointment_terminal_states_are_final():
    APPOINTMENT_FLOW.assert_transition(AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED)
    APPOINTMENT_FLOW.assert_transition(AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED)
    for terminal in (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELED, AppointmentStatus.NO_SHOW):
        assert APPOINTMENT_FLOW.allowed_targets(terminal) == set()
    with pytest.raises(InvalidTransitionError):
        APPOINTMENT_FLOW.assert_transition(AppointmentStatus.CANCELED, AppointmentStatus.SCHEDULED)


def test_deal_pipeline_steps_forward_and_closes():
    assert next_deal_stage(DealStage.LEAD_IN) == DealStage.QUALIFICATION
    assert next_deal_stage(DealStage.NEGOTIATION) == DealStage.WON
    assert DEAL_PIPELINE.can_transition(DealStage.PROPOSAL, DealStage.LOST) is True
    assert DEAL_PIPELINE.can_transition(DealStage.PROPOSAL, DealStage.WON) is False
    assert DEAL_PIPELINE.allowed_targets(DealStage.WON) == set()
    with pytest.raises(InvalidTransitionError):
        next_deal_stage(DealStage.WON)
    with pytest.raises(InvalidTransitionError):
        DEAL_PIPELINE.assert_transition(DealStage.LOST, DealStage.NEGOTIATION)


def test_reopened_deal_returns_to_its_last_open_stage():
    assert reopen_deal_target(DealStage.LOST, DealStage.PROPOSAL) == DealStage.PROPOSAL
    assert reopen_deal_target(DealStage.LOST, None) == DealStage.LEAD_IN
    with pytest.raises(InvalidTransitionError):
        reopen_deal_target(DealStage.WON, DealStage.NEGOTIATION)
