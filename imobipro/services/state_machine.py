"""Canonical state transition rules for contacts, deals and appointments."""

from __future__ import annotations

from enum import Enum

from imobipro.core.exceptions import InvalidTransitionError
from imobipro.models.enums import AppointmentStatus, DealStage, LeadStage

FUNNEL_ORDER: tuple[LeadStage, ...] = (
    LeadStage.NEW,
    LeadStage.CONTACTED,
    LeadStage.QUALIFIED,
    LeadStage.INTERESTED,
    LeadStage.NEGOTIATING,
    LeadStage.CONVERTED,
)
QUALIFIED_STAGES = frozenset(FUNNEL_ORDER[FUNNEL_ORDER.index(LeadStage.QUALIFIED) :])

PIPELINE_ORDER: tuple[DealStage, ...] = (
    DealStage.LEAD_IN,
    DealStage.QUALIFICATION,
    DealStage.PROPOSAL,
    DealStage.NEGOTIATION,
    DealStage.WON,
)


class StateMachine:
    """Whitelist of allowed `current -> target` transitions."""

    def __init__(self, name: str, transitions: dict[Enum, set[Enum]]) -> None:
        self.name = name
        self._transitions = transitions

    def can_transition(self, current: Enum, target: Enum) -> bool:
        return target in self._transitions.get(current, set())

    def assert_transition(self, current: Enum, target: Enum) -> None:
        if not self.can_transition(current=current, target=target):
            raise InvalidTransitionError(
                f"{self.name} transition not allowed: {current.value} -> {target.value}"
            )

    def allowed_targets(self, current: Enum) -> set[Enum]:
        return set(self._transitions.get(current, set()))


def _funnel_transitions() -> dict[Enum, set[Enum]]:
    transitions: dict[Enum, set[Enum]] = {}
    for index, stage in enumerate(FUNNEL_ORDER[:-1]):
        transitions[stage] = {FUNNEL_ORDER[index + 1], LeadStage.LOST}
    transitions[LeadStage.CONVERTED] = set()
    # LOST only leaves through reopen(), which restores the remembered stage.
    transitions[LeadStage.LOST] = set()
    return transitions


LEAD_FUNNEL = StateMachine("Lead stage", _funnel_transitions())


def _pipeline_transitions() -> dict[Enum, set[Enum]]:
    transitions: dict[Enum, set[Enum]] = {}
    for index, stage in enumerate(PIPELINE_ORDER[:-1]):
        transitions[stage] = {PIPELINE_ORDER[index + 1], DealStage.LOST}
    transitions[DealStage.WON] = set()
    transitions[DealStage.LOST] = set()
    return transitions


DEAL_PIPELINE = StateMachine("Deal stage", _pipeline_transitions())

APPOINTMENT_FLOW = StateMachine(
    "Appointment status",
    {
        AppointmentStatus.SCHEDULED: {
            AppointmentStatus.CONFIRMED,
            AppointmentStatus.CANCELED,
            AppointmentStatus.NO_SHOW,
            AppointmentStatus.COMPLETED,
        },
        AppointmentStatus.CONFIRMED: {
            AppointmentStatus.COMPLETED,
            AppointmentStatus.CANCELED,
            AppointmentStatus.NO_SHOW,
        },
        AppointmentStatus.COMPLETED: set(),
        AppointmentStatus.CANCELED: set(),
        AppointmentStatus.NO_SHOW: set(),
    },
)


def next_stage(current: LeadStage) -> LeadStage:
    """Return the single forward step from `current`."""
    if current not in FUNNEL_ORDER or current == LeadStage.CONVERTED:
        raise InvalidTransitionError(f"Lead stage {current.value} has no forward step.")
    return FUNNEL_ORDER[FUNNEL_ORDER.index(current) + 1]


def assert_advance(current: LeadStage, target: LeadStage) -> None:
    if target == LeadStage.LOST:
        raise InvalidTransitionError("Use mark_lost to move a contact to LOST.")
    LEAD_FUNNEL.assert_transition(current, target)


def assert_mark_lost(current: LeadStage) -> None:
    LEAD_FUNNEL.assert_transition(current, LeadStage.LOST)


def reopen_target(current: LeadStage, stage_before_lost: LeadStage | None) -> LeadStage:
    if current != LeadStage.LOST:
        raise InvalidTransitionError(f"Only LOST contacts can be reopened (current: {current.value}).")
    if stage_before_lost is None or stage_before_lost in (LeadStage.LOST, LeadStage.CONVERTED):
        return LeadStage.NEW
    return stage_before_lost


def next_deal_stage(current: DealStage) -> DealStage:
    if current not in PIPELINE_ORDER or current == DealStage.WON:
        raise InvalidTransitionError(f"Deal stage {current.value} has no forward step.")
    return PIPELINE_ORDER[PIPELINE_ORDER.index(current) + 1]


def reopen_deal_target(current: DealStage, stage_before_lost: DealStage | None) -> DealStage:
    if current != DealStage.LOST:
        raise InvalidTransitionError(f"Only LOST deals can be reopened (current: {current.value}).")
    if stage_before_lost is None or stage_before_lost in (DealStage.LOST, DealStage.WON):
        return DealStage.LEAD_IN
    return stage_before_lost
