"""Automatic and manual lead assignment to agents."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from imobipro.auth.company_context import CompanyContext
from imobipro.core.config import Config, get_config
from imobipro.core.exceptions import NotFoundError, ValidationError
from imobipro.models.contact import Contact
from imobipro.models.enums import CLOSED_LEAD_STAGES, ActivityType, UserRole
from imobipro.models.user import AgentProfile, User
from imobipro.services.activity_service import append_activity
from imobipro.services.base_service import BaseService
from imobipro.services.n8n_client import LeadEventPublisher
from imobipro.utils.dates import as_utc, utcnow
from imobipro.utils.validators import normalize_tag, normalize_tags

logger = logging.getLogger(__name__)

ASSIGNED = "assigned"
UNASSIGNED = "unassigned"


@dataclass
class AgentCandidate:
    user: User
    profile: AgentProfile
    open_leads: int = 0
    assigned_today: int = 0
    reasons: list[str] = field(default_factory=list)

    @property
    def eligible(self) -> bool:
        return not self.reasons


@dataclass(frozen=True)
class AssignmentResult:
    status: str
    contact_id: int
    agent_id: int | None = None
    agent_name: str | None = None
    reason: str = ""
    candidates_considered: int = 0


def agent_timezone(profile: AgentProfile, default: str) -> ZoneInfo:
    try:
        return ZoneInfo(profile.timezone or default)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(
            "assignment.agent.invalid_timezone",
            extra={"event": "assignment.agent.invalid_timezone", "user_id": profile.user_id},
        )
        return ZoneInfo(default)


def is_within_working_hours(profile: AgentProfile, now: datetime, default_timezone: str = "UTC") -> bool:
    """True when `now` falls inside the agent's local working window.

    Windows whose end is before their start run overnight; the part after
    midnight belongs to the working day on which the window opened.
    """
    local = as_utc(now).astimezone(agent_timezone(profile, default_timezone))
    days = set(profile.working_days or [])
    start, end = profile.work_start, profile.work_end
    current = local.time().replace(tzinfo=None)

    if start == end:
        return local.weekday() in days
    if start < end:
        return local.weekday() in days and start <= current < end
    if current >= start:
        return local.weekday() in days
    if current < end:
        return (local.weekday() - 1) % 7 in days
    return False


def required_tags(contact: Contact) -> set[str]:
    tags: set[str] = set()
    if contact.property_type is not None:
        tags.add(contact.property_type.value)
    if contact.preferred_location:
        location = normalize_tag(contact.preferred_location)
        if location:
            tags.add(location)
    return tags


def covers_specializations(profile: AgentProfile, tags: set[str]) -> bool:
    specializations = set(normalize_tags(profile.specializations))
    if not specializations:
        return True
    return tags.issubset(specializations)


def pick_agent(candidates: list[AgentCandidate]) -> AgentCandidate | None:
    """Fewest open leads, then oldest last assignment (never first), then lowest id."""
    eligible = [candidate for candidate in candidates if candidate.eligible]
    if not eligible:
        return None

    def sort_key(candidate: AgentCandidate) -> tuple:
        last = as_utc(candidate.profile.last_assigned_at)
        return (
            candidate.open_leads,
            0 if last is None else 1,
            last or datetime.min.replace(tzinfo=timezone.utc),
            candidate.user.id,
        )

    return min(eligible, key=sort_key)


class AssignmentService(BaseService):
    def __init__(
        self,
        db: Session | None = None,
        config: Config | None = None,
        events: LeadEventPublisher | None = None,
    ) -> None:
        super().__init__(db)
        self.config = config or get_config()
        self.events = events or LeadEventPublisher(config=self.config)

    def _open_counts(self, company_id: int, agent_ids: list[int]) -> dict[int, int]:
        if not agent_ids:
            return {}
        rows = self.db.execute(
            select(Contact.agent_id, func.count(Contact.id))
            .where(
                Contact.company_id == company_id,
                Contact.agent_id.in_(agent_ids),
                Contact.stage.not_in(list(CLOSED_LEAD_STAGES)),
            )
            .group_by(Contact.agent_id)
        ).all()
        return {int(agent_id): int(count) for agent_id, count in rows}

    def _local_date(self, profile: AgentProfile, now: datetime) -> date:
        return as_utc(now).astimezone(agent_timezone(profile, self.config.DEFAULT_TIMEZONE)).date()

    def assignments_on(self, profile: AgentProfile, now: datetime) -> int:
        """Assignments the agent received on the local day of `now`."""
        if profile.assignments_day != self._local_date(profile, now):
            return 0
        return profile.assignments_today or 0

    def caps(self, profile: AgentProfile) -> tuple[int, int]:
        open_cap = profile.max_open_leads
        daily_cap = profile.max_daily_leads
        return (
            self.config.ASSIGNMENT_MAX_OPEN_LEADS if open_cap is None else open_cap,
            self.config.ASSIGNMENT_MAX_DAILY_LEADS if daily_cap is None else daily_cap,
        )

    def evaluate_agents(self, company_id: int, contact: Contact | None = None, now: datetime | None = None) -> list[AgentCandidate]:
        """Load every agent of the company with its workload and ineligibility reasons."""
        moment = as_utc(now) or utcnow()
        rows = self.db.execute(
            select(User, AgentProfile)
            .join(AgentProfile, AgentProfile.user_id == User.id)
            .where(User.company_id == company_id, User.role == UserRole.AGENT)
            .order_by(User.id)
        ).all()
        counts = self._open_counts(company_id, [user.id for user, _ in rows])
        tags = required_tags(contact) if contact is not None else set()

        candidates: list[AgentCandidate] = []
        for user, profile in rows:
            candidate = AgentCandidate(
                user=user,
                profile=profile,
                open_leads=counts.get(user.id, 0),
                assigned_today=self.assignments_on(profile, moment),
            )
            open_cap, daily_cap = self.caps(profile)
            if not user.is_active:
                candidate.reasons.append("inactive")
            if not profile.auto_assign_enabled:
                candidate.reasons.append("auto_assign_disabled")
            if not is_within_working_hours(profile, moment, self.config.DEFAULT_TIMEZONE):
                candidate.reasons.append("outside_working_hours")
            if candidate.open_leads >= open_cap:
                candidate.reasons.append("open_cap_reached")
            if candidate.assigned_today >= daily_cap:
                candidate.reasons.append("daily_cap_reached")
            if not covers_specializations(profile, tags):
                candidate.reasons.append("specialization_mismatch")
            candidates.append(candidate)
        return candidates

    def _lock_contact(self, company_id: int, contact_id: int) -> Contact:
        contact = self.db.scalars(
            select(Contact).where(Contact.id == contact_id, Contact.company_id == company_id).with_for_update()
        ).first()
        if contact is None:
            raise NotFoundError("Contact not found.")
        if contact.stage in CLOSED_LEAD_STAGES:
            raise ValidationError(f"Closed contacts cannot be assigned (stage {contact.stage.value}).")
        return contact

    def _apply(
        self,
        contact: Contact,
        user: User,
        profile: AgentProfile | None,
        now: datetime,
        reason: str,
        performed_by_id: int | None,
    ) -> None:
        previous_agent_id = contact.agent_id
        contact.agent_id = user.id
        contact.assigned_at = now
        if profile is not None:
            profile.assignments_today = self.assignments_on(profile, now) + 1
            profile.assignments_day = self._local_date(profile, now)
            profile.last_assigned_at = now
        append_activity(
            self.db,
            contact,
            ActivityType.ASSIGNMENT,
            f"Assigned to {user.full_name}",
            details={"previous_agent_id": previous_agent_id, "agent_id": user.id, "reason": reason},
            performed_by_id=performed_by_id,
            occurred_at=now,
        )

    def assign_contact(
        self,
        company_id: int,
        contact_id: int,
        performed_by_id: int | None = None,
        now: datetime | None = None,
        commit: bool = True,
    ) -> AssignmentResult:
        """Pick the best eligible agent and assign the contact under a row lock."""
        moment = as_utc(now) or utcnow()
        contact = self._lock_contact(company_id, contact_id)
        candidates = self.evaluate_agents(company_id, contact=contact, now=moment)
        chosen = pick_agent(candidates)

        if chosen is None:
            logger.warning(
                "assignment.unassigned",
                extra={
                    "event": "assignment.unassigned",
                    "company_id": company_id,
                    "contact_id": contact.id,
                    "candidates": len(candidates),
                },
            )
            return AssignmentResult(
                status=UNASSIGNED,
                contact_id=contact.id,
                agent_id=contact.agent_id,
                reason="no eligible agent",
                candidates_considered=len(candidates),
            )

        reason = f"fewest open leads ({chosen.open_leads})"
        self._apply(contact, chosen.user, chosen.profile, moment, reason, performed_by_id)
        if commit:
            self.commit()
            self.events.publish("lead.assigned", contact, changes={"agentId": chosen.user.id})
        logger.info(
            "assignment.assigned",
            extra={
                "event": "assignment.assigned",
                "company_id": company_id,
                "contact_id": contact.id,
                "agent_id": chosen.user.id,
            },
        )
        return AssignmentResult(
            status=ASSIGNED,
            contact_id=contact.id,
            agent_id=chosen.user.id,
            agent_name=chosen.user.full_name,
            reason=reason,
            candidates_considered=len(candidates),
        )

    def reassign_contact(self, context: CompanyContext, contact_id: int, agent_id: int) -> AssignmentResult:
        """Manual reassignment to a named agent of the same company."""
        agent = self.db.get(User, agent_id)
        if agent is None or agent.company_id != context.company_id or agent.role != UserRole.AGENT:
            raise ValidationError("Target user is not an agent of this company.")
        if not agent.is_active:
            raise ValidationError("Target agent is inactive.")

        moment = utcnow()
        contact = self._lock_contact(context.company_id, contact_id)
        reason = "manual"
        self._apply(contact, agent, agent.agent_profile, moment, reason, context.user_id)
        self.commit()
        self.events.publish("lead.assigned", contact, changes={"agentId": agent.id})
        logger.info(
            "assignment.reassigned",
            extra={
                "event": "assignment.reassigned",
                "company_id": context.company_id,
                "contact_id": contact.id,
                "agent_id": agent.id,
            },
        )
        return AssignmentResult(status=ASSIGNED, contact_id=contact.id, agent_id=agent.id, agent_name=agent.full_name, reason=reason)

    def workload(self, company_id: int, now: datetime | None = None) -> list[dict]:
        moment = as_utc(now) or utcnow()
        report = []
        for candidate in self.evaluate_agents(company_id, now=moment):
            open_cap, daily_cap = self.caps(candidate.profile)
            report.append(
                {
                    "agent_id": candidate.user.id,
                    "name": candidate.user.full_name,
                    "is_active": candidate.user.is_active,
                    "open_leads": candidate.open_leads,
                    "assigned_today": candidate.assigned_today,
                    "max_open_leads": open_cap,
                    "max_daily_leads": daily_cap,
                    "eligible": candidate.eligible,
                    "reasons": list(candidate.reasons),
                }
            )
        return report
