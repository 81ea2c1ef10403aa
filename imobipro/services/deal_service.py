"""Sales pipeline: deals, stage moves ending in WON or LOST, automations and metrics."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from imobipro.auth.company_context import CompanyContext, enforce_contact_access
from imobipro.core.config import Config, get_config
from imobipro.core.exceptions import NotFoundError, ValidationError
from imobipro.models.contact import Contact
from imobipro.models.deal import Deal, DealStageChange
from imobipro.models.enums import (
    CLOSED_DEAL_STAGES,
    ActivityType,
    ContactCategory,
    DealStage,
    DealStatus,
    LeadStage,
    PropertyStatus,
    UserRole,
)
from imobipro.models.property import Property
from imobipro.models.user import User
from imobipro.services.activity_service import append_activity
from imobipro.services.base_service import BaseService
from imobipro.services.n8n_client import LeadEventPublisher
from imobipro.services.state_machine import DEAL_PIPELINE, LEAD_FUNNEL, next_deal_stage, reopen_deal_target
from imobipro.utils.dates import as_utc, utcnow
from imobipro.utils.validators import sanitize_text

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StageConfig:
    label: str
    min_probability: int
    max_probability: int
    default_probability: int
    # Run when a deal enters the stage. Names without a local handler are
    # left to the n8n flows, which receive them with the stage event.
    automations: tuple[str, ...] = ()


STAGE_CONFIGS: dict[DealStage, StageConfig] = {
    DealStage.LEAD_IN: StageConfig("Lead inicial", 0, 20, 10, ("send_welcome_message", "schedule_follow_up")),
    DealStage.QUALIFICATION: StageConfig(
        "Qualificação", 20, 40, 30, ("send_qualification_form", "schedule_needs_assessment")
    ),
    DealStage.PROPOSAL: StageConfig("Proposta", 40, 60, 50, ("send_proposal_template", "set_follow_up_reminder")),
    DealStage.NEGOTIATION: StageConfig(
        "Negociação", 60, 80, 70, ("reserve_property", "prepare_negotiation_docs", "schedule_meeting")
    ),
    DealStage.WON: StageConfig(
        "Fechado - ganho", 100, 100, 100, ("convert_contact", "mark_property_sold", "send_celebration_message")
    ),
    DealStage.LOST: StageConfig("Perdido", 0, 0, 0, ("release_property", "send_feedback_request")),
}

UPDATABLE_FIELDS = frozenset(
    {
        "title",
        "value",
        "probability",
        "agent_id",
        "property_id",
        "expected_close_date",
        "next_action",
        "next_action_date",
        "notes",
    }
)


def resolve_probability(stage: DealStage, requested: int | None) -> int:
    """Stage default, or the requested value when it fits the stage's range."""
    config = STAGE_CONFIGS[stage]
    if requested is None:
        return config.default_probability
    if not config.min_probability <= requested <= config.max_probability:
        raise ValidationError(
            f"probability for {stage.value} must be between {config.min_probability} and {config.max_probability}."
        )
    return int(requested)


def serialize_deal(deal: Deal) -> dict[str, Any]:
    return {
        "id": deal.id,
        "companyId": deal.company_id,
        "contactId": deal.contact_id,
        "agentId": deal.agent_id,
        "propertyId": deal.property_id,
        "title": deal.title,
        "value": deal.value,
        "stage": deal.stage.value,
        "status": deal.status.value,
        "probability": deal.probability,
    }


class DealService(BaseService):
    def __init__(
        self,
        db: Session | None = None,
        config: Config | None = None,
        events: LeadEventPublisher | None = None,
    ) -> None:
        super().__init__(db)
        self.config = config or get_config()
        self.events = events or LeadEventPublisher(config=self.config)
        self._handlers = {
            "reserve_property": self._reserve_property,
            "convert_contact": self._convert_contact,
            "mark_property_sold": self._mark_property_sold,
            "release_property": self._release_property,
        }

    # -- lookups -----------------------------------------------------------

    def _scoped(self, context: CompanyContext):
        stmt = select(Deal).where(Deal.company_id == context.company_id)
        if context.is_agent:
            stmt = stmt.where(Deal.agent_id == context.user_id)
        return stmt

    def _load(self, context: CompanyContext, deal_id: int) -> Deal:
        deal = self.db.get(Deal, deal_id)
        if deal is None or deal.company_id != context.company_id:
            raise NotFoundError("Deal not found.")
        if context.is_agent and deal.agent_id != context.user_id:
            raise NotFoundError("Deal not found.")
        return deal

    def _resolve_agent(self, context: CompanyContext, agent_id: int | None) -> int | None:
        if context.is_agent:
            return context.user_id
        if agent_id is None:
            return None
        agent = self.db.get(User, agent_id)
        if agent is None or agent.company_id != context.company_id or agent.role != UserRole.AGENT or not agent.is_active:
            raise ValidationError("agent_id must reference an active agent of this company.")
        return agent.id

    def _resolve_property(self, context: CompanyContext, property_id: int | None) -> Property | None:
        if property_id is None:
            return None
        prop = self.db.get(Property, property_id)
        if prop is None or prop.company_id != context.company_id:
            raise ValidationError("property_id must reference a property of this company.")
        return prop

    @staticmethod
    def _value(raw: Any) -> int:
        if raw is None:
            return 0
        if raw < 0:
            raise ValidationError("value must be positive.")
        if raw != int(raw):
            raise ValidationError("value must be a whole amount.")
        return int(raw)

    # -- CRUD --------------------------------------------------------------

    def create_deal(self, context: CompanyContext, data: dict[str, Any]) -> Deal:
        contact = enforce_contact_access(self.db.get(Contact, data.get("contact_id")), context)
        stage: DealStage = data.get("stage") or DealStage.LEAD_IN
        if stage in CLOSED_DEAL_STAGES:
            raise ValidationError("Deals start in an open stage.")
        prop = self._resolve_property(context, data.get("property_id"))
        agent_id = self._resolve_agent(context, data.get("agent_id"))

        now = utcnow()
        deal = Deal(
            company_id=context.company_id,
            contact_id=contact.id,
            agent_id=agent_id if agent_id is not None else contact.agent_id,
            property_id=prop.id if prop else None,
            title=sanitize_text(data.get("title"), 200) or contact.name,
            value=self._value(data.get("value")),
            stage=stage,
            status=DealStatus.ACTIVE,
            probability=resolve_probability(stage, data.get("probability")),
            stage_entered_at=now,
            expected_close_date=data.get("expected_close_date"),
            next_action=sanitize_text(data.get("next_action"), 255) or None,
            next_action_date=data.get("next_action_date"),
            notes=sanitize_text(data.get("notes"), 5000) or None,
        )
        self.db.add(deal)
        self.db.flush()
        self._record_stage(context, deal, None, "Deal created", days_in_previous=None, changed_at=now)
        executed = self._run_automations(context, deal, stage)

        self.commit()
        self.db.refresh(deal)
        logger.info(
            "deal.created",
            extra={
                "event": "deal.created",
                "company_id": context.company_id,
                "deal_id": deal.id,
                "contact_id": contact.id,
                "stage": stage.value,
                "automations": executed,
            },
        )
        self.events.publish(
            "deal.created",
            deal.contact,
            changes={"deal": serialize_deal(deal), "automations": list(STAGE_CONFIGS[stage].automations)},
        )
        return deal

    def get_deal(self, context: CompanyContext, deal_id: int) -> Deal:
        return self._load(context, deal_id)

    def list_deals(
        self,
        context: CompanyContext,
        stage: DealStage | None = None,
        status: DealStatus | None = None,
        agent_id: int | None = None,
        contact_id: int | None = None,
        min_value: int | None = None,
        max_value: int | None = None,
        search: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Deal], int]:
        """Deals visible to the caller, most recently touched first.

        Cancelled deals are hidden unless `status` asks for them.
        """
        stmt = self._scoped(context)
        if status is not None:
            stmt = stmt.where(Deal.status == status)
        else:
            stmt = stmt.where(Deal.status != DealStatus.CANCELLED)
        if stage is not None:
            stmt = stmt.where(Deal.stage == stage)
        if agent_id is not None:
            stmt = stmt.where(Deal.agent_id == agent_id)
        if contact_id is not None:
            stmt = stmt.where(Deal.contact_id == contact_id)
        if min_value is not None:
            stmt = stmt.where(Deal.value >= min_value)
        if max_value is not None:
            stmt = stmt.where(Deal.value <= max_value)
        term = sanitize_text(search, 100)
        if term:
            stmt = stmt.where(func.lower(Deal.title).like(f"%{term.lower()}%"))

        total = self.db.scalar(select(func.count()).select_from(stmt.subquery())) or 0
        items = self.db.scalars(
            stmt.order_by(Deal.updated_at.desc(), Deal.id.desc()).limit(limit).offset(offset)
        ).all()
        return list(items), int(total)

    def update_deal(self, context: CompanyContext, deal_id: int, changes: dict[str, Any]) -> Deal:
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be updated directly: {', '.join(sorted(unknown))}")
        deal = self._load(context, deal_id)
        if deal.status != DealStatus.ACTIVE:
            raise ValidationError(f"Deal is {deal.status.value} and cannot be changed.")

        if "title" in changes:
            title = sanitize_text(changes["title"], 200)
            if not title:
                raise ValidationError("title is required.")
            deal.title = title
        if "value" in changes:
            deal.value = self._value(changes["value"])
        if "probability" in changes:
            deal.probability = resolve_probability(deal.stage, changes["probability"])
        if "agent_id" in changes and not context.is_agent:
            deal.agent_id = self._resolve_agent(context, changes["agent_id"])
        if "property_id" in changes:
            prop = self._resolve_property(context, changes["property_id"])
            deal.property_id = prop.id if prop else None
        for key in ("expected_close_date", "next_action_date"):
            if key in changes:
                setattr(deal, key, changes[key])
        if "next_action" in changes:
            deal.next_action = sanitize_text(changes["next_action"], 255) or None
        if "notes" in changes:
            deal.notes = sanitize_text(changes["notes"], 5000) or None
        self.commit()
        self.db.refresh(deal)
        return deal

    def cancel_deal(self, context: CompanyContext, deal_id: int, reason: str | None = None) -> Deal:
        """Soft delete: the deal leaves the pipeline but its history stays."""
        deal = self._load(context, deal_id)
        if deal.status != DealStatus.ACTIVE:
            raise ValidationError(f"Deal is {deal.status.value} and cannot be cancelled.")
        deal.status = DealStatus.CANCELLED
        deal.closed_at = utcnow()
        if reason:
            deal.lost_reason = sanitize_text(reason, 500)
        self._release_property(context, deal)
        self.commit()
        self.db.refresh(deal)
        logger.info(
            "deal.cancelled",
            extra={"event": "deal.cancelled", "company_id": context.company_id, "deal_id": deal.id},
        )
        return deal

    # -- pipeline ----------------------------------------------------------

    def _record_stage(
        self,
        context: CompanyContext,
        deal: Deal,
        previous: DealStage | None,
        reason: str | None,
        days_in_previous: int | None,
        changed_at: datetime,
    ) -> DealStageChange:
        change = DealStageChange(
            company_id=deal.company_id,
            deal_id=deal.id,
            from_stage=previous,
            to_stage=deal.stage,
            reason=sanitize_text(reason, 2000) or None,
            days_in_previous_stage=days_in_previous,
            changed_by_id=context.user_id,
            changed_at=changed_at,
        )
        self.db.add(change)
        return change

    def _enter_stage(
        self,
        context: CompanyContext,
        deal: Deal,
        target: DealStage,
        reason: str | None,
        probability: int | None = None,
    ) -> Deal:
        previous = deal.stage
        now = utcnow()
        entered = as_utc(deal.stage_entered_at) or now
        days_in_previous = max((now - entered).days, 0)

        deal.stage = target
        deal.probability = resolve_probability(target, probability)
        deal.stage_entered_at = now
        if target in CLOSED_DEAL_STAGES:
            deal.status = DealStatus.CLOSED
            deal.closed_at = now
        else:
            deal.status = DealStatus.ACTIVE
            deal.closed_at = None
        self._record_stage(context, deal, previous, reason, days_in_previous, now)
        executed = self._run_automations(context, deal, target)

        self.commit()
        self.db.refresh(deal)
        logger.info(
            "deal.stage_changed",
            extra={
                "event": "deal.stage_changed",
                "company_id": context.company_id,
                "deal_id": deal.id,
                "from_stage": previous.value,
                "to_stage": target.value,
                "automations": executed,
            },
        )
        self.events.publish(
            "deal.stage_changed",
            deal.contact,
            changes={
                "deal": serialize_deal(deal),
                "previous": {"stage": previous.value},
                "current": {"stage": target.value},
                "automations": list(STAGE_CONFIGS[target].automations),
            },
        )
        return deal

    def move_deal(
        self,
        context: CompanyContext,
        deal_id: int,
        target: DealStage | None = None,
        reason: str | None = None,
        probability: int | None = None,
    ) -> Deal:
        """Move one step forward; `target` may name that step or LOST."""
        deal = self._load(context, deal_id)
        if deal.status == DealStatus.CANCELLED:
            raise ValidationError("Cancelled deals cannot move.")
        resolved = target or next_deal_stage(deal.stage)
        DEAL_PIPELINE.assert_transition(deal.stage, resolved)
        if resolved == DealStage.LOST:
            deal.stage_before_lost = deal.stage
            deal.lost_reason = sanitize_text(reason, 500) or None
        return self._enter_stage(context, deal, resolved, reason, probability)

    def mark_won(self, context: CompanyContext, deal_id: int, note: str | None = None) -> Deal:
        return self.move_deal(context, deal_id, DealStage.WON, reason=note)

    def mark_lost(self, context: CompanyContext, deal_id: int, reason: str | None = None) -> Deal:
        return self.move_deal(context, deal_id, DealStage.LOST, reason=reason)

    def reopen_deal(self, context: CompanyContext, deal_id: int, note: str | None = None) -> Deal:
        deal = self._load(context, deal_id)
        target = reopen_deal_target(deal.stage, deal.stage_before_lost)
        deal.stage_before_lost = None
        deal.lost_reason = None
        return self._enter_stage(context, deal, target, note)

    def stage_history(self, context: CompanyContext, deal_id: int) -> list[DealStageChange]:
        deal = self._load(context, deal_id)
        stmt = (
            select(DealStageChange)
            .where(DealStageChange.deal_id == deal.id)
            .order_by(DealStageChange.changed_at.desc(), DealStageChange.id.desc())
        )
        return list(self.db.scalars(stmt).all())

    # -- automations -------------------------------------------------------

    def _run_automations(self, context: CompanyContext, deal: Deal, stage: DealStage) -> list[str]:
        executed = []
        for name in STAGE_CONFIGS[stage].automations:
            handler = self._handlers.get(name)
            if handler is not None and handler(context, deal):
                executed.append(name)
        return executed

    def _reserve_property(self, context: CompanyContext, deal: Deal) -> bool:
        prop = deal.listing
        if prop is None or prop.status != PropertyStatus.AVAILABLE:
            return False
        prop.status = PropertyStatus.RESERVED
        return True

    def _mark_property_sold(self, context: CompanyContext, deal: Deal) -> bool:
        prop = deal.listing
        if prop is None or prop.status not in (PropertyStatus.AVAILABLE, PropertyStatus.RESERVED):
            return False
        prop.status = PropertyStatus.SOLD
        return True

    def _release_property(self, context: CompanyContext, deal: Deal) -> bool:
        prop = deal.listing
        if prop is None or prop.status != PropertyStatus.RESERVED:
            return False
        # Another deal still negotiating the same listing keeps it reserved.
        holder = self.db.scalar(
            select(Deal.id).where(
                Deal.property_id == prop.id,
                Deal.id != deal.id,
                Deal.status == DealStatus.ACTIVE,
                Deal.stage == DealStage.NEGOTIATION,
            )
        )
        if holder is not None:
            return False
        prop.status = PropertyStatus.AVAILABLE
        return True

    def _convert_contact(self, context: CompanyContext, deal: Deal) -> bool:
        """A won deal makes the contact a client and closes its funnel when it can."""
        contact = deal.contact
        contact.category = ContactCategory.CLIENT
        if LEAD_FUNNEL.can_transition(contact.stage, LeadStage.CONVERTED):
            previous = contact.stage
            contact.stage = LeadStage.CONVERTED
            contact.is_qualified = True
            append_activity(
                self.db,
                contact,
                ActivityType.STAGE_CHANGE,
                f"Stage {previous.value} -> {LeadStage.CONVERTED.value}",
                details={"from": previous.value, "to": LeadStage.CONVERTED.value, "deal_id": deal.id},
                performed_by_id=context.user_id,
            )
        append_activity(
            self.db,
            contact,
            ActivityType.NOTE,
            f"Deal won: {deal.title}",
            details={"deal_id": deal.id, "value": deal.value},
            performed_by_id=context.user_id,
        )
        return True

    # -- metrics -----------------------------------------------------------

    def pipeline_metrics(
        self,
        context: CompanyContext,
        agent_id: int | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """Counts and values per stage, conversion, projected revenue and cycle times.

        `start`/`end` filter on creation date; cancelled deals never count.
        """
        moment = as_utc(now) or utcnow()
        stmt = self._scoped(context).where(Deal.status != DealStatus.CANCELLED)
        if agent_id is not None:
            stmt = stmt.where(Deal.agent_id == agent_id)
        if start is not None:
            stmt = stmt.where(Deal.created_at >= as_utc(start))
        if end is not None:
            stmt = stmt.where(Deal.created_at <= as_utc(end))
        deals = list(self.db.scalars(stmt).all())

        deals_by_stage = {stage.value: 0 for stage in DealStage}
        value_by_stage = {stage.value: 0 for stage in DealStage}
        for deal in deals:
            deals_by_stage[deal.stage.value] += 1
            value_by_stage[deal.stage.value] += deal.value or 0

        total_deals = len(deals)
        total_value = sum(deal.value or 0 for deal in deals)
        won = [deal for deal in deals if deal.stage == DealStage.WON]
        closed = won + [deal for deal in deals if deal.stage == DealStage.LOST]
        month_start = moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        won_this_month = [deal for deal in won if deal.closed_at and as_utc(deal.closed_at) >= month_start]
        cycle_days = [(as_utc(deal.closed_at) - as_utc(deal.created_at)).days for deal in won if deal.closed_at]

        return {
            "total_deals": total_deals,
            "total_value": total_value,
            "average_deal_value": round(total_value / total_deals, 2) if total_deals else 0.0,
            "conversion_rate": round(len(won) / total_deals * 100, 2) if total_deals else 0.0,
            "win_rate": round(len(won) / len(closed) * 100, 2) if closed else 0.0,
            "deals_by_stage": deals_by_stage,
            "value_by_stage": value_by_stage,
            "projected_revenue": round(
                sum(deal.weighted_value for deal in deals if deal.status == DealStatus.ACTIVE), 2
            ),
            "monthly_closed_deals": len(won_this_month),
            "monthly_revenue": sum(deal.value or 0 for deal in won_this_month),
            "average_cycle_days": round(sum(cycle_days) / len(cycle_days), 1) if cycle_days else 0.0,
            "average_days_in_stage": self._average_days_in_stage([deal.id for deal in deals]),
        }

    def _average_days_in_stage(self, deal_ids: list[int]) -> dict[str, float]:
        averages = {stage.value: 0.0 for stage in DealStage if stage not in CLOSED_DEAL_STAGES}
        if not deal_ids:
            return averages
        rows = self.db.execute(
            select(DealStageChange.from_stage, func.avg(DealStageChange.days_in_previous_stage))
            .where(
                DealStageChange.deal_id.in_(deal_ids),
                DealStageChange.from_stage.is_not(None),
                DealStageChange.days_in_previous_stage.is_not(None),
            )
            .group_by(DealStageChange.from_stage)
        ).all()
        for stage, average in rows:
            key = stage.value if isinstance(stage, DealStage) else str(stage)
            if key in averages:
                averages[key] = round(float(average or 0), 1)
        return averages
