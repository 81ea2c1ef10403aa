"""Report templates, metrics, generation and scheduled delivery."""

from __future__ import annotations

import calendar
import logging
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from imobipro.auth.company_context import CompanyContext
from imobipro.core.config import Config, get_config
from imobipro.core.exceptions import ConfigurationError, IntegrationError, NotFoundError, ValidationError
from imobipro.models.appointment import Appointment
from imobipro.models.company import Company
from imobipro.models.contact import Contact
from imobipro.models.enums import (
    CLOSED_LEAD_STAGES,
    AppointmentStatus,
    DeliveryChannel,
    LeadStage,
    ReportFrequency,
    ReportRunStatus,
    ReportType,
    UserRole,
)
from imobipro.models.report import ReportRun, ReportTemplate, ScheduledReport
from imobipro.models.user import User
from imobipro.services.base_service import BaseService
from imobipro.services.email_service import EmailService
from imobipro.services.n8n_client import N8nClient
from imobipro.services.report_templates import DEFAULT_TEMPLATES, ReportTemplateEngine, TemplateValidation
from imobipro.utils.dates import as_utc, utcnow
from imobipro.utils.validators import is_valid_email, is_valid_phone, sanitize_text

logger = logging.getLogger(__name__)


def add_months(moment: datetime, months: int, anchor_day: int | None = None) -> datetime:
    """Shift by calendar months, clamping the day to the target month length.

    `anchor_day` is the day of month the series started on; clamping always
    starts from it, so a run on the 31st comes back to the 31st after February.
    """
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(anchor_day or moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def advance(
    moment: datetime, frequency: ReportFrequency, steps: int = 1, anchor_day: int | None = None
) -> datetime:
    if frequency == ReportFrequency.DAILY:
        return moment + timedelta(days=steps)
    if frequency == ReportFrequency.WEEKLY:
        return moment + timedelta(weeks=steps)
    return add_months(moment, steps, anchor_day)


def next_run_after(
    current: datetime, frequency: ReportFrequency, now: datetime, anchor_day: int | None = None
) -> datetime:
    """First occurrence on the schedule's grid that is strictly after `now`."""
    candidate = advance(current, frequency, anchor_day=anchor_day)
    while candidate <= now:
        candidate = advance(candidate, frequency, anchor_day=anchor_day)
    return candidate


def _rate(part: int, whole: int) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


class ReportService(BaseService):
    def __init__(
        self,
        db: Session | None = None,
        config: Config | None = None,
        engine: ReportTemplateEngine | None = None,
        email: EmailService | None = None,
        n8n: N8nClient | None = None,
    ) -> None:
        super().__init__(db)
        self.config = config or get_config()
        self.engine = engine or ReportTemplateEngine()
        self.email = email or EmailService(config=self.config)
        self.n8n = n8n or N8nClient(config=self.config)

    # -- templates ---------------------------------------------------------

    def validate_template(self, body: str, report_type: ReportType) -> TemplateValidation:
        return self.engine.validate(body, report_type)

    def _checked_body(self, body: str, report_type: ReportType) -> str:
        result = self.engine.validate(body, report_type)
        if not result.valid:
            raise ValidationError("; ".join(result.errors))
        return body

    def create_template(self, context: CompanyContext, data: dict[str, Any]) -> ReportTemplate:
        report_type = data["report_type"]
        body = data.get("body") or DEFAULT_TEMPLATES[report_type]
        template = ReportTemplate(
            company_id=context.company_id,
            name=sanitize_text(data.get("name"), 200) or f"{report_type.value} report",
            description=sanitize_text(data.get("description"), 2000) or None,
            report_type=report_type,
            body=self._checked_body(body, report_type),
            created_by_id=context.user_id,
        )
        self.db.add(template)
        self.commit()
        self.db.refresh(template)
        return template

    def get_template(self, context: CompanyContext, template_id: int) -> ReportTemplate:
        template = self.db.get(ReportTemplate, template_id)
        if template is None or template.company_id != context.company_id:
            raise NotFoundError("Report template not found.")
        return template

    def list_templates(self, context: CompanyContext, report_type: ReportType | None = None) -> list[ReportTemplate]:
        stmt = select(ReportTemplate).where(ReportTemplate.company_id == context.company_id)
        if report_type is not None:
            stmt = stmt.where(ReportTemplate.report_type == report_type)
        return list(self.db.scalars(stmt.order_by(ReportTemplate.id)).all())

    def update_template(self, context: CompanyContext, template_id: int, changes: dict[str, Any]) -> ReportTemplate:
        template = self.get_template(context, template_id)
        if changes.get("body") is not None:
            template.body = self._checked_body(changes["body"], template.report_type)
        if changes.get("name") is not None:
            template.name = sanitize_text(changes["name"], 200)
        if "description" in changes:
            template.description = sanitize_text(changes["description"], 2000) or None
        if changes.get("is_active") is not None:
            template.is_active = bool(changes["is_active"])
        self.commit()
        self.db.refresh(template)
        return template

    def delete_template(self, context: CompanyContext, template_id: int) -> None:
        template = self.get_template(context, template_id)
        self.db.delete(template)
        self.commit()

    # -- metrics -----------------------------------------------------------

    def lead_metrics(self, company_id: int, period_start: datetime, period_end: datetime) -> dict[str, Any]:
        base = select(Contact).where(Contact.company_id == company_id).subquery()
        total = self.db.scalar(select(func.count()).select_from(base)) or 0
        by_stage = {stage.value: 0 for stage in LeadStage}
        for stage, count in self.db.execute(select(base.c.stage, func.count()).group_by(base.c.stage)).all():
            by_stage[stage.value if isinstance(stage, LeadStage) else str(stage)] = int(count)
        by_source: dict[str, int] = {}
        for source, count in self.db.execute(
            select(base.c.lead_source, func.count()).group_by(base.c.lead_source).order_by(func.count().desc())
        ).all():
            key = source.value if hasattr(source, "value") else (source or "UNKNOWN")
            by_source[key] = int(count)

        new_in_period = self.db.scalar(
            select(func.count(Contact.id)).where(
                Contact.company_id == company_id,
                Contact.created_at >= period_start,
                Contact.created_at < period_end,
            )
        ) or 0
        average = self.db.scalar(select(func.avg(base.c.lead_score))) or 0
        converted = by_stage[LeadStage.CONVERTED.value]
        return {
            "total": int(total),
            "new_in_period": int(new_in_period),
            "open": int(total) - sum(by_stage[stage.value] for stage in CLOSED_LEAD_STAGES),
            "converted": converted,
            "lost": by_stage[LeadStage.LOST.value],
            "conversion_rate": _rate(converted, int(total)),
            "average_score": round(float(average), 1),
            "by_stage": by_stage,
            "by_source": by_source,
        }

    def appointment_metrics(self, company_id: int, period_start: datetime, period_end: datetime) -> dict[str, Any]:
        rows = self.db.execute(
            select(Appointment.status, func.count(Appointment.id))
            .where(
                Appointment.company_id == company_id,
                Appointment.starts_at >= period_start,
                Appointment.starts_at < period_end,
            )
            .group_by(Appointment.status)
        ).all()
        by_status = {status.value: 0 for status in AppointmentStatus}
        for status, count in rows:
            by_status[status.value] = int(count)
        total = sum(by_status.values())
        completed = by_status[AppointmentStatus.COMPLETED.value]
        return {
            "total": total,
            "scheduled": by_status[AppointmentStatus.SCHEDULED.value] + by_status[AppointmentStatus.CONFIRMED.value],
            "completed": completed,
            "canceled": by_status[AppointmentStatus.CANCELED.value],
            "no_show": by_status[AppointmentStatus.NO_SHOW.value],
            "completion_rate": _rate(completed, total),
            "by_status": by_status,
        }

    def agent_performance(self, company_id: int, period_start: datetime, period_end: datetime) -> list[dict[str, Any]]:
        agents = self.db.scalars(
            select(User).where(User.company_id == company_id, User.role == UserRole.AGENT).order_by(User.full_name)
        ).all()
        report = []
        for agent in agents:
            stage_counts = dict(
                self.db.execute(
                    select(Contact.stage, func.count(Contact.id))
                    .where(Contact.company_id == company_id, Contact.agent_id == agent.id)
                    .group_by(Contact.stage)
                ).all()
            )
            total = sum(int(count) for count in stage_counts.values())
            converted = int(stage_counts.get(LeadStage.CONVERTED, 0))
            open_leads = total - converted - int(stage_counts.get(LeadStage.LOST, 0))
            completed = self.db.scalar(
                select(func.count(Appointment.id)).where(
                    Appointment.agent_id == agent.id,
                    Appointment.status == AppointmentStatus.COMPLETED,
                    Appointment.starts_at >= period_start,
                    Appointment.starts_at < period_end,
                )
            ) or 0
            report.append(
                {
                    "agent_id": agent.id,
                    "name": agent.full_name,
                    "is_active": agent.is_active,
                    "total_leads": total,
                    "open_leads": open_leads,
                    "converted": converted,
                    "conversion_rate": _rate(converted, total),
                    "completed_appointments": int(completed),
                }
            )
        return report

    def build_variables(
        self,
        company_id: int,
        report_type: ReportType,
        period_start: datetime,
        period_end: datetime,
        report_name: str = "",
    ) -> dict[str, Any]:
        company = self.db.get(Company, company_id)
        if company is None:
            raise NotFoundError(f"Company not found: {company_id}")
        variables: dict[str, Any] = {
            "company_name": company.name,
            "report_name": report_name,
            "period_start": period_start,
            "period_end": period_end,
            "generated_at": utcnow(),
        }
        if report_type in (ReportType.LEAD_FUNNEL, ReportType.AGENT_PERFORMANCE):
            variables["leads"] = self.lead_metrics(company_id, period_start, period_end)
        if report_type == ReportType.AGENT_PERFORMANCE:
            variables["agents"] = self.agent_performance(company_id, period_start, period_end)
        if report_type == ReportType.APPOINTMENTS:
            variables["appointments"] = self.appointment_metrics(company_id, period_start, period_end)
        return variables

    # -- generation --------------------------------------------------------

    def _render_run(
        self,
        template: ReportTemplate,
        period_start: datetime,
        period_end: datetime,
        scheduled: ScheduledReport | None = None,
    ) -> ReportRun:
        run = ReportRun(
            company_id=template.company_id,
            template_id=template.id,
            scheduled_report_id=scheduled.id if scheduled else None,
            period_start=period_start,
            period_end=period_end,
            status=ReportRunStatus.SUCCESS,
        )
        try:
            variables = self.build_variables(
                template.company_id,
                template.report_type,
                period_start,
                period_end,
                report_name=scheduled.name if scheduled else template.name,
            )
            run.content = self.engine.render(template.body, variables)
        except ValidationError as exc:
            run.status = ReportRunStatus.FAILED
            run.error_message = str(exc)
        self.db.add(run)
        return run

    def generate_report(
        self,
        context: CompanyContext,
        template_id: int,
        period_start: datetime | None = None,
        period_end: datetime | None = None,
    ) -> ReportRun:
        """Render a template on demand; the run is recorded either way."""
        template = self.get_template(context, template_id)
        end = as_utc(period_end) or utcnow()
        start = as_utc(period_start) or end - timedelta(days=30)
        if start >= end:
            raise ValidationError("period_start must be before period_end.")
        run = self._render_run(template, start, end)
        self.commit()
        self.db.refresh(run)
        logger.info(
            "report.generated",
            extra={
                "event": "report.generated",
                "company_id": context.company_id,
                "template_id": template.id,
                "status": run.status.value,
            },
        )
        return run

    def list_runs(self, context: CompanyContext, template_id: int | None = None, limit: int = 50) -> list[ReportRun]:
        stmt = select(ReportRun).where(ReportRun.company_id == context.company_id)
        if template_id is not None:
            stmt = stmt.where(ReportRun.template_id == template_id)
        return list(self.db.scalars(stmt.order_by(ReportRun.created_at.desc(), ReportRun.id.desc()).limit(limit)).all())

    # -- scheduling --------------------------------------------------------

    @staticmethod
    def _check_recipients(channel: DeliveryChannel, recipients: list[str]) -> list[str]:
        cleaned = [sanitize_text(item, 320) for item in recipients if sanitize_text(item, 320)]
        if not cleaned:
            raise ValidationError("At least one recipient is required.")
        check = is_valid_email if channel == DeliveryChannel.EMAIL else is_valid_phone
        invalid = [item for item in cleaned if not check(item)]
        if invalid:
            raise ValidationError(f"Invalid {channel.value} recipients: {', '.join(invalid)}")
        return cleaned

    def schedule_report(self, context: CompanyContext, data: dict[str, Any]) -> ScheduledReport:
        template = self.get_template(context, data["template_id"])
        frequency: ReportFrequency = data["frequency"]
        channel: DeliveryChannel = data["channel"]
        first_run = as_utc(data.get("first_run_at")) or advance(utcnow(), frequency)
        schedule = ScheduledReport(
            company_id=context.company_id,
            template_id=template.id,
            name=sanitize_text(data.get("name"), 200) or template.name,
            frequency=frequency,
            channel=channel,
            recipients=self._check_recipients(channel, data.get("recipients") or []),
            next_run_at=first_run,
            anchor_day=first_run.day,
        )
        self.db.add(schedule)
        self.commit()
        self.db.refresh(schedule)
        logger.info(
            "report.scheduled",
            extra={"event": "report.scheduled", "company_id": context.company_id, "schedule_id": schedule.id},
        )
        return schedule

    def get_schedule(self, context: CompanyContext, schedule_id: int) -> ScheduledReport:
        schedule = self.db.get(ScheduledReport, schedule_id)
        if schedule is None or schedule.company_id != context.company_id:
            raise NotFoundError("Scheduled report not found.")
        return schedule

    def list_schedules(self, context: CompanyContext) -> list[ScheduledReport]:
        stmt = select(ScheduledReport).where(ScheduledReport.company_id == context.company_id)
        return list(self.db.scalars(stmt.order_by(ScheduledReport.next_run_at)).all())

    def update_schedule(self, context: CompanyContext, schedule_id: int, changes: dict[str, Any]) -> ScheduledReport:
        schedule = self.get_schedule(context, schedule_id)
        if changes.get("frequency") is not None:
            schedule.frequency = changes["frequency"]
        if changes.get("channel") is not None:
            schedule.channel = changes["channel"]
        if changes.get("recipients") is not None or changes.get("channel") is not None:
            schedule.recipients = self._check_recipients(schedule.channel, changes.get("recipients") or schedule.recipients)
        if changes.get("name") is not None:
            schedule.name = sanitize_text(changes["name"], 200)
        if changes.get("is_active") is not None:
            schedule.is_active = bool(changes["is_active"])
        if changes.get("next_run_at") is not None:
            schedule.next_run_at = as_utc(changes["next_run_at"])
            schedule.anchor_day = schedule.next_run_at.day
        self.commit()
        self.db.refresh(schedule)
        return schedule

    def delete_schedule(self, context: CompanyContext, schedule_id: int) -> None:
        schedule = self.get_schedule(context, schedule_id)
        self.db.delete(schedule)
        self.commit()

    def deliver(self, schedule: ScheduledReport, subject: str, content: str) -> None:
        if schedule.channel == DeliveryChannel.EMAIL:
            self.email.send_email(schedule.recipients, subject, content)
            return
        for phone in schedule.recipients:
            self.n8n.send_whatsapp(phone, content)

    def execute_schedule(self, schedule: ScheduledReport, now: datetime | None = None) -> ReportRun:
        """Render and deliver one schedule, then move `next_run_at` past `now`."""
        moment = as_utc(now) or utcnow()
        due_at = as_utc(schedule.next_run_at)
        period_end = due_at
        period_start = advance(due_at, schedule.frequency, steps=-1, anchor_day=schedule.anchor_day)

        template = schedule.template
        run = self._render_run(template, period_start, period_end, scheduled=schedule)
        if run.status == ReportRunStatus.SUCCESS:
            try:
                self.deliver(schedule, f"{schedule.name} - {period_end:%d/%m/%Y}", run.content or "")
            except (IntegrationError, ConfigurationError) as exc:
                run.status = ReportRunStatus.FAILED
                run.error_message = str(exc)

        schedule.last_run_at = moment
        schedule.next_run_at = next_run_after(due_at, schedule.frequency, moment, schedule.anchor_day)
        self.commit()
        self.db.refresh(run)
        log = logger.info if run.status == ReportRunStatus.SUCCESS else logger.warning
        log(
            "report.schedule.executed",
            extra={
                "event": "report.schedule.executed",
                "company_id": schedule.company_id,
                "schedule_id": schedule.id,
                "status": run.status.value,
                "next_run_at": schedule.next_run_at.isoformat(),
            },
        )
        return run

    def due_schedules(self, now: datetime | None = None) -> list[ScheduledReport]:
        moment = as_utc(now) or utcnow()
        stmt = (
            select(ScheduledReport)
            .join(ReportTemplate, ReportTemplate.id == ScheduledReport.template_id)
            .where(
                ScheduledReport.is_active.is_(True),
                ReportTemplate.is_active.is_(True),
                ScheduledReport.next_run_at <= moment,
            )
            .order_by(ScheduledReport.next_run_at, ScheduledReport.id)
        )
        return list(self.db.scalars(stmt).all())

    def execute_due(self, now: datetime | None = None) -> list[ReportRun]:
        moment = as_utc(now) or utcnow()
        return [self.execute_schedule(schedule, now=moment) for schedule in self.due_schedules(moment)]
