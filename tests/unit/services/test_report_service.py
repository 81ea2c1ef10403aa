from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from imobipro.core.exceptions import IntegrationError, NotFoundError, ValidationError
from imobipro.models import Contact, LeadStage, ReportFrequency, ReportRunStatus, ReportType, ScheduledReport
from imobipro.models.enums import DeliveryChannel, LeadSource
from imobipro.services.report_service import ReportService, add_months, next_run_after
from imobipro.services.report_templates import ReportTemplateEngine, format_currency, format_percentage

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class _RecordingEmail:
    def __init__(self) -> None:
        self.sent: list[tuple] = []

    def send_email(self, to_emails, subject, text_body, html_body=None):
        self.sent.append((tuple(to_emails), subject, text_body))
        return len(to_emails)


class _FailingWhatsApp:
    def send_whatsapp(self, phone, message, correlation_id=None):
        raise IntegrationError("n8n request failed: HTTP 503")


def _service(db_session, **kwargs) -> ReportService:
    kwargs.setdefault("email", _RecordingEmail())
    kwargs.setdefault("n8n", _FailingWhatsApp())
    return ReportService(db_session, **kwargs)


def test_add_months_clamps_day():
    assert add_months(datetime(2026, 1, 31), 1) == datetime(2026, 2, 28)
    assert add_months(datetime(2028, 1, 31), 1) == datetime(2028, 2, 29)
    assert add_months(datetime(2026, 11, 15), 3) == datetime(2027, 2, 15)
    assert add_months(datetime(2026, 3, 31), -1) == datetime(2026, 2, 28)


def test_monthly_runs_return_to_the_anchor_day():
    run_dates = [datetime(2026, 1, 31, 8, 0, tzinfo=timezone.utc)]
    for _ in range(3):
        run_dates.append(next_run_after(run_dates[-1], ReportFrequency.MONTHLY, run_dates[-1], anchor_day=31))
    assert [moment.date().isoformat() for moment in run_dates] == [
        "2026-01-31",
        "2026-02-28",
        "2026-03-31",
        "2026-04-30",
    ]


def test_next_run_skips_missed_occurrences():
    due = datetime(2026, 10, 1, 8, 0, tzinfo=timezone.utc)
    assert next_run_after(due, ReportFrequency.DAILY, NOW) == datetime(2026, 10, 20, 8, 0, tzinfo=timezone.utc)
    assert next_run_after(due, ReportFrequency.WEEKLY, NOW) == datetime(2026, 10, 22, 8, 0, tzinfo=timezone.utc)
    assert next_run_after(due, ReportFrequency.MONTHLY, NOW) == datetime(2026, 11, 1, 8, 0, tzinfo=timezone.utc)


def test_brazilian_formatting_filters():
    assert format_currency(1234567.891) == "R$ 1.234.567,89"
    assert format_currency(None) == "R$ 0,00"
    assert format_percentage(12.345) == "12,3%"


def test_template_validation_reports_syntax_errors_and_unknown_variables():
    engine = ReportTemplateEngine()

    broken = engine.validate("{% for x in leads %}", ReportType.LEAD_FUNNEL)
    assert broken.valid is False
    assert broken.errors

    result = engine.validate("{{ company_name }} {{ appointments.total }}", ReportType.LEAD_FUNNEL)
    assert result.valid is True
    assert result.variables == ["appointments", "company_name"]
    assert len(result.warnings) == 1
    assert "appointments" in result.warnings[0]

    assert engine.validate("   ", ReportType.APPOINTMENTS).valid is False


def test_sandbox_blocks_unsafe_attribute_access():
    engine = ReportTemplateEngine()
    with pytest.raises(ValidationError):
        engine.render("{{ company_name.__class__.__mro__ }}", {"company_name": "x"})
    with pytest.raises(ValidationError):
        engine.render("{{ missing }}", {})


def test_create_template_uses_default_body(db_session, admin_context):
    template = _service(db_session).create_template(admin_context, {"report_type": ReportType.LEAD_FUNNEL, "name": "Funil"})
    assert "Relatório de Leads" in template.body

    with pytest.raises(ValidationError):
        _service(db_session).create_template(
            admin_context, {"report_type": ReportType.LEAD_FUNNEL, "body": "{% if %}"}
        )


def test_generate_report_renders_lead_metrics(db_session, company, admin_context):
    db_session.add_all(
        [
            Contact(company_id=company.id, name="Lead A", lead_source=LeadSource.WEBSITE, stage=LeadStage.CONVERTED),
            Contact(company_id=company.id, name="Lead B", lead_source=LeadSource.WEBSITE),
        ]
    )
    db_session.commit()
    service = _service(db_session)
    template = service.create_template(admin_context, {"report_type": ReportType.LEAD_FUNNEL})

    run = service.generate_report(admin_context, template.id)

    assert run.status == ReportRunStatus.SUCCESS
    assert "Imobiliária Teste" in run.content
    assert "Total de leads: 2" in run.content
    assert "Convertidos: 1" in run.content
    assert "50,0%" in run.content
    assert "- WEBSITE: 2" in run.content
    assert [item.id for item in service.list_runs(admin_context)] == [run.id]


def test_generate_report_records_render_failures(db_session, admin_context):
    service = _service(db_session)
    template = service.create_template(
        admin_context, {"report_type": ReportType.APPOINTMENTS, "body": "{{ agents[0].name }}"}
    )

    run = service.generate_report(admin_context, template.id)

    assert run.status == ReportRunStatus.FAILED
    assert run.error_message
    with pytest.raises(ValidationError):
        service.generate_report(admin_context, template.id, period_start=NOW, period_end=NOW - timedelta(days=1))


def test_schedule_validates_recipients(db_session, admin_context):
    service = _service(db_session)
    template = service.create_template(admin_context, {"report_type": ReportType.LEAD_FUNNEL})
    base = {"template_id": template.id, "frequency": ReportFrequency.WEEKLY}

    with pytest.raises(ValidationError):
        service.schedule_report(admin_context, {**base, "channel": DeliveryChannel.EMAIL, "recipients": ["not-an-email"]})
    with pytest.raises(ValidationError):
        service.schedule_report(admin_context, {**base, "channel": DeliveryChannel.WHATSAPP, "recipients": []})
    with pytest.raises(NotFoundError):
        service.schedule_report(admin_context, {**base, "template_id": 999, "channel": DeliveryChannel.EMAIL, "recipients": ["a@b.com"]})


def test_execute_due_delivers_and_advances(db_session, admin_context):
    email = _RecordingEmail()
    service = _service(db_session, email=email)
    template = service.create_template(admin_context, {"report_type": ReportType.LEAD_FUNNEL, "name": "Funil"})
    due = datetime(2026, 10, 12, 8, 0, tzinfo=timezone.utc)
    emailed = service.schedule_report(
        admin_context,
        {
            "template_id": template.id,
            "name": "Funil semanal",
            "frequency": ReportFrequency.WEEKLY,
            "channel": DeliveryChannel.EMAIL,
            "recipients": ["gerente@imobiliaria.test"],
            "first_run_at": due,
        },
    )
    texted = service.schedule_report(
        admin_context,
        {
            "template_id": template.id,
            "frequency": ReportFrequency.DAILY,
            "channel": DeliveryChannel.WHATSAPP,
            "recipients": ["11 98888-7777"],
            "first_run_at": due,
        },
    )
    service.schedule_report(
        admin_context,
        {
            "template_id": template.id,
            "frequency": ReportFrequency.DAILY,
            "channel": DeliveryChannel.EMAIL,
            "recipients": ["futuro@imobiliaria.test"],
            "first_run_at": NOW + timedelta(days=1),
        },
    )

    runs = service.execute_due(now=NOW)

    assert len(runs) == 2
    by_schedule = {run.scheduled_report_id: run for run in runs}
    assert by_schedule[emailed.id].status == ReportRunStatus.SUCCESS
    assert by_schedule[texted.id].status == ReportRunStatus.FAILED
    assert "HTTP 503" in by_schedule[texted.id].error_message
    assert email.sent[0][0] == ("gerente@imobiliaria.test",)
    assert email.sent[0][1] == "Funil semanal - 12/10/2026"

    db_session.expire_all()
    emailed = db_session.get(ScheduledReport, emailed.id)
    texted = db_session.get(ScheduledReport, texted.id)
    assert emailed.next_run_at.replace(tzinfo=timezone.utc) == datetime(2026, 10, 26, 8, 0, tzinfo=timezone.utc)
    assert texted.next_run_at.replace(tzinfo=timezone.utc) == datetime(2026, 10, 20, 8, 0, tzinfo=timezone.utc)
    assert service.execute_due(now=NOW) == []


def test_inactive_templates_are_not_executed(db_session, admin_context):
    service = _service(db_session)
    template = service.create_template(admin_context, {"report_type": ReportType.LEAD_FUNNEL})
    service.schedule_report(
        admin_context,
        {
            "template_id": template.id,
            "frequency": ReportFrequency.DAILY,
            "channel": DeliveryChannel.EMAIL,
            "recipients": ["a@b.com"],
            "first_run_at": NOW - timedelta(hours=1),
        },
    )
    service.update_template(admin_context, template.id, {"is_active": False})

    assert service.due_schedules(now=NOW) == []


def test_monthly_schedule_keeps_its_day_after_short_months(db_session, admin_context):
    service = _service(db_session)
    template = service.create_template(admin_context, {"report_type": ReportType.LEAD_FUNNEL, "name": "Mensal"})
    schedule = service.schedule_report(
        admin_context,
        {
            "template_id": template.id,
            "frequency": ReportFrequency.MONTHLY,
            "channel": DeliveryChannel.EMAIL,
            "recipients": ["gerente@imobiliaria.test"],
            "first_run_at": datetime(2026, 1, 31, 8, 0, tzinfo=timezone.utc),
        },
    )
    assert schedule.anchor_day == 31

    seen = []
    for _ in range(3):
        service.execute_schedule(schedule, now=schedule.next_run_at)
        seen.append(schedule.next_run_at.date().isoformat())
    assert seen == ["2026-02-28", "2026-03-31", "2026-04-30"]
