from __future__ import annotations

from datetime import timedelta

from imobipro.models import ReportFrequency, ReportType
from imobipro.models.enums import DeliveryChannel
from imobipro.services.report_service import ReportService
from imobipro.tasks.celery_app import celery_app
from imobipro.tasks.hooks import after_task, before_task
from imobipro.tasks.report_tasks import run_due_reports
from imobipro.utils.dates import utcnow


def test_hooks_build_structured_payloads():
    start = before_task("reports.execute_due", {"company_id": "3", "correlation_id": "corr-1"})
    finish = after_task("reports.execute_due", {"company_id": 3}, status="succeeded", executed=2)

    assert start["event"] == "task.start"
    assert start["company_id"] == 3
    assert start["task_name"] == "reports.execute_due"
    assert finish["status"] == "succeeded"
    assert finish["executed"] == 2
    assert "finished_at" in finish


def test_beat_schedules_due_report_task():
    entry = celery_app.conf.beat_schedule["execute-due-reports"]
    assert entry["task"] == "reports.execute_due"
    assert "reports.execute_due" in celery_app.tasks


def test_run_due_reports_executes_and_summarizes(db_session, admin_context):
    service = ReportService(db_session)
    template = service.create_template(admin_context, {"report_type": ReportType.LEAD_FUNNEL})
    service.schedule_report(
        admin_context,
        {
            "template_id": template.id,
            "frequency": ReportFrequency.DAILY,
            "channel": DeliveryChannel.EMAIL,
            "recipients": ["gerente@imobiliaria.test"],
            "first_run_at": utcnow() - timedelta(minutes=5),
        },
    )

    summary = run_due_reports(session=db_session)

    assert summary == {"executed": 1, "succeeded": 1, "failed": 0}
    assert run_due_reports(session=db_session)["executed"] == 0
