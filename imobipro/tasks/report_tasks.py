"""Background execution of scheduled reports."""

from __future__ import annotations

import logging
from typing import Any

from imobipro.database.db import get_db_session
from imobipro.models.enums import ReportRunStatus
from imobipro.services.report_service import ReportService
from imobipro.tasks.celery_app import celery_app
from imobipro.tasks.hooks import after_task, before_task
from imobipro.utils.ids import new_correlation_id

logger = logging.getLogger(__name__)


def run_due_reports(session=None) -> dict[str, Any]:
    """Execute every due schedule once; usable without a worker."""
    context = {"correlation_id": new_correlation_id()}
    logger.info("task.start", extra=before_task("reports.execute_due", context))
    if session is not None:
        runs = ReportService(session).execute_due()
    else:
        with get_db_session() as db:
            runs = ReportService(db).execute_due()
    succeeded = sum(1 for run in runs if run.status == ReportRunStatus.SUCCESS)
    summary = {"executed": len(runs), "succeeded": succeeded, "failed": len(runs) - succeeded}
    logger.info("task.finish", extra=after_task("reports.execute_due", context, status="succeeded", **summary))
    return summary


@celery_app.task(name="reports.execute_due")
def execute_due_reports_task() -> dict[str, Any]:
    return run_due_reports()
