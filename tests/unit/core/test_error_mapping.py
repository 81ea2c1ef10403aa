from __future__ import annotations

import json
import logging

from imobipro.core.exceptions import (
    AuthenticationError,
    ConflictError,
    IntegrationError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from imobipro.core.logging import LogContext, build_log_event
from imobipro.core.logging_config import JsonFormatter
from imobipro.main import resolve_error


def test_domain_errors_map_to_http_status():
    assert resolve_error(ValidationError("x")) == (422, "validation_error")
    assert resolve_error(InvalidTransitionError("x")) == (409, "invalid_transition")
    assert resolve_error(NotFoundError("x")) == (404, "not_found")
    assert resolve_error(ConflictError("x")) == (409, "conflict")
    assert resolve_error(IntegrationError("x")) == (502, "integration_error")
    assert resolve_error(AuthenticationError("x")) == (401, "authentication_error")


def test_json_formatter_keeps_extra_fields():
    record = logging.LogRecord("imobipro.test", logging.INFO, __file__, 1, "contact.created", (), None)
    record.event = "contact.created"
    record.contact_id = 42

    payload = json.loads(JsonFormatter().format(record))

    assert payload["message"] == "contact.created"
    assert payload["event"] == "contact.created"
    assert payload["contact_id"] == 42
    assert payload["level"] == "INFO"


def test_build_log_event_normalizes_context():
    event = build_log_event("task.start", LogContext(company_id=1, task_name="reports.execute_due"), attempt=1)
    assert event["event"] == "task.start"
    assert event["company_id"] == 1
    assert event["user_id"] is None
    assert event["attempt"] == 1
