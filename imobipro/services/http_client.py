"""Retrying HTTP helper shared by the outbound integrations."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import requests

from imobipro.core.config import Config
from imobipro.core.exceptions import IntegrationError

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


def backoff_delay(config: Config, attempt: int) -> float:
    """Fixed exponential backoff: base, 2*base, 4*base, ..."""
    return config.HTTP_BACKOFF_SECONDS * (2**attempt)


def send_with_retries(
    session: requests.Session,
    method: str,
    url: str,
    config: Config,
    sleep: Callable[[float], None],
    integration: str,
    correlation_id: str | None = None,
    **kwargs: Any,
) -> requests.Response:
    """Send a request, retrying connection errors and retryable statuses.

    Only idempotent-safe failures are retried: network errors and the
    statuses in RETRYABLE_STATUS_CODES. Other 4xx answers fail at once.
    """
    kwargs.setdefault("timeout", config.HTTP_TIMEOUT_SECONDS)
    total_attempts = config.HTTP_MAX_RETRIES + 1
    last_error = "unknown"
    status_code: int | None = None

    for attempt in range(total_attempts):
        try:
            response = session.request(method, url, **kwargs)
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as exc:
            last_error = str(exc) or exc.__class__.__name__
            status_code = None
        else:
            if response.status_code < 400:
                return response
            status_code = response.status_code
            last_error = f"HTTP {response.status_code}"
            if response.status_code not in RETRYABLE_STATUS_CODES:
                break

        logger.warning(
            f"{integration}.request.failed",
            extra={
                "event": f"{integration}.request.failed",
                "attempt": attempt + 1,
                "attempts_total": total_attempts,
                "correlation_id": correlation_id,
                "error": last_error,
            },
        )
        if attempt + 1 < total_attempts:
            sleep(backoff_delay(config, attempt))

    logger.error(
        f"{integration}.request.unavailable",
        extra={
            "event": f"{integration}.request.unavailable",
            "correlation_id": correlation_id,
            "status_code": status_code,
            "error": last_error,
        },
    )
    raise IntegrationError(f"{integration} request failed: {last_error}")


def json_body(response: requests.Response) -> dict[str, Any]:
    if not response.content:
        return {}
    try:
        body = response.json()
    except ValueError:
        return {"raw": response.text}
    return body if isinstance(body, dict) else {"data": body}
