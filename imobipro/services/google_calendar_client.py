"""Google OAuth token exchange and Calendar v3 REST calls."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime
from typing import Any
from urllib.parse import quote, urlencode

import requests

from imobipro.core.config import Config, get_config
from imobipro.core.exceptions import ConfigurationError
from imobipro.services.http_client import json_body, send_with_retries

logger = logging.getLogger(__name__)

AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
REVOKE_URL = "https://oauth2.googleapis.com/revoke"
CALENDAR_API = "https://www.googleapis.com/calendar/v3"
SCOPES = (
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/calendar.events",
)


class GoogleCalendarClient:
    def __init__(
        self,
        config: Config | None = None,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config or get_config()
        self.session = session or requests.Session()
        self._sleep = sleep

    def _require_credentials(self) -> None:
        if not (self.config.GOOGLE_CLIENT_ID and self.config.GOOGLE_CLIENT_SECRET):
            raise ConfigurationError("Google Calendar credentials are not configured.")

    def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        response = send_with_retries(
            self.session,
            method,
            url,
            config=self.config,
            sleep=self._sleep,
            integration="google_calendar",
            **kwargs,
        )
        return json_body(response)

    def build_auth_url(self, state: str) -> str:
        self._require_credentials()
        params = {
            "client_id": self.config.GOOGLE_CLIENT_ID,
            "redirect_uri": self.config.GOOGLE_REDIRECT_URI,
            "response_type": "code",
            "scope": " ".join(SCOPES),
            "access_type": "offline",
            "prompt": "consent",
            "include_granted_scopes": "true",
            "state": state,
        }
        return f"{AUTH_URL}?{urlencode(params)}"

    def exchange_code(self, code: str) -> dict[str, Any]:
        """Swap an authorization code for access/refresh tokens."""
        self._require_credentials()
        return self._request(
            "POST",
            TOKEN_URL,
            data={
                "code": code,
                "client_id": self.config.GOOGLE_CLIENT_ID,
                "client_secret": self.config.GOOGLE_CLIENT_SECRET,
                "redirect_uri": self.config.GOOGLE_REDIRECT_URI,
                "grant_type": "authorization_code",
            },
        )

    def refresh_access_token(self, refresh_token: str) -> dict[str, Any]:
        self._require_credentials()
        return self._request(
            "POST",
            TOKEN_URL,
            data={
                "refresh_token": refresh_token,
                "client_id": self.config.GOOGLE_CLIENT_ID,
                "client_secret": self.config.GOOGLE_CLIENT_SECRET,
                "grant_type": "refresh_token",
            },
        )

    def revoke_token(self, token: str) -> None:
        self._request("POST", REVOKE_URL, data={"token": token})

    @staticmethod
    def _events_url(calendar_id: str, event_id: str | None = None) -> str:
        url = f"{CALENDAR_API}/calendars/{quote(calendar_id, safe='@.')}/events"
        if event_id:
            url = f"{url}/{quote(event_id, safe='')}"
        return url

    @staticmethod
    def _auth(access_token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {access_token}"}

    def list_events(
        self,
        access_token: str,
        calendar_id: str,
        time_min: datetime,
        time_max: datetime,
        max_results: int = 250,
    ) -> list[dict[str, Any]]:
        body = self._request(
            "GET",
            self._events_url(calendar_id),
            headers=self._auth(access_token),
            params={
                "timeMin": time_min.isoformat(),
                "timeMax": time_max.isoformat(),
                "singleEvents": "true",
                "orderBy": "startTime",
                "maxResults": max_results,
            },
        )
        return list(body.get("items", []))

    def create_event(self, access_token: str, calendar_id: str, event: dict[str, Any]) -> dict[str, Any]:
        return self._request("POST", self._events_url(calendar_id), headers=self._auth(access_token), json=event)

    def update_event(self, access_token: str, calendar_id: str, event_id: str, event: dict[str, Any]) -> dict[str, Any]:
        return self._request(
            "PATCH",
            self._events_url(calendar_id, event_id),
            headers=self._auth(access_token),
            json=event,
        )

    def delete_event(self, access_token: str, calendar_id: str, event_id: str) -> None:
        self._request("DELETE", self._events_url(calendar_id, event_id), headers=self._auth(access_token))
