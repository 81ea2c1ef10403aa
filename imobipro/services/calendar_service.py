"""Google Calendar connection per user and appointment synchronisation."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from imobipro.auth.company_context import CompanyContext
from imobipro.auth.jwt import create_state_token, decode_state_token
from imobipro.core.config import Config, get_config
from imobipro.core.exceptions import AuthenticationError, IntegrationError, NotFoundError, ValidationError
from imobipro.models.appointment import Appointment, CalendarCredential
from imobipro.models.user import User
from imobipro.services.base_service import BaseService
from imobipro.services.google_calendar_client import GoogleCalendarClient
from imobipro.utils.dates import as_utc, utcnow

logger = logging.getLogger(__name__)

# Tokens this close to expiry are refreshed before use.
EXPIRY_MARGIN = timedelta(seconds=60)


def appointment_to_event(appointment: Appointment) -> dict[str, Any]:
    description_parts = [appointment.notes or ""]
    if appointment.contact is not None:
        description_parts.append(f"Cliente: {appointment.contact.name}")
        if appointment.contact.phone:
            description_parts.append(f"Telefone: {appointment.contact.phone}")
    if appointment.property is not None:
        description_parts.append(f"Imóvel: {appointment.property.code} - {appointment.property.title}")
    return {
        "summary": appointment.title,
        "description": "\n".join(part for part in description_parts if part),
        "location": appointment.location or "",
        "start": {"dateTime": as_utc(appointment.starts_at).isoformat()},
        "end": {"dateTime": as_utc(appointment.ends_at).isoformat()},
        "extendedProperties": {"private": {"imobiproAppointmentId": str(appointment.id)}},
    }


class CalendarService(BaseService):
    def __init__(
        self,
        db: Session | None = None,
        config: Config | None = None,
        client: GoogleCalendarClient | None = None,
    ) -> None:
        super().__init__(db)
        self.config = config or get_config()
        self.client = client or GoogleCalendarClient(config=self.config)

    def get_credential(self, user_id: int) -> CalendarCredential | None:
        return self.db.scalars(select(CalendarCredential).where(CalendarCredential.user_id == user_id)).first()

    def is_connected(self, user_id: int) -> bool:
        return self.get_credential(user_id) is not None

    def authorization_url(self, context: CompanyContext) -> str:
        if context.user_id is None:
            raise ValidationError("Calendar connection requires a user.")
        state = create_state_token(context.user_id, context.company_id, secret=self.config.JWT_SECRET)
        return self.client.build_auth_url(state)

    def handle_callback(self, code: str, state: str) -> CalendarCredential:
        """Complete the OAuth flow and store the tokens of the user named in `state`."""
        if not code:
            raise ValidationError("Authorization code is missing.")
        try:
            claims = decode_state_token(state, secret=self.config.JWT_SECRET)
        except AuthenticationError as exc:
            raise ValidationError(f"Invalid OAuth state: {exc}") from exc

        user = self.db.get(User, int(claims["sub"]))
        if user is None or user.company_id != int(claims["company_id"]) or not user.is_active:
            raise NotFoundError("User of OAuth state not found.")

        tokens = self.client.exchange_code(code)
        if not tokens.get("access_token"):
            raise IntegrationError("Google did not return an access token.")

        credential = self.get_credential(user.id) or CalendarCredential(user_id=user.id)
        self._store_tokens(credential, tokens)
        self.db.add(credential)
        self.commit()
        self.db.refresh(credential)
        logger.info("calendar.connected", extra={"event": "calendar.connected", "user_id": user.id})
        return credential

    def _store_tokens(self, credential: CalendarCredential, tokens: dict[str, Any]) -> None:
        credential.access_token = tokens["access_token"]
        if tokens.get("refresh_token"):
            credential.refresh_token = tokens["refresh_token"]
        if tokens.get("scope"):
            credential.scope = tokens["scope"]
        expires_in = tokens.get("expires_in")
        credential.expires_at = utcnow() + timedelta(seconds=int(expires_in)) if expires_in else None

    def access_token_for(self, user_id: int) -> tuple[str, CalendarCredential]:
        """Return a usable access token, refreshing it when expired."""
        credential = self.get_credential(user_id)
        if credential is None:
            raise NotFoundError("Google Calendar is not connected for this user.")

        expires_at = as_utc(credential.expires_at)
        if expires_at is not None and expires_at - EXPIRY_MARGIN <= utcnow():
            if not credential.refresh_token:
                raise IntegrationError("Google token expired and no refresh token is stored.")
            tokens = self.client.refresh_access_token(credential.refresh_token)
            if not tokens.get("access_token"):
                raise IntegrationError("Google did not return a refreshed access token.")
            self._store_tokens(credential, tokens)
            self.commit()
            logger.info("calendar.token.refreshed", extra={"event": "calendar.token.refreshed", "user_id": user_id})
        return credential.access_token, credential

    def status(self, context: CompanyContext) -> dict[str, Any]:
        credential = self.get_credential(context.user_id) if context.user_id is not None else None
        return {
            "connected": credential is not None,
            "calendar_id": credential.calendar_id if credential else None,
            "expires_at": credential.expires_at if credential else None,
        }

    def list_events(self, context: CompanyContext, time_min: datetime, time_max: datetime) -> list[dict[str, Any]]:
        if as_utc(time_max) <= as_utc(time_min):
            raise ValidationError("time_max must be after time_min.")
        token, credential = self.access_token_for(context.user_id)
        return self.client.list_events(token, credential.calendar_id, as_utc(time_min), as_utc(time_max))

    def disconnect(self, context: CompanyContext) -> bool:
        credential = self.get_credential(context.user_id) if context.user_id is not None else None
        if credential is None:
            return False
        token = credential.refresh_token or credential.access_token
        try:
            self.client.revoke_token(token)
        except IntegrationError:
            # Local tokens are dropped even when Google refuses the revoke.
            logger.warning("calendar.revoke.failed", extra={"event": "calendar.revoke.failed", "user_id": context.user_id})
        self.db.delete(credential)
        self.commit()
        logger.info("calendar.disconnected", extra={"event": "calendar.disconnected", "user_id": context.user_id})
        return True

    def sync_appointment(self, appointment: Appointment) -> str | None:
        """Push an appointment to its agent's calendar; None when not connected."""
        if not self.is_connected(appointment.agent_id):
            return None
        token, credential = self.access_token_for(appointment.agent_id)
        event = appointment_to_event(appointment)
        if appointment.google_event_id:
            self.client.update_event(token, credential.calendar_id, appointment.google_event_id, event)
        else:
            created = self.client.create_event(token, credential.calendar_id, event)
            appointment.google_event_id = created.get("id")
        self.commit()
        logger.info(
            "calendar.appointment.synced",
            extra={
                "event": "calendar.appointment.synced",
                "appointment_id": appointment.id,
                "google_event_id": appointment.google_event_id,
            },
        )
        return appointment.google_event_id

    def remove_appointment(self, appointment: Appointment) -> bool:
        if not appointment.google_event_id or not self.is_connected(appointment.agent_id):
            return False
        token, credential = self.access_token_for(appointment.agent_id)
        self.client.delete_event(token, credential.calendar_id, appointment.google_event_id)
        appointment.google_event_id = None
        self.commit()
        return True
