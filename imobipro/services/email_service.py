from __future__ import annotations

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from imobipro.core.config import Config, get_config
from imobipro.core.exceptions import ConfigurationError, IntegrationError
from imobipro.utils.validators import is_valid_email, sanitize_text

logger = logging.getLogger(__name__)


class EmailService:
    def __init__(self, config: Config | None = None) -> None:
        self.config = config or get_config()
        self.smtp_host = self.config.SMTP_SERVER
        self.smtp_port = self.config.SMTP_PORT
        self.smtp_user = self.config.SMTP_USERNAME
        self.smtp_password = self.config.SMTP_PASSWORD
        self.from_email = self.config.SMTP_FROM_EMAIL
        self.sandbox_mode = self.config.SMTP_SANDBOX_MODE

    def send_email(self, to_emails: list[str], subject: str, text_body: str, html_body: str | None = None) -> int:
        """Send one message to every recipient; returns the number delivered.

        In sandbox mode nothing leaves the process and delivery is only logged.
        """
        recipients = [address.strip().lower() for address in to_emails if is_valid_email(address)]
        if not recipients:
            raise IntegrationError("No valid e-mail recipients.")
        subject = sanitize_text(subject, 500)

        if self.sandbox_mode:
            logger.info(
                "email.sandbox.sent",
                extra={"event": "email.sandbox.sent", "recipients": len(recipients), "subject": subject},
            )
            return len(recipients)

        if not self.smtp_host:
            raise ConfigurationError("SMTP_SERVER is not configured.")

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.from_email
        msg["To"] = ", ".join(recipients)
        msg.attach(MIMEText(text_body, "plain", "utf-8"))
        if html_body:
            msg.attach(MIMEText(html_body, "html", "utf-8"))

        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.config.HTTP_TIMEOUT_SECONDS * 3) as server:
                server.starttls()
                if self.smtp_user and self.smtp_password:
                    server.login(self.smtp_user, self.smtp_password)
                server.sendmail(self.from_email, recipients, msg.as_string())
        except (smtplib.SMTPException, OSError) as exc:
            logger.exception("email.send.failed", extra={"event": "email.send.failed", "recipients": len(recipients)})
            raise IntegrationError(f"SMTP delivery failed: {exc}") from exc

        logger.info("email.sent", extra={"event": "email.sent", "recipients": len(recipients)})
        return len(recipients)
