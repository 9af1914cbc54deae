"""Report email sink (SendGrid v3 mail/send)."""

from __future__ import annotations

import logging
from typing import Any

import requests

from jira_score.core.config import EMAIL_TIMEOUT_SECONDS, SENDGRID_SEND_URL, EmailSettings

logger = logging.getLogger(__name__)

SENDGRID_PROVIDER = "sendgrid"


def build_payload(settings: EmailSettings, subject: str, body: str) -> dict[str, Any]:
    return {
        "personalizations": [{"to": [{"email": settings.to_email}]}],
        "from": {"email": settings.from_email},
        "subject": subject,
        "content": [{"type": "text/plain", "value": body}],
    }


class EmailNotifier:
    def __init__(self, settings: EmailSettings, session: requests.Session | None = None, url: str = SENDGRID_SEND_URL):
        self.settings = settings
        self.session = session or requests.Session()
        self.url = url

    def is_configured(self) -> bool:
        s = self.settings
        return bool(s.api_key.strip() and s.from_email.strip() and s.to_email.strip())

    def send(self, subject: str | None, body: str) -> bool:
        if not self.settings.send_report:
            logger.info("Report email disabled (send_report is off).")
            return False
        if self.settings.provider.strip().casefold() != SENDGRID_PROVIDER:
            logger.warning("Unsupported email provider '%s'. Skipping report email.", self.settings.provider)
            return False
        if not self.is_configured():
            logger.warning("Email settings are missing. Skipping report email.")
            return False

        final_subject = subject if subject and subject.strip() else self.settings.subject
        headers = {"Authorization": f"Bearer {self.settings.api_key}"}
        try:
            resp = self.session.post(
                self.url,
                json=build_payload(self.settings, final_subject, body),
                headers=headers,
                timeout=EMAIL_TIMEOUT_SECONDS,
            )
        except requests.RequestException as exc:
            logger.error("Failed to send report email: %s", exc)
            return False
        if resp.status_code >= 400:
            logger.error("Failed to send report email: %s %s", resp.status_code, resp.text[:500])
            return False
        logger.info("Report email sent to %s.", self.settings.to_email)
        return True
