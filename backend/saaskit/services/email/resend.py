from __future__ import annotations

import logging

import requests
from starlette.concurrency import run_in_threadpool

from saaskit.core.settings import Settings
from saaskit.services.email.base import EmailDeliveryError, EmailService
from saaskit.services.status import ProviderNotConfiguredError, ServiceConfigStatus, missing_settings

logger = logging.getLogger(__name__)

SERVICE_NAME = "Email (Resend)"
RESEND_API_URL = "https://api.resend.com"


class ResendEmailService(EmailService):
    def __init__(self, settings: Settings, timeout_s: float = 15):
        self.api_key = settings.resend_api_key
        self.sender = settings.resend_email_sender
        self.timeout_s = timeout_s
        self._missing = missing_settings({"RESEND_API_KEY": self.api_key, "RESEND_EMAIL_SENDER": self.sender})

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _post_email(self, to: str, subject: str, html: str) -> None:
        try:
            resp = requests.post(
                f"{RESEND_API_URL}/emails",
                headers=self._headers(),
                json={"from": self.sender, "to": [to], "subject": subject, "html": html},
                timeout=self.timeout_s,
            )
        except requests.exceptions.RequestException as exc:
            raise EmailDeliveryError("Failed to send email") from exc
        if resp.status_code >= 400:
            logger.error("email.rejected status=%s body=%s", resp.status_code, resp.text[:500])
            raise EmailDeliveryError(f"Failed to send email ({resp.status_code})")

    async def send_email(self, to: str, subject: str, html: str) -> None:
        if self._missing:
            raise ProviderNotConfiguredError(SERVICE_NAME, self._missing)
        await run_in_threadpool(self._post_email, to, subject, html)
        logger.info("email.sent subject=%s", subject)

    async def check_configuration(self) -> ServiceConfigStatus:
        if self._missing:
            return ServiceConfigStatus(
                name=SERVICE_NAME,
                configured=False,
                connected=False,
                config_to_review=list(self._missing),
                error=f"Missing required configuration: {', '.join(self._missing)}",
            )
        return ServiceConfigStatus(name=SERVICE_NAME, configured=True)

    async def check_connection(self) -> ServiceConfigStatus:
        def _ping() -> int:
            resp = requests.get(f"{RESEND_API_URL}/domains", headers=self._headers(), timeout=self.timeout_s)
            return int(resp.status_code)

        try:
            status = await run_in_threadpool(_ping)
        except requests.exceptions.RequestException as exc:
            logger.warning("email.ping_failed error=%s", exc)
            status = None
        if status != 200:
            return ServiceConfigStatus(
                name=SERVICE_NAME,
                configured=True,
                connected=False,
                config_to_review=["RESEND_API_KEY"],
                error=f"Connection error: Resend answered {status}" if status else "Connection error: Resend unreachable",
            )
        return ServiceConfigStatus(name=SERVICE_NAME, configured=True, connected=True)
