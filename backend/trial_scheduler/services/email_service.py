from __future__ import annotations

import asyncio
import logging

import httpx

from trial_scheduler.core.config import settings
from trial_scheduler.utils.exceptions import InvalidEmailError, TransientDeliveryError
from trial_scheduler.utils.validators import normalize_email

logger = logging.getLogger(__name__)

RESEND_URL = "https://api.resend.com/emails"


class EmailService:
    """
    Outbound email with a provider toggle (dev | resend).

    send_notification_email() retries transient failures internally and
    reports the final outcome as a bool; it never raises.
    """

    def __init__(
        self,
        provider: str | None = None,
        max_retries: int | None = None,
        retry_delay: float | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.provider = (provider or settings.EMAIL_PROVIDER or "dev").strip().lower()
        self.max_retries = max_retries or settings.EMAIL_MAX_RETRIES
        self.retry_delay = settings.EMAIL_RETRY_DELAY_SECONDS if retry_delay is None else retry_delay
        self.timeout = timeout or settings.EMAIL_TIMEOUT_SECONDS
        self._transport = transport

    async def send_notification_email(self, address: str, subject: str, html_body: str) -> bool:
        try:
            target = normalize_email(address)
        except InvalidEmailError as e:
            logger.warning("Email not sent: %s", e)
            return False

        last_error = ""
        for attempt in range(1, self.max_retries + 1):
            try:
                await self._deliver(target, subject, html_body)
                logger.info("Email sent to=%s subject=%r attempt=%d", target, subject, attempt)
                return True
            except TransientDeliveryError as e:
                last_error = str(e)
                if attempt >= self.max_retries:
                    break
                logger.warning(
                    "Email send attempt %d/%d failed for %s, retrying in %.1fs: %s",
                    attempt, self.max_retries, target, self.retry_delay, last_error,
                )
                await asyncio.sleep(self.retry_delay)
            except Exception as e:
                last_error = f"{type(e).__name__}: {e}"
                break

        logger.error("Email delivery failed to=%s subject=%r: %s", target, subject, last_error)
        return False

    async def _deliver(self, target: str, subject: str, html_body: str) -> None:
        provider = self.provider
        if provider == "dev":
            logger.info("[DEV EMAIL] to=%s subject=%r", target, subject)
            return
        if provider == "resend":
            await self._send_resend(target, subject, html_body)
            return
        raise ValueError(f"Unsupported EMAIL_PROVIDER: {provider}")

    async def _send_resend(self, target: str, subject: str, html_body: str) -> None:
        api_key = (settings.RESEND_API_KEY or "").strip()
        sender = (settings.EMAIL_FROM or "").strip()
        if not api_key or not sender:
            raise ValueError("Resend email config missing (RESEND_API_KEY/EMAIL_FROM)")

        payload = {
            "from": sender,
            "to": [target],
            "subject": subject,
            "html": html_body,
        }
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(RESEND_URL, json=payload, headers=headers)
        except httpx.TransportError as e:
            raise TransientDeliveryError(f"Resend unreachable: {e}") from e

        if resp.status_code == 429 or resp.status_code >= 500:
            raise TransientDeliveryError(f"Resend email failed: {resp.status_code} {resp.text[:200]}")
        if resp.status_code >= 400:
            raise ValueError(f"Resend email failed: {resp.status_code} {resp.text[:200]}")


email_service = EmailService()
