"""
Outbound email: message templates and delivery providers.

Providers return an EmailSendResult instead of raising so the outbox worker
can decide between retry and dead-letter.
"""
from __future__ import annotations

import html
import logging
import random
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Protocol

from marketplace.core.config import settings
from marketplace.core.ids import gen_id
from marketplace.services.http_client import ServiceHttpClient

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    html: str
    text: str
    tags: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class EmailSendResult:
    ok: bool
    message_id: str | None = None
    error: str | None = None
    retryable: bool = True


# template -> (subject, body); bodies use str.format over the event context
TEMPLATES: dict[str, tuple[str, str]] = {
    "welcome": (
        "Welcome to Property Listify, {agency_name}",
        "Your {plan_name} subscription is active. Sign in at {app_url} to start listing.",
    ),
    "subscription_activated": (
        "Your subscription is active",
        "The {plan_name} plan for {agency_name} is now active.",
    ),
    "subscription_canceled": (
        "Your subscription has been cancelled",
        "The subscription for {agency_name} has ended. Your account is now on the free plan.",
    ),
    "payment_failed": (
        "Payment failed for invoice {invoice_number}",
        "We could not collect payment of {amount} {currency} for {agency_name}. Please update your payment method at {app_url}/billing.",
    ),
    "team_invitation": (
        "You have been invited to join {agency_name}",
        "Accept your invitation at {app_url}/invitations/{token}",
    ),
    "listing_approved": (
        "Your listing has been approved",
        "\"{listing_title}\" was approved and can now be published.",
    ),
    "listing_rejected": (
        "Your listing needs changes",
        "\"{listing_title}\" was not approved: {reason}. Update it and resubmit for review.",
    ),
}


class _SafeDict(dict):
    def __missing__(self, key: str) -> str:
        return ""


def render_email(template: str, *, to: str, context: dict) -> EmailMessage:
    if template not in TEMPLATES:
        raise KeyError(f"Unknown email template: {template}")
    subject_t, body_t = TEMPLATES[template]
    ctx = _SafeDict({"app_url": settings.app_url, **context})
    subject = subject_t.format_map(ctx)
    text = body_t.format_map(ctx)
    escaped = _SafeDict({k: html.escape(str(v)) for k, v in ctx.items()})
    body_html = f"<p>{body_t.format_map(escaped)}</p>"
    return EmailMessage(to=to, subject=subject, html=body_html, text=text, tags={"template": template})


class EmailProvider(Protocol):
    name: str

    async def send(self, message: EmailMessage) -> EmailSendResult: ...


class MockEmailProvider:
    """Logs instead of sending. Fails a fraction of sends to exercise retries."""

    name = "mock"

    def __init__(self, *, failure_rate: float = 0.05, rng: random.Random | None = None):
        self.failure_rate = failure_rate
        self._rng = rng or random.Random()
        self.sent: list[EmailMessage] = []

    async def send(self, message: EmailMessage) -> EmailSendResult:
        if self._rng.random() < self.failure_rate:
            log.warning("mock email: simulated failure to=%s subject=%r", message.to, message.subject)
            return EmailSendResult(ok=False, error="simulated transient failure", retryable=True)
        self.sent.append(message)
        log.info("mock email: to=%s subject=%r", message.to, message.subject)
        return EmailSendResult(ok=True, message_id=gen_id("mockmsg"))


class ResendEmailProvider:
    name = "resend"

    def __init__(self, *, api_key: str, sender: str, http: ServiceHttpClient | None = None):
        self.sender = sender
        self._http = http or ServiceHttpClient(
            base_url="https://api.resend.com",
            headers={"Authorization": f"Bearer {api_key}"},
        )

    async def send(self, message: EmailMessage) -> EmailSendResult:
        res = await self._http.send(
            "POST",
            "/emails",
            json={
                "from": self.sender,
                "to": [message.to],
                "subject": message.subject,
                "html": message.html,
                "text": message.text,
                "tags": [{"name": k, "value": v} for k, v in message.tags.items()],
            },
        )
        if res.ok:
            return EmailSendResult(ok=True, message_id=res.body.get("id"))
        return EmailSendResult(ok=False, error=res.error_message, retryable=res.retryable)


@lru_cache(maxsize=1)
def get_email_provider() -> EmailProvider:
    if settings.email_provider == "resend":
        if settings.resend_api_key is None:
            log.warning("email: EMAIL_PROVIDER=resend but RESEND_API_KEY is unset, using mock provider")
        else:
            return ResendEmailProvider(api_key=settings.resend_api_key.get_secret_value(), sender=settings.email_from)
    return MockEmailProvider(failure_rate=settings.mock_email_failure_rate)
