from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.models.outbox import OutboxEvent
from marketplace.services.email import TEMPLATES

EMAIL_EVENT_TYPE = "email.send"


def enqueue_email(
    db: AsyncSession,
    *,
    to: str,
    template: str,
    context: dict,
    aggregate_type: str,
    aggregate_id: str,
    created_by: str | None = None,
) -> OutboxEvent:
    """Queue an email in the caller's transaction; the outbox worker delivers it."""
    if template not in TEMPLATES:
        raise KeyError(f"Unknown email template: {template}")
    event = OutboxEvent(
        aggregate_type=aggregate_type,
        aggregate_id=aggregate_id,
        event_type=EMAIL_EVENT_TYPE,
        payload={"to": to, "template": template, "context": context},
        status="pending",
        created_by=created_by,
        updated_by=created_by,
    )
    db.add(event)
    return event
