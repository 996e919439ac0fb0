"""
Stripe webhook reconciliation.

Events are verified, deduplicated on event id (or checkout session id) and
dispatched over a closed set of event types. Handlers mirror Stripe objects
into local subscription and invoice rows and queue emails through the
outbox, so a replayed event never repeats a side effect.
"""
from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.security import constant_time_equals, hmac_sha256_hex
from marketplace.core.timeutil import from_unix, utcnow
from marketplace.models.agency import Agency
from marketplace.models.invoice import Invoice
from marketplace.models.plan import Plan
from marketplace.models.subscription import AgencySubscription
from marketplace.models.webhook_event import WebhookEvent
from marketplace.services.invitations import send_pending_invitations
from marketplace.services.notifications import enqueue_email
from marketplace.services.redaction import redact_payload

log = logging.getLogger(__name__)

DEFAULT_TOLERANCE_SECONDS = 300


class SignatureVerificationError(Exception):
    pass


class EventIgnored(Exception):
    """The event is valid but does not map to anything we know about."""


class StripeEventType(str, Enum):
    SUBSCRIPTION_CREATED = "customer.subscription.created"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"
    INVOICE_PAYMENT_SUCCEEDED = "invoice.payment_succeeded"
    INVOICE_PAYMENT_FAILED = "invoice.payment_failed"
    CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"


def compute_stripe_signature(payload: bytes, secret: str, timestamp: int) -> str:
    # signed over the raw bytes; the body is not decoded until it verifies
    return hmac_sha256_hex(secret, f"{timestamp}.".encode("utf-8") + payload)


def verify_stripe_signature(
    payload: bytes,
    header: str | None,
    secret: str,
    *,
    tolerance: int = DEFAULT_TOLERANCE_SECONDS,
    now: float | None = None,
) -> None:
    """Check a `Stripe-Signature: t=...,v1=...` header against the raw body."""
    if not header:
        raise SignatureVerificationError("Missing Stripe-Signature header")

    timestamp = None
    signatures = []
    for part in header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            timestamp = value
        elif key == "v1":
            signatures.append(value)
    if timestamp is None or not timestamp.isdigit() or not signatures:
        raise SignatureVerificationError("Malformed Stripe-Signature header")

    expected = compute_stripe_signature(payload, secret, int(timestamp))
    if not any(constant_time_equals(expected, sig) for sig in signatures):
        raise SignatureVerificationError("Signature mismatch")

    current = now if now is not None else time.time()
    if abs(current - int(timestamp)) > tolerance:
        raise SignatureVerificationError("Timestamp outside tolerance")


def idempotency_key_for(event: dict) -> str:
    obj = (event.get("data") or {}).get("object") or {}
    if event.get("type") == StripeEventType.CHECKOUT_SESSION_COMPLETED.value and obj.get("id"):
        return f"checkout:{obj['id']}"
    return event["id"]


# --- lookups ---------------------------------------------------------------

async def _resolve_agency(db: AsyncSession, obj: dict) -> Agency:
    agency_id = (obj.get("metadata") or {}).get("agencyId")
    if agency_id:
        agency = (await db.execute(select(Agency).where(Agency.id == agency_id))).scalar_one_or_none()
        if agency:
            return agency
    customer = obj.get("customer")
    if customer:
        agency = (await db.execute(select(Agency).where(Agency.stripe_customer_id == customer))).scalar_one_or_none()
        if agency:
            return agency
    raise EventIgnored(f"No agency for customer {customer!r}")


async def _plan_for_price(db: AsyncSession, price_id: str | None) -> Plan | None:
    if not price_id:
        return None
    return (await db.execute(select(Plan).where(Plan.stripe_price_id == price_id))).scalar_one_or_none()


def _first_item(obj: dict) -> dict:
    items = (obj.get("items") or {}).get("data") or []
    return items[0] if items else {}


def _email_agency(db: AsyncSession, agency: Agency, template: str, context: dict) -> None:
    if not agency.email:
        log.warning("no email on agency %s; skipping %s", agency.id, template)
        return
    enqueue_email(
        db,
        to=agency.email,
        template=template,
        context={"agency_name": agency.name, **context},
        aggregate_type="agency",
        aggregate_id=agency.id,
        created_by="stripe-webhook",
    )


def _mirror_agency_status(agency: Agency, stripe_status: str) -> None:
    if stripe_status in ("active", "trialing"):
        agency.subscription_status = "active"
    elif stripe_status in ("past_due", "unpaid"):
        agency.subscription_status = "past_due"
    elif stripe_status in ("canceled", "incomplete_expired"):
        agency.subscription_status = "canceled"


# --- handlers ----------------------------------------------------------------

async def _on_subscription_upsert(db: AsyncSession, obj: dict) -> None:
    agency = await _resolve_agency(db, obj)
    item = _first_item(obj)
    price_id = (item.get("price") or {}).get("id")
    plan = await _plan_for_price(db, price_id)

    sub = (
        await db.execute(select(AgencySubscription).where(AgencySubscription.stripe_subscription_id == obj["id"]))
    ).scalar_one_or_none()
    if sub is None:
        # checkout leaves an incomplete row without a Stripe id
        sub = (
            await db.execute(
                select(AgencySubscription)
                .where(
                    AgencySubscription.agency_id == agency.id,
                    AgencySubscription.stripe_subscription_id.is_(None),
                    AgencySubscription.status == "incomplete",
                )
                .order_by(AgencySubscription.created_at.desc())
                .limit(1)
            )
        ).scalar_one_or_none()
    if sub is None:
        sub = AgencySubscription(agency_id=agency.id, status="incomplete", created_by="stripe-webhook")
        db.add(sub)

    previous_status = sub.status
    sub.stripe_subscription_id = obj["id"]
    sub.stripe_customer_id = obj.get("customer")
    sub.stripe_price_id = price_id
    sub.plan_id = plan.id if plan else sub.plan_id
    sub.status = obj.get("status") or sub.status
    sub.current_period_start = from_unix(obj.get("current_period_start") or item.get("current_period_start"))
    sub.current_period_end = from_unix(obj.get("current_period_end") or item.get("current_period_end"))
    sub.trial_end = from_unix(obj.get("trial_end"))
    sub.cancel_at_period_end = bool(obj.get("cancel_at_period_end"))
    sub.canceled_at = from_unix(obj.get("canceled_at"))
    sub.updated_by = "stripe-webhook"

    _mirror_agency_status(agency, sub.status)
    if plan and sub.status in ("active", "trialing"):
        agency.subscription_plan = plan.name
    if not agency.stripe_customer_id and obj.get("customer"):
        agency.stripe_customer_id = obj["customer"]

    await db.flush()
    if sub.status == "active" and previous_status != "active":
        _email_agency(db, agency, "subscription_activated", {"plan_name": plan.display_name if plan else "subscription"})


async def _on_subscription_deleted(db: AsyncSession, obj: dict) -> None:
    sub = (
        await db.execute(select(AgencySubscription).where(AgencySubscription.stripe_subscription_id == obj["id"]))
    ).scalar_one_or_none()
    if sub is None:
        raise EventIgnored(f"Unknown subscription {obj['id']}")
    agency = (await db.execute(select(Agency).where(Agency.id == sub.agency_id))).scalar_one()

    already_canceled = sub.status == "canceled"
    now = utcnow()
    sub.status = "canceled"
    sub.canceled_at = from_unix(obj.get("canceled_at")) or sub.canceled_at or now
    sub.ended_at = from_unix(obj.get("ended_at")) or now
    sub.updated_by = "stripe-webhook"

    agency.subscription_plan = "free"
    agency.subscription_status = "canceled"
    await db.flush()
    if not already_canceled:
        _email_agency(db, agency, "subscription_canceled", {})


async def _upsert_invoice(db: AsyncSession, obj: dict, status: str) -> tuple[Invoice, Agency, str | None]:
    agency = await _resolve_agency(db, obj)
    inv = (await db.execute(select(Invoice).where(Invoice.stripe_invoice_id == obj["id"]))).scalar_one_or_none()
    previous_status = inv.status if inv else None
    if inv is None:
        inv = Invoice(stripe_invoice_id=obj["id"], agency_id=agency.id, created_by="stripe-webhook")
        db.add(inv)

    sub_id = None
    if obj.get("subscription"):
        sub_id = (
            await db.execute(
                select(AgencySubscription.id).where(AgencySubscription.stripe_subscription_id == obj["subscription"])
            )
        ).scalar_one_or_none()

    inv.subscription_id = sub_id or inv.subscription_id
    inv.stripe_customer_id = obj.get("customer")
    inv.amount_due = int(obj.get("amount_due") or 0)
    inv.amount_paid = int(obj.get("amount_paid") or 0)
    inv.currency = (obj.get("currency") or "zar").upper()
    inv.status = status
    inv.number = obj.get("number")
    inv.hosted_invoice_url = obj.get("hosted_invoice_url")
    inv.invoice_pdf = obj.get("invoice_pdf")
    inv.period_start = from_unix(obj.get("period_start"))
    inv.period_end = from_unix(obj.get("period_end"))
    inv.updated_by = "stripe-webhook"
    await db.flush()
    return inv, agency, previous_status


async def _on_invoice_paid(db: AsyncSession, obj: dict) -> None:
    inv, _, _ = await _upsert_invoice(db, obj, "paid")
    paid_at = ((obj.get("status_transitions") or {}).get("paid_at"))
    inv.paid_at = from_unix(paid_at) or utcnow()


async def _on_invoice_failed(db: AsyncSession, obj: dict) -> None:
    inv, agency, previous_status = await _upsert_invoice(db, obj, "uncollectible")
    if previous_status != "uncollectible":
        _email_agency(
            db,
            agency,
            "payment_failed",
            {"invoice_number": inv.number or inv.stripe_invoice_id, "amount": f"{inv.amount_due / 100:.2f}", "currency": inv.currency},
        )


async def _on_checkout_completed(db: AsyncSession, obj: dict) -> None:
    agency = await _resolve_agency(db, obj)
    session_id = obj["id"]
    if agency.last_checkout_session_id == session_id:
        log.info("checkout %s already applied to agency %s", session_id, agency.id)
        return

    plan = None
    plan_id = (obj.get("metadata") or {}).get("planId")
    if plan_id:
        plan = (await db.execute(select(Plan).where(Plan.id == plan_id))).scalar_one_or_none()

    agency.last_checkout_session_id = session_id
    agency.subscription_status = "active"
    agency.activated_at = utcnow()
    if plan:
        agency.subscription_plan = plan.name
    if obj.get("customer") and not agency.stripe_customer_id:
        agency.stripe_customer_id = obj["customer"]

    stripe_sub_id = obj.get("subscription")
    if stripe_sub_id:
        known = (
            await db.execute(select(AgencySubscription).where(AgencySubscription.stripe_subscription_id == stripe_sub_id))
        ).scalar_one_or_none()
        if known is None:
            pending = (
                await db.execute(
                    select(AgencySubscription)
                    .where(AgencySubscription.agency_id == agency.id, AgencySubscription.stripe_subscription_id.is_(None))
                    .order_by(AgencySubscription.created_at.desc())
                    .limit(1)
                )
            ).scalar_one_or_none()
            if pending is not None:
                pending.stripe_subscription_id = stripe_sub_id
                pending.updated_by = "stripe-webhook"

    await db.flush()
    await send_pending_invitations(db, agency)
    _email_agency(db, agency, "welcome", {"plan_name": plan.display_name if plan else agency.subscription_plan})


Handler = Callable[[AsyncSession, dict], Awaitable[None]]

_HANDLERS: dict[StripeEventType, Handler] = {
    StripeEventType.SUBSCRIPTION_CREATED: _on_subscription_upsert,
    StripeEventType.SUBSCRIPTION_UPDATED: _on_subscription_upsert,
    StripeEventType.SUBSCRIPTION_DELETED: _on_subscription_deleted,
    StripeEventType.INVOICE_PAYMENT_SUCCEEDED: _on_invoice_paid,
    StripeEventType.INVOICE_PAYMENT_FAILED: _on_invoice_failed,
    StripeEventType.CHECKOUT_SESSION_COMPLETED: _on_checkout_completed,
}


async def _noop(db: AsyncSession, obj: dict) -> None:
    return None


def handler_for(event_type: str) -> Handler:
    try:
        return _HANDLERS[StripeEventType(event_type)]
    except ValueError:
        return _noop


async def _find_event(db: AsyncSession, event_id: str, key: str) -> WebhookEvent | None:
    stmt = select(WebhookEvent).where(or_(WebhookEvent.event_id == event_id, WebhookEvent.idempotency_key == key))
    return (await db.execute(stmt.limit(1))).scalar_one_or_none()


async def handle_stripe_event(db: AsyncSession, event: dict[str, Any]) -> str:
    """
    Apply one verified event. Returns "processed", "ignored", "duplicate" or
    "failed". The caller commits.

    A handler failure rolls back its partial writes; the event row is then
    recorded as failed so a redelivery retries it.
    """
    event_id = event["id"]
    event_type = event.get("type", "")
    key = idempotency_key_for(event)
    obj = (event.get("data") or {}).get("object") or {}

    existing = await _find_event(db, event_id, key)
    if existing is not None and existing.status != "failed":
        log.info("stripe event %s (%s) already %s", event_id, event_type, existing.status)
        return "duplicate"

    handler = handler_for(event_type)
    status, error = ("ignored" if handler is _noop else "processed"), None
    try:
        await handler(db, obj)
    except EventIgnored as exc:
        status, error = "ignored", str(exc)
    except Exception as exc:
        log.exception("stripe event %s (%s) failed", event_id, event_type)
        await db.rollback()
        status, error = "failed", f"{type(exc).__name__}: {exc}"
        existing = await _find_event(db, event_id, key)

    now = utcnow()
    if existing is None:
        db.add(WebhookEvent(
            provider="stripe",
            event_id=event_id,
            event_type=event_type,
            idempotency_key=key,
            status=status,
            attempts=1,
            error=error,
            payload=redact_payload(event),
            processed_at=now if status != "failed" else None,
            created_by="stripe-webhook",
            updated_by="stripe-webhook",
        ))
    else:
        existing.status = status
        existing.attempts = existing.attempts + 1
        existing.error = error
        existing.processed_at = now if status != "failed" else None
        existing.updated_by = "stripe-webhook"
    await db.flush()
    return status
