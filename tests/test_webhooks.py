import json
import time

import pytest
from pydantic import SecretStr
from sqlalchemy import select

from marketplace.core.config import settings
from marketplace.models.agency import Agency
from marketplace.models.invoice import Invoice
from marketplace.models.outbox import OutboxEvent
from marketplace.models.subscription import AgencySubscription
from marketplace.models.webhook_event import WebhookEvent
from marketplace.services.stripe_webhooks import (
    SignatureVerificationError,
    compute_stripe_signature,
    verify_stripe_signature,
)

WEBHOOK_SECRET = "whsec_test"


@pytest.fixture
def stripe_on(monkeypatch):
    monkeypatch.setattr(settings, "stripe_secret_key", SecretStr("sk_test_123"))
    monkeypatch.setattr(settings, "stripe_webhook_secret", SecretStr(WEBHOOK_SECRET))


async def _deliver(client, event: dict, *, secret: str = WEBHOOK_SECRET):
    body = json.dumps(event).encode()
    ts = int(time.time())
    sig = compute_stripe_signature(body, secret, ts)
    return await client.post(
        "/v1/webhooks/stripe",
        content=body,
        headers={"Stripe-Signature": f"t={ts},v1={sig}", "Content-Type": "application/json"},
    )


def _checkout_event(event_id: str, agency_id: str, plan_id: str, session_id: str = "cs_test_1") -> dict:
    return {
        "id": event_id,
        "type": "checkout.session.completed",
        "data": {"object": {
            "id": session_id,
            "customer": "cus_123",
            "subscription": "sub_123",
            "metadata": {"agencyId": agency_id, "planId": plan_id},
        }},
    }


def _subscription_event(event_id: str, event_type: str, status: str, **extra) -> dict:
    return {
        "id": event_id,
        "type": event_type,
        "data": {"object": {
            "id": "sub_123",
            "customer": "cus_123",
            "status": status,
            "current_period_start": 1_760_000_000,
            "current_period_end": 1_762_592_000,
            "cancel_at_period_end": False,
            "items": {"data": [{"price": {"id": "price_pro_monthly"}}]},
            **extra,
        }},
    }


async def _emails(db_session, template: str) -> list[OutboxEvent]:
    rows = (await db_session.execute(select(OutboxEvent))).scalars().all()
    return [r for r in rows if r.payload["template"] == template]


def test_signature_verification():
    body = b'{"id": "evt_1"}'
    now = 1_700_000_000
    good = f"t={now},v1={compute_stripe_signature(body, 'secret', now)}"
    verify_stripe_signature(body, good, "secret", now=now + 10)

    with pytest.raises(SignatureVerificationError, match="mismatch"):
        verify_stripe_signature(body, good, "other-secret", now=now)
    with pytest.raises(SignatureVerificationError, match="tolerance"):
        verify_stripe_signature(body, good, "secret", now=now + 301)
    with pytest.raises(SignatureVerificationError, match="Malformed"):
        verify_stripe_signature(body, "v1=abc", "secret", now=now)
    with pytest.raises(SignatureVerificationError, match="Missing"):
        verify_stripe_signature(body, None, "secret", now=now)

    raw = b"\xff\xfe not utf-8"
    signed = f"t={now},v1={compute_stripe_signature(raw, 'secret', now)}"
    verify_stripe_signature(raw, signed, "secret", now=now)
    with pytest.raises(SignatureVerificationError, match="mismatch"):
        verify_stripe_signature(raw, f"t={now},v1=deadbeef", "secret", now=now)


@pytest.mark.asyncio
async def test_unconfigured_webhook_is_acknowledged(client):
    r = await client.post("/v1/webhooks/stripe", content=b"{}")
    assert r.status_code == 200
    assert r.json() == {"received": True, "status": "stripe_not_configured"}


@pytest.mark.asyncio
async def test_bad_signature_rejected(client, stripe_on):
    r = await _deliver(client, {"id": "evt_bad", "type": "ping"}, secret="whsec_wrong")
    assert r.status_code == 400
    assert r.json()["detail"].startswith("Invalid signature")


@pytest.mark.asyncio
async def test_undecodable_body_rejected_before_parsing(client, db_session, stripe_on):
    r = await client.post(
        "/v1/webhooks/stripe",
        content=b'\xff\xfe{"id":"evt_x"}',
        headers={"Stripe-Signature": f"t={int(time.time())},v1=deadbeef"},
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "Invalid signature: Signature mismatch"
    assert (await db_session.execute(select(WebhookEvent))).scalars().all() == []


@pytest.mark.asyncio
async def test_event_with_null_data_is_acknowledged(client, db_session, stripe_on):
    r = await _deliver(client, {"id": "evt_null", "type": "invoice.payment_succeeded", "data": None})
    assert r.status_code == 200, r.text
    assert r.json() == {"received": True, "status": "ignored"}

    row = (await db_session.execute(select(WebhookEvent))).scalar_one()
    assert (row.event_id, row.idempotency_key) == ("evt_null", "evt_null")


@pytest.mark.asyncio
async def test_event_without_id_rejected(client, stripe_on):
    r = await _deliver(client, {"type": "ping"})
    assert r.status_code == 400
    assert r.json()["detail"] == "Event id missing"


@pytest.mark.asyncio
async def test_checkout_completed_activates_agency_once(client, db_session, stripe_on, seed_agency_admin, seed_plan):
    agency_id = seed_agency_admin["agency_id"]
    r = await client.post(
        "/v1/agency/invitations",
        headers=seed_agency_admin["headers"],
        json={"email": "New.Agent@CapeRealty.test"},
    )
    assert r.status_code == 201, r.text
    assert r.json()["status"] == "pending"

    r = await _deliver(client, _checkout_event("evt_checkout_1", agency_id, seed_plan.id))
    assert r.status_code == 200, r.text
    assert r.json() == {"received": True, "status": "processed"}

    agency = (await db_session.execute(select(Agency).where(Agency.id == agency_id))).scalar_one()
    assert agency.subscription_status == "active"
    assert agency.subscription_plan == "professional"
    assert agency.stripe_customer_id == "cus_123"
    assert agency.activated_at is not None

    welcome = await _emails(db_session, "welcome")
    assert len(welcome) == 1
    assert welcome[0].payload["to"] == "billing@caperealty.test"
    invites = await _emails(db_session, "team_invitation")
    assert [e.payload["to"] for e in invites] == ["new.agent@caperealty.test"]

    # same event again, then a new event id for the same session
    r = await _deliver(client, _checkout_event("evt_checkout_1", agency_id, seed_plan.id))
    assert r.json()["status"] == "duplicate"
    r = await _deliver(client, _checkout_event("evt_checkout_2", agency_id, seed_plan.id))
    assert r.json()["status"] == "duplicate"
    assert len(await _emails(db_session, "welcome")) == 1

    rows = (await db_session.execute(select(WebhookEvent))).scalars().all()
    assert [(w.event_id, w.status, w.idempotency_key) for w in rows] == [
        ("evt_checkout_1", "processed", "checkout:cs_test_1")
    ]


@pytest.mark.asyncio
async def test_subscription_lifecycle(client, db_session, stripe_on, seed_agency_admin, seed_plan):
    agency_id = seed_agency_admin["agency_id"]
    agency = (await db_session.execute(select(Agency).where(Agency.id == agency_id))).scalar_one()
    agency.stripe_customer_id = "cus_123"
    await db_session.commit()

    r = await _deliver(client, _subscription_event("evt_sub_created", "customer.subscription.created", "active"))
    assert r.json()["status"] == "processed", r.text

    sub = (
        await db_session.execute(select(AgencySubscription).where(AgencySubscription.stripe_subscription_id == "sub_123"))
    ).scalar_one()
    assert sub.status == "active"
    assert sub.plan_id == seed_plan.id
    assert sub.current_period_end is not None
    assert agency.subscription_plan == "professional"
    assert agency.subscription_status == "active"
    assert len(await _emails(db_session, "subscription_activated")) == 1

    r = await _deliver(
        client,
        _subscription_event("evt_sub_updated", "customer.subscription.updated", "past_due", cancel_at_period_end=True),
    )
    assert r.json()["status"] == "processed"
    assert sub.cancel_at_period_end is True
    assert agency.subscription_status == "past_due"

    r = await _deliver(client, _subscription_event("evt_sub_deleted", "customer.subscription.deleted", "canceled"))
    assert r.json()["status"] == "processed"
    assert sub.status == "canceled"
    assert sub.ended_at is not None
    assert agency.subscription_plan == "free"
    assert agency.subscription_status == "canceled"
    assert len(await _emails(db_session, "subscription_canceled")) == 1

    r = await client.get("/v1/billing/subscription", headers=seed_agency_admin["headers"])
    assert r.status_code == 200, r.text
    assert r.json()["subscription"]["status"] == "canceled"


@pytest.mark.asyncio
async def test_invoice_events(client, db_session, stripe_on, seed_agency_admin):
    agency_id = seed_agency_admin["agency_id"]
    invoice = {
        "id": "in_1",
        "customer": "cus_999",
        "amount_due": 149900,
        "amount_paid": 0,
        "currency": "zar",
        "number": "INV-0001",
        "metadata": {"agencyId": agency_id},
    }

    r = await _deliver(client, {"id": "evt_inv_failed", "type": "invoice.payment_failed", "data": {"object": invoice}})
    assert r.json()["status"] == "processed", r.text
    failed = await _emails(db_session, "payment_failed")
    assert len(failed) == 1
    assert failed[0].payload["context"]["amount"] == "1499.00"
    assert failed[0].payload["context"]["currency"] == "ZAR"

    paid = {**invoice, "amount_paid": 149900, "status_transitions": {"paid_at": 1_760_000_000}}
    r = await _deliver(client, {"id": "evt_inv_paid", "type": "invoice.payment_succeeded", "data": {"object": paid}})
    assert r.json()["status"] == "processed"

    rows = (await db_session.execute(select(Invoice))).scalars().all()
    assert len(rows) == 1
    assert rows[0].status == "paid"
    assert rows[0].amount_paid == 149900
    assert rows[0].paid_at is not None

    r = await client.get("/v1/billing/invoices", headers=seed_agency_admin["headers"])
    assert [i["number"] for i in r.json()] == ["INV-0001"]


@pytest.mark.asyncio
async def test_unknown_events_and_customers_are_ignored(client, db_session, stripe_on):
    r = await _deliver(client, {"id": "evt_ping", "type": "charge.refunded", "data": {"object": {}}})
    assert r.json()["status"] == "ignored"

    r = await _deliver(
        client,
        {"id": "evt_orphan", "type": "invoice.payment_succeeded", "data": {"object": {"id": "in_x", "customer": "cus_nobody"}}},
    )
    assert r.json()["status"] == "ignored"
    row = (await db_session.execute(select(WebhookEvent).where(WebhookEvent.event_id == "evt_orphan"))).scalar_one()
    assert "cus_nobody" in row.error


@pytest.mark.asyncio
async def test_failed_event_is_retried_on_redelivery(client, db_session, stripe_on):
    broken = {"id": "evt_retry", "type": "customer.subscription.deleted", "data": {"object": {}}}
    r = await _deliver(client, broken)
    assert r.status_code == 200
    assert r.json()["status"] == "failed"

    fixed = {**broken, "data": {"object": {"id": "sub_gone"}}}
    r = await _deliver(client, fixed)
    assert r.json()["status"] == "ignored"

    row = (await db_session.execute(select(WebhookEvent).where(WebhookEvent.event_id == "evt_retry"))).scalar_one()
    assert row.attempts == 2
    assert row.status == "ignored"
