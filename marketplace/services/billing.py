from __future__ import annotations

import logging

from fastapi import HTTPException
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.config import settings
from marketplace.core.ids import gen_id
from marketplace.models.agency import Agency
from marketplace.models.invoice import Invoice
from marketplace.models.plan import Plan
from marketplace.models.subscription import AgencySubscription
from marketplace.services.audit import audit
from marketplace.services.auth import Actor
from marketplace.services.stripe_client import StripeClient, StripeError

log = logging.getLogger(__name__)

LIVE_SUBSCRIPTION_STATUSES = ("trialing", "active", "past_due")


def stripe_failure(exc: StripeError) -> HTTPException:
    return HTTPException(status_code=502, detail=f"Stripe request failed: {exc}")


async def list_active_plans(db: AsyncSession) -> list[Plan]:
    stmt = select(Plan).where(Plan.is_active.is_(True)).order_by(Plan.sort_order.asc(), Plan.price.asc())
    return list((await db.execute(stmt)).scalars().all())


async def get_plan_or_404(db: AsyncSession, plan_id: str) -> Plan:
    plan = (await db.execute(select(Plan).where(Plan.id == plan_id))).scalar_one_or_none()
    if not plan:
        raise HTTPException(status_code=404, detail="Plan not found")
    return plan


async def get_agency_or_404(db: AsyncSession, agency_id: str) -> Agency:
    agency = (await db.execute(select(Agency).where(Agency.id == agency_id))).scalar_one_or_none()
    if not agency:
        raise HTTPException(status_code=404, detail="Agency not found")
    return agency


async def get_current_subscription(db: AsyncSession, agency_id: str) -> AgencySubscription | None:
    stmt = (
        select(AgencySubscription)
        .where(AgencySubscription.agency_id == agency_id)
        .order_by(AgencySubscription.created_at.desc())
        .limit(1)
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def create_checkout_session(
    db: AsyncSession,
    *,
    actor: Actor,
    stripe: StripeClient,
    plan_id: str,
    success_url: str | None = None,
    cancel_url: str | None = None,
) -> dict:
    """Stripe checkout for an agency plan. The local row stays `incomplete` until the webhook lands."""
    plan = await get_plan_or_404(db, plan_id)
    if not plan.is_active or not plan.stripe_price_id:
        raise HTTPException(status_code=409, detail="Plan is not available for checkout")
    agency = await get_agency_or_404(db, actor.agency_id)

    metadata = {"agencyId": agency.id, "planId": plan.id, "userId": actor.user_id}
    try:
        if not agency.stripe_customer_id:
            customer = await stripe.create_customer(email=agency.email or actor.email, name=agency.name, metadata=metadata)
            agency.stripe_customer_id = customer["id"]
            await db.flush()

        session = await stripe.create_checkout_session(
            customer_id=agency.stripe_customer_id,
            price_id=plan.stripe_price_id,
            success_url=success_url or f"{settings.app_url}/billing/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=cancel_url or f"{settings.app_url}/billing/cancel",
            metadata=metadata,
            idempotency_key=gen_id("chk"),
        )
    except StripeError as exc:
        raise stripe_failure(exc)

    sub = await get_current_subscription(db, agency.id)
    if sub is None or sub.status not in ("incomplete",) + LIVE_SUBSCRIPTION_STATUSES:
        sub = AgencySubscription(
            agency_id=agency.id,
            plan_id=plan.id,
            stripe_customer_id=agency.stripe_customer_id,
            stripe_price_id=plan.stripe_price_id,
            status="incomplete",
            created_by=actor.user_id,
            updated_by=actor.user_id,
        )
        db.add(sub)
    elif sub.status == "incomplete":
        sub.plan_id = plan.id
        sub.stripe_price_id = plan.stripe_price_id
        sub.updated_by = actor.user_id

    await audit(db, actor=actor, action="billing.checkout_created", target_type="agency", target_id=agency.id,
                detail={"plan_id": plan.id, "session_id": session.get("id")})
    await db.flush()
    return {"session_id": session.get("id"), "url": session.get("url")}


async def list_invoices(db: AsyncSession, agency_id: str, *, limit: int = 50) -> list[Invoice]:
    stmt = (
        select(Invoice)
        .where(Invoice.agency_id == agency_id)
        .order_by(Invoice.created_at.desc())
        .limit(limit)
    )
    return list((await db.execute(stmt)).scalars().all())


async def set_cancel_at_period_end(
    db: AsyncSession, *, actor: Actor, stripe: StripeClient, cancel: bool
) -> AgencySubscription:
    sub = await get_current_subscription(db, actor.agency_id)
    if sub is None or not sub.stripe_subscription_id or sub.status not in LIVE_SUBSCRIPTION_STATUSES:
        raise HTTPException(status_code=404, detail="No active subscription")
    try:
        await stripe.set_cancel_at_period_end(sub.stripe_subscription_id, cancel)
    except StripeError as exc:
        raise stripe_failure(exc)

    # mirrored locally now; the subscription.updated webhook confirms it
    sub.cancel_at_period_end = cancel
    sub.updated_by = actor.user_id
    await audit(db, actor=actor, action="billing.canceled" if cancel else "billing.reactivated",
                target_type="subscription", target_id=sub.id)
    await db.flush()
    return sub


async def billing_overview(db: AsyncSession) -> dict:
    """Super-admin revenue snapshot. MRR normalises yearly plans to monthly."""
    rows = (
        await db.execute(
            select(Plan.price, Plan.interval)
            .join(AgencySubscription, AgencySubscription.plan_id == Plan.id)
            .where(AgencySubscription.status == "active")
        )
    ).all()
    mrr = sum(price if interval == "month" else price // 12 for price, interval in rows)

    by_status = {
        status: int(count)
        for status, count in (
            await db.execute(select(AgencySubscription.status, func.count()).group_by(AgencySubscription.status))
        ).all()
    }
    revenue = (
        await db.execute(select(func.coalesce(func.sum(Invoice.amount_paid), 0)).where(Invoice.status == "paid"))
    ).scalar_one()
    recent = list((
        await db.execute(select(Invoice).order_by(Invoice.created_at.desc()).limit(10))
    ).scalars().all())
    return {
        "mrr": int(mrr),
        "active_subscriptions": by_status.get("active", 0),
        "subscriptions_by_status": by_status,
        "total_revenue": int(revenue),
        "recent_invoices": recent,
    }


async def update_plan(db: AsyncSession, *, actor: Actor, plan_id: str, values: dict) -> Plan:
    plan = await get_plan_or_404(db, plan_id)
    for key, value in values.items():
        setattr(plan, key, value)
    plan.updated_by = actor.user_id
    await audit(db, actor=actor, action="billing.plan_updated", target_type="plan", target_id=plan.id,
                detail={"fields": sorted(values)})
    await db.flush()
    return plan
