from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.db import get_db
from marketplace.schemas.billing import (
    AgencySubscriptionOut,
    BillingOverviewOut,
    CheckoutOut,
    CheckoutRequest,
    CurrentSubscriptionOut,
    InvitationCreate,
    InvitationOut,
    InvoiceOut,
    PlanOut,
    PlanUpdate,
)
from marketplace.services import billing, invitations
from marketplace.services.auth import Actor, require_agency_admin, require_super_admin
from marketplace.services.stripe_client import StripeClient, get_stripe_client

router = APIRouter()


@router.get("/billing/plans", response_model=list[PlanOut])
async def list_plans(db: AsyncSession = Depends(get_db)) -> list[PlanOut]:
    return [PlanOut.model_validate(p) for p in await billing.list_active_plans(db)]


@router.post("/billing/checkout", response_model=CheckoutOut)
async def create_checkout(
    payload: CheckoutRequest,
    actor: Actor = Depends(require_agency_admin),
    stripe: StripeClient = Depends(get_stripe_client),
    db: AsyncSession = Depends(get_db),
) -> CheckoutOut:
    session = await billing.create_checkout_session(
        db,
        actor=actor,
        stripe=stripe,
        plan_id=payload.plan_id,
        success_url=payload.success_url,
        cancel_url=payload.cancel_url,
    )
    await db.commit()
    return CheckoutOut(**session)


@router.get("/billing/subscription", response_model=CurrentSubscriptionOut)
async def current_subscription(
    actor: Actor = Depends(require_agency_admin),
    db: AsyncSession = Depends(get_db),
) -> CurrentSubscriptionOut:
    agency = await billing.get_agency_or_404(db, actor.agency_id)
    sub = await billing.get_current_subscription(db, agency.id)
    return CurrentSubscriptionOut(
        agency_id=agency.id,
        subscription_plan=agency.subscription_plan,
        subscription_status=agency.subscription_status,
        subscription=AgencySubscriptionOut.model_validate(sub) if sub else None,
    )


@router.get("/billing/invoices", response_model=list[InvoiceOut])
async def list_invoices(
    actor: Actor = Depends(require_agency_admin),
    db: AsyncSession = Depends(get_db),
) -> list[InvoiceOut]:
    return [InvoiceOut.model_validate(i) for i in await billing.list_invoices(db, actor.agency_id)]


@router.post("/billing/cancel", response_model=AgencySubscriptionOut)
async def cancel_subscription(
    actor: Actor = Depends(require_agency_admin),
    stripe: StripeClient = Depends(get_stripe_client),
    db: AsyncSession = Depends(get_db),
) -> AgencySubscriptionOut:
    sub = await billing.set_cancel_at_period_end(db, actor=actor, stripe=stripe, cancel=True)
    await db.commit()
    return AgencySubscriptionOut.model_validate(sub)


@router.post("/billing/reactivate", response_model=AgencySubscriptionOut)
async def reactivate_subscription(
    actor: Actor = Depends(require_agency_admin),
    stripe: StripeClient = Depends(get_stripe_client),
    db: AsyncSession = Depends(get_db),
) -> AgencySubscriptionOut:
    sub = await billing.set_cancel_at_period_end(db, actor=actor, stripe=stripe, cancel=False)
    await db.commit()
    return AgencySubscriptionOut.model_validate(sub)


@router.get("/admin/billing/overview", response_model=BillingOverviewOut)
async def billing_overview(
    actor: Actor = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
) -> BillingOverviewOut:
    overview = await billing.billing_overview(db)
    overview["recent_invoices"] = [InvoiceOut.model_validate(i) for i in overview["recent_invoices"]]
    return BillingOverviewOut(**overview)


@router.patch("/admin/billing/plans/{plan_id}", response_model=PlanOut)
async def update_plan(
    plan_id: str,
    payload: PlanUpdate,
    actor: Actor = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
) -> PlanOut:
    values = {name: getattr(payload, name) for name in payload.model_fields_set}
    plan = await billing.update_plan(db, actor=actor, plan_id=plan_id, values=values)
    await db.commit()
    return PlanOut.model_validate(plan)


@router.post("/agency/invitations", response_model=InvitationOut, status_code=201)
async def invite_member(
    payload: InvitationCreate,
    actor: Actor = Depends(require_agency_admin),
    db: AsyncSession = Depends(get_db),
) -> InvitationOut:
    inv = await invitations.create_invitation(db, actor=actor, email=payload.email, role=payload.role)
    await db.commit()
    return InvitationOut.model_validate(inv)


@router.get("/agency/invitations", response_model=list[InvitationOut])
async def list_invitations(
    actor: Actor = Depends(require_agency_admin),
    db: AsyncSession = Depends(get_db),
) -> list[InvitationOut]:
    return [InvitationOut.model_validate(i) for i in await invitations.list_invitations(db, actor.agency_id)]
