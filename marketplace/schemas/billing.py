from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class PlanOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    display_name: str
    description: str | None
    price: int
    currency: str
    interval: str
    features: list
    limits: dict
    is_active: bool
    is_popular: bool
    sort_order: int


class PlanUpdate(BaseModel):
    display_name: str | None = Field(default=None, max_length=100)
    description: str | None = None
    price: int | None = Field(default=None, ge=0)
    stripe_price_id: str | None = None
    features: list[str] | None = None
    limits: dict | None = None
    is_active: bool | None = None
    is_popular: bool | None = None
    sort_order: int | None = None


class CheckoutRequest(BaseModel):
    plan_id: str
    success_url: str | None = None
    cancel_url: str | None = None


class CheckoutOut(BaseModel):
    session_id: str | None
    url: str | None


class AgencySubscriptionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    agency_id: str
    plan_id: str | None
    status: str
    stripe_subscription_id: str | None
    current_period_start: datetime | None
    current_period_end: datetime | None
    trial_end: datetime | None
    cancel_at_period_end: bool
    canceled_at: datetime | None
    ended_at: datetime | None


class CurrentSubscriptionOut(BaseModel):
    agency_id: str
    subscription_plan: str
    subscription_status: str
    subscription: AgencySubscriptionOut | None


class InvoiceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    agency_id: str
    stripe_invoice_id: str
    amount_due: int
    amount_paid: int
    currency: str
    status: str
    number: str | None
    hosted_invoice_url: str | None
    invoice_pdf: str | None
    period_start: datetime | None
    period_end: datetime | None
    paid_at: datetime | None
    created_at: datetime


class BillingOverviewOut(BaseModel):
    mrr: int
    active_subscriptions: int
    subscriptions_by_status: dict[str, int]
    total_revenue: int
    recent_invoices: list[InvoiceOut]


class InvitationCreate(BaseModel):
    email: EmailStr
    role: Literal["agent", "agency_admin"] = "agent"


class InvitationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    agency_id: str
    email: str
    role: str
    status: str
    expires_at: datetime
    sent_at: datetime | None
