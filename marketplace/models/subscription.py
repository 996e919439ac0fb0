from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import DateTime

from marketplace.core.ids import gen_id
from marketplace.models.base import Base, AuditMixin


class AgencySubscription(AuditMixin, Base):
    __tablename__ = "agency_subscriptions"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("sub"))
    agency_id: Mapped[str] = mapped_column(String, ForeignKey("agencies.id"), nullable=False, index=True)
    plan_id: Mapped[str | None] = mapped_column(String, ForeignKey("plans.id"), nullable=True)

    stripe_customer_id: Mapped[str | None] = mapped_column(String(120), nullable=True, index=True)
    stripe_subscription_id: Mapped[str | None] = mapped_column(String(120), nullable=True, unique=True)
    stripe_price_id: Mapped[str | None] = mapped_column(String(120), nullable=True)

    # Stripe statuses: "incomplete" | "trialing" | "active" | "past_due" | "canceled" | "unpaid" ...
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="incomplete")

    current_period_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    current_period_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    trial_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancel_at_period_end: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    canceled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
