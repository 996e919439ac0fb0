from datetime import datetime

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import DateTime

from marketplace.core.ids import gen_id
from marketplace.models.base import Base, AuditMixin


class Agency(AuditMixin, Base):
    __tablename__ = "agencies"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("agc"))
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)

    # plan name mirrored from billing ("free" until a checkout completes)
    subscription_plan: Mapped[str] = mapped_column(String(50), nullable=False, default="free")
    # "inactive" | "active" | "past_due" | "canceled"
    subscription_status: Mapped[str] = mapped_column(String(30), nullable=False, default="inactive")

    stripe_customer_id: Mapped[str | None] = mapped_column(String(120), nullable=True, unique=True)
    last_checkout_session_id: Mapped[str | None] = mapped_column(String(200), nullable=True)
    activated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
