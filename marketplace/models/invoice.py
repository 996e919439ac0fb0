from datetime import datetime

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import DateTime

from marketplace.core.ids import gen_id
from marketplace.models.base import Base, AuditMixin


class Invoice(AuditMixin, Base):
    __tablename__ = "invoices"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("ivc"))
    agency_id: Mapped[str] = mapped_column(String, ForeignKey("agencies.id"), nullable=False, index=True)
    subscription_id: Mapped[str | None] = mapped_column(String, ForeignKey("agency_subscriptions.id"), nullable=True)

    stripe_invoice_id: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)
    stripe_customer_id: Mapped[str | None] = mapped_column(String(120), nullable=True)

    # minor units
    amount_due: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    amount_paid: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="ZAR")

    # "draft" | "open" | "paid" | "uncollectible" | "void"
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="open")

    number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    hosted_invoice_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    invoice_pdf: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    period_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    period_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
