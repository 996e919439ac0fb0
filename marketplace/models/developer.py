from datetime import datetime

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import DateTime

from marketplace.core.ids import gen_id
from marketplace.models.base import Base, AuditMixin, JSONType


class Developer(AuditMixin, Base):
    __tablename__ = "developers"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("dev"))
    user_id: Mapped[str] = mapped_column(String, ForeignKey("users.id"), nullable=False, unique=True)

    company_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # "pending" | "approved" | "rejected"
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    brand_profile_id: Mapped[str | None] = mapped_column(String, ForeignKey("brand_profiles.id"), nullable=True)

    # {"30d": {"calculated_at": iso, "kpis": {...}}, ...}
    kpi_cache: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    last_kpi_calculation: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class DeveloperSubscription(AuditMixin, Base):
    __tablename__ = "developer_subscriptions"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("dsb"))
    developer_id: Mapped[str] = mapped_column(String, ForeignKey("developers.id"), nullable=False, unique=True)

    tier: Mapped[str] = mapped_column(String(20), nullable=False, default="free_trial")  # free_trial/basic/premium
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")    # active/cancelled/expired

    trial_ends_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    current_period_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    current_period_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
