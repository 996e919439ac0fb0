from datetime import datetime

from sqlalchemy import Float, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import DateTime

from marketplace.core.ids import gen_id
from marketplace.models.base import Base, AuditMixin

QUALIFIED_LEAD_STATUSES = ("qualified", "viewing_scheduled", "offer_made", "converted")


class DeveloperLead(AuditMixin, Base):
    __tablename__ = "developer_leads"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("led"))

    developer_id: Mapped[str | None] = mapped_column(String, ForeignKey("developers.id"), nullable=True, index=True)
    brand_profile_id: Mapped[str | None] = mapped_column(String, ForeignKey("brand_profiles.id"), nullable=True, index=True)
    development_id: Mapped[str | None] = mapped_column(String, ForeignKey("developments.id"), nullable=True, index=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    source: Mapped[str] = mapped_column(String(50), nullable=False, default="website")

    # "new" | "contacted" | "qualified" | "viewing_scheduled" | "offer_made" | "converted" | "lost"
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="new")
    # percent (0..100) of the buyer's affordability that the development matches
    affordability_match: Mapped[float | None] = mapped_column(Float, nullable=True)
    qualified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
