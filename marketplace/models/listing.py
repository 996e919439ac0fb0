from datetime import datetime

from sqlalchemy import Boolean, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import DateTime

from marketplace.core.ids import gen_id
from marketplace.models.base import Base, AuditMixin, JSONType


class Listing(AuditMixin, Base):
    __tablename__ = "listings"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("lst"))

    owner_user_id: Mapped[str] = mapped_column(String, ForeignKey("users.id"), nullable=False, index=True)
    agency_id: Mapped[str | None] = mapped_column(String, ForeignKey("agencies.id"), nullable=True)
    # set when seeded by a super admin emulating a platform brand
    brand_profile_id: Mapped[str | None] = mapped_column(String, ForeignKey("brand_profiles.id"), nullable=True, index=True)

    action: Mapped[str | None] = mapped_column(String(20), nullable=True)  # "sell" | "rent" | "auction"
    property_type: Mapped[str | None] = mapped_column(String(30), nullable=True)

    title: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    slug: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)

    badges: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    property_details: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    pricing: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)

    # headline amount pulled out of pricing for search and sorting
    price: Mapped[float | None] = mapped_column(Float, nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="ZAR")

    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    suburb: Mapped[str | None] = mapped_column(String(120), nullable=True)
    city: Mapped[str | None] = mapped_column(String(120), nullable=True, index=True)
    province: Mapped[str | None] = mapped_column(String(120), nullable=True)
    postal_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    place_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # "draft" | "pending_review" | "approved" | "rejected" | "published" | "archived"
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="draft", index=True)
    # null until first submission, then "pending" | "approved" | "rejected"
    approval_status: Mapped[str | None] = mapped_column(String(20), nullable=True)

    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    reviewed_by: Mapped[str | None] = mapped_column(String, nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    readiness_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # owner asked for the listing to go live as soon as it is approved
    auto_publish: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
