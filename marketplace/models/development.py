from datetime import datetime

from sqlalchemy import Boolean, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import DateTime

from marketplace.core.ids import gen_id
from marketplace.models.base import Base, AuditMixin, JSONType


class Development(AuditMixin, Base):
    __tablename__ = "developments"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("dvp"))

    # exactly one of developer_id / brand_profile_id is set
    developer_id: Mapped[str | None] = mapped_column(String, ForeignKey("developers.id"), nullable=True, index=True)
    brand_profile_id: Mapped[str | None] = mapped_column(String, ForeignKey("brand_profiles.id"), nullable=True, index=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)
    # "residential" | "commercial" | "mixed_use" | "estate" | "complex"
    development_type: Mapped[str] = mapped_column(String(30), nullable=False, default="residential")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    city: Mapped[str] = mapped_column(String(120), nullable=False)
    province: Mapped[str] = mapped_column(String(120), nullable=False)

    # "planning" | "under_construction" | "completed" | "selling"
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="planning")
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    price_from: Mapped[float | None] = mapped_column(Float, nullable=True)
    price_to: Mapped[float | None] = mapped_column(Float, nullable=True)
    total_units: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    amenities: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)


class DevelopmentUnit(AuditMixin, Base):
    __tablename__ = "development_units"
    __table_args__ = (
        UniqueConstraint("development_id", "unit_number", name="uq_development_unit_number"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("unt"))
    development_id: Mapped[str] = mapped_column(String, ForeignKey("developments.id"), nullable=False, index=True)

    unit_number: Mapped[str] = mapped_column(String(50), nullable=False)
    unit_type: Mapped[str | None] = mapped_column(String(50), nullable=True)  # e.g. "2bed"
    bedrooms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    price: Mapped[float] = mapped_column(Float, nullable=False)

    # "available" | "reserved" | "sold"
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="available")
    reserved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    sold_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
