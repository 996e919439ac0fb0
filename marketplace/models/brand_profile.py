from sqlalchemy import Boolean, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.core.ids import gen_id
from marketplace.models.base import Base, AuditMixin


class BrandProfile(AuditMixin, Base):
    __tablename__ = "brand_profiles"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("brd"))
    brand_name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)

    identity_type: Mapped[str] = mapped_column(String(20), nullable=False, default="developer")  # developer/agency/hybrid
    brand_tier: Mapped[str] = mapped_column(String(20), nullable=False, default="regional")      # national/regional/boutique
    # only "platform" brands can be emulated
    owner_type: Mapped[str] = mapped_column(String(20), nullable=False, default="platform")      # platform/developer

    logo_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    about: Mapped[str | None] = mapped_column(Text, nullable=True)
    headquarters: Mapped[str | None] = mapped_column(String(255), nullable=True)
    contact_email: Mapped[str | None] = mapped_column(String(320), nullable=True)

    is_visible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
