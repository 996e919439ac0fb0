from sqlalchemy import Boolean, Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.core.ids import gen_id
from marketplace.models.base import Base, AuditMixin


class ListingMedia(AuditMixin, Base):
    __tablename__ = "listing_media"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("med"))
    listing_id: Mapped[str] = mapped_column(String, ForeignKey("listings.id"), nullable=False, index=True)

    media_type: Mapped[str] = mapped_column(String(20), nullable=False)  # "image" | "video" | "floorplan" | "pdf"
    storage_key: Mapped[str | None] = mapped_column(String(500), nullable=True)
    url: Mapped[str] = mapped_column(String(1000), nullable=False)

    file_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    file_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    mime_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    duration_seconds: Mapped[float | None] = mapped_column(Float, nullable=True)

    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # "pending" | "processing" | "completed" | "failed"
    processing_status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
