from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.core.ids import gen_id
from marketplace.models.base import Base, AuditMixin, JSONType


class ListingDraftSession(AuditMixin, Base):
    """Server-side home of one wizard session. `state` is a serialized ListingDraft."""

    __tablename__ = "listing_drafts"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("drf"))
    owner_user_id: Mapped[str] = mapped_column(String, ForeignKey("users.id"), nullable=False, index=True)
    listing_id: Mapped[str | None] = mapped_column(String, ForeignKey("listings.id"), nullable=True)

    state: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)

    # denormalized from state for listing a user's drafts
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")
    current_step: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
