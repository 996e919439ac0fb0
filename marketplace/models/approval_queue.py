from datetime import datetime

from sqlalchemy import ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import DateTime

from marketplace.core.ids import gen_id
from marketplace.core.timeutil import utcnow
from marketplace.models.base import Base, AuditMixin, JSONType

OPEN_QUEUE_STATUSES = ("pending", "reviewing")


class ApprovalQueueEntry(AuditMixin, Base):
    __tablename__ = "listing_approval_queue"
    __table_args__ = (
        # at most one open entry per listing
        Index(
            "uq_approval_queue_open_listing",
            "listing_id",
            unique=True,
            postgresql_where=text("status IN ('pending', 'reviewing')"),
            sqlite_where=text("status IN ('pending', 'reviewing')"),
        ),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("apq"))
    listing_id: Mapped[str] = mapped_column(String, ForeignKey("listings.id"), nullable=False, index=True)

    submitted_by: Mapped[str] = mapped_column(String, nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    # "pending" | "reviewing" | "approved" | "rejected" | "withdrawn"
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    # "low" | "normal" | "high" | "urgent"
    priority: Mapped[str] = mapped_column(String(10), nullable=False, default="normal")

    reviewed_by: Mapped[str | None] = mapped_column(String, nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    review_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    compliance_checks: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    submission_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
