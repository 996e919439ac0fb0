from datetime import datetime

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import DateTime

from marketplace.core.ids import gen_id
from marketplace.models.base import Base, AuditMixin


class Invitation(AuditMixin, Base):
    __tablename__ = "agency_invitations"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("inv"))
    agency_id: Mapped[str] = mapped_column(String, ForeignKey("agencies.id"), nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    role: Mapped[str] = mapped_column(String(50), nullable=False, default="agent")
    token: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)

    # "pending" | "sent" | "accepted" | "expired"
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    invited_by: Mapped[str | None] = mapped_column(String, nullable=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
