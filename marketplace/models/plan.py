from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.core.ids import gen_id
from marketplace.models.base import Base, AuditMixin, JSONType


class Plan(AuditMixin, Base):
    __tablename__ = "plans"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("pln"))
    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)  # e.g. "basic"
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # minor units (cents)
    price: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="ZAR")
    interval: Mapped[str] = mapped_column(String(10), nullable=False, default="month")  # "month" | "year"

    stripe_price_id: Mapped[str | None] = mapped_column(String(120), nullable=True, unique=True)
    features: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    limits: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_popular: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
