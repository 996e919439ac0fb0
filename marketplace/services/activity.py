from __future__ import annotations

from enum import Enum

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.models.activity import Activity


class ActivityType(str, Enum):
    LEAD_NEW = "lead_new"
    LEAD_QUALIFIED = "lead_qualified"
    LEAD_UNQUALIFIED = "lead_unqualified"
    VIEWING_SCHEDULED = "viewing_scheduled"
    VIEWING_COMPLETED = "viewing_completed"
    MEDIA_UPLOADED = "media_uploaded"
    PRICE_UPDATED = "price_updated"
    UNIT_SOLD = "unit_sold"
    UNIT_RESERVED = "unit_reserved"
    DEVELOPMENT_CREATED = "development_created"
    DEVELOPMENT_UPDATED = "development_updated"
    DEVELOPMENT_DELETED = "development_deleted"
    TEAM_MEMBER_ADDED = "team_member_added"
    TEAM_MEMBER_REMOVED = "team_member_removed"


FEED_LIMIT = 20


def log_activity(
    db: AsyncSession,
    *,
    developer_id: str,
    activity_type: ActivityType,
    title: str,
    description: str | None = None,
    metadata: dict | None = None,
    related_entity_type: str | None = None,
    related_entity_id: str | None = None,
    user_id: str | None = None,
) -> Activity:
    row = Activity(
        developer_id=developer_id,
        activity_type=ActivityType(activity_type).value,
        title=title[:255],
        description=description,
        meta=metadata or {},
        related_entity_type=related_entity_type,
        related_entity_id=related_entity_id,
        user_id=user_id,
    )
    db.add(row)
    return row


def log_development_activity(db: AsyncSession, *, developer_id: str, development_id: str, name: str,
                             activity_type: ActivityType = ActivityType.DEVELOPMENT_CREATED,
                             user_id: str | None = None) -> Activity:
    titles = {
        ActivityType.DEVELOPMENT_CREATED: f"New development created: {name}",
        ActivityType.DEVELOPMENT_UPDATED: f"Development updated: {name}",
        ActivityType.DEVELOPMENT_DELETED: f"Development deleted: {name}",
    }
    return log_activity(
        db,
        developer_id=developer_id,
        activity_type=activity_type,
        title=titles[activity_type],
        related_entity_type="development",
        related_entity_id=development_id,
        user_id=user_id,
        metadata={"development_name": name},
    )


def log_lead_activity(db: AsyncSession, *, developer_id: str, lead_id: str, lead_name: str,
                      activity_type: ActivityType, user_id: str | None = None) -> Activity:
    titles = {
        ActivityType.LEAD_NEW: f"New lead: {lead_name}",
        ActivityType.LEAD_QUALIFIED: f"Lead qualified: {lead_name}",
        ActivityType.LEAD_UNQUALIFIED: f"Lead unqualified: {lead_name}",
    }
    return log_activity(
        db,
        developer_id=developer_id,
        activity_type=activity_type,
        title=titles[activity_type],
        related_entity_type="lead",
        related_entity_id=lead_id,
        user_id=user_id,
        metadata={"lead_name": lead_name},
    )


def log_unit_activity(db: AsyncSession, *, developer_id: str, unit_id: str, unit_number: str, price: float,
                      activity_type: ActivityType, user_id: str | None = None) -> Activity:
    titles = {
        ActivityType.UNIT_SOLD: f"Unit {unit_number} sold for R{price:,.0f}",
        ActivityType.UNIT_RESERVED: f"Unit {unit_number} reserved",
    }
    return log_activity(
        db,
        developer_id=developer_id,
        activity_type=activity_type,
        title=titles[activity_type],
        related_entity_type="unit",
        related_entity_id=unit_id,
        user_id=user_id,
        metadata={"unit_number": unit_number, "price": price},
    )


def log_price_activity(db: AsyncSession, *, developer_id: str, unit_id: str, unit_number: str,
                       old_price: float, new_price: float, user_id: str | None = None) -> Activity:
    change = new_price - old_price
    change_percent = round(change / old_price * 100, 1) if old_price else 0.0
    direction = "increased" if change > 0 else "decreased"
    return log_activity(
        db,
        developer_id=developer_id,
        activity_type=ActivityType.PRICE_UPDATED,
        title=f"Unit {unit_number} price {direction} by {abs(change_percent)}%",
        description=f"From R{old_price:,.0f} to R{new_price:,.0f}",
        related_entity_type="unit",
        related_entity_id=unit_id,
        user_id=user_id,
        metadata={"old_price": old_price, "new_price": new_price, "unit_number": unit_number, "change_percent": change_percent},
    )


async def get_activity_feed(
    db: AsyncSession,
    *,
    developer_id: str,
    limit: int = FEED_LIMIT,
    activity_types: list[ActivityType] | None = None,
) -> list[Activity]:
    stmt = select(Activity).where(Activity.developer_id == developer_id)
    if activity_types:
        stmt = stmt.where(Activity.activity_type.in_([ActivityType(t).value for t in activity_types]))
    stmt = stmt.order_by(Activity.created_at.desc(), Activity.id.desc()).limit(limit)
    return list((await db.execute(stmt)).scalars().all())
