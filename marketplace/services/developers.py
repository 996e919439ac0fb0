from __future__ import annotations

from fastapi import HTTPException
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.ids import gen_id, slugify
from marketplace.core.timeutil import utcnow
from marketplace.models.developer import Developer
from marketplace.models.developer_lead import QUALIFIED_LEAD_STATUSES, DeveloperLead
from marketplace.models.development import Development, DevelopmentUnit
from marketplace.services.activity import (
    ActivityType,
    log_development_activity,
    log_lead_activity,
    log_price_activity,
    log_unit_activity,
)
from marketplace.services.audit import audit
from marketplace.services.auth import Actor
from marketplace.services.subscriptions import enforce_limit

UNIT_STATUSES = ("available", "reserved", "sold")
LEAD_STATUSES = ("new", "contacted", "qualified", "viewing_scheduled", "offer_made", "converted", "lost")


async def get_developer_for_actor(db: AsyncSession, actor: Actor) -> Developer:
    dev = (await db.execute(select(Developer).where(Developer.user_id == actor.user_id))).scalar_one_or_none()
    if not dev:
        raise HTTPException(status_code=404, detail="Developer profile not found")
    return dev


async def register_developer(
    db: AsyncSession,
    *,
    actor: Actor,
    company_name: str,
    email: str | None,
    phone: str | None,
) -> Developer:
    existing = (await db.execute(select(Developer).where(Developer.user_id == actor.user_id))).scalar_one_or_none()
    if existing:
        raise HTTPException(status_code=409, detail="Developer profile already exists")
    dev = Developer(
        user_id=actor.user_id,
        company_name=company_name,
        email=email or actor.email,
        phone=phone,
        status="pending",
        created_by=actor.user_id,
        updated_by=actor.user_id,
    )
    db.add(dev)
    await db.flush()
    return dev


async def unique_development_slug(db: AsyncSession, name: str) -> str:
    base = slugify(name)
    slug = base
    while (await db.execute(select(func.count()).select_from(Development).where(Development.slug == slug))).scalar_one():
        slug = f"{base}-{gen_id('x')[-6:]}"
    return slug


async def list_developments(db: AsyncSession, developer_id: str) -> list[Development]:
    stmt = (
        select(Development)
        .where(Development.developer_id == developer_id)
        .order_by(Development.created_at.desc())
    )
    return list((await db.execute(stmt)).scalars().all())


async def get_owned_development(db: AsyncSession, developer: Developer, development_id: str) -> Development:
    row = (await db.execute(select(Development).where(Development.id == development_id))).scalar_one_or_none()
    if not row:
        raise HTTPException(status_code=404, detail="Development not found")
    if row.developer_id != developer.id:
        raise HTTPException(status_code=403, detail="Not the owner of this development")
    return row


async def create_development(db: AsyncSession, *, developer: Developer, actor: Actor, values: dict) -> Development:
    await enforce_limit(db, developer, "developments")
    row = Development(
        developer_id=developer.id,
        slug=await unique_development_slug(db, values["name"]),
        created_by=actor.user_id,
        updated_by=actor.user_id,
        **values,
    )
    db.add(row)
    await db.flush()
    log_development_activity(
        db, developer_id=developer.id, development_id=row.id, name=row.name, user_id=actor.user_id
    )
    await db.flush()
    return row


async def delete_development(db: AsyncSession, *, developer: Developer, actor: Actor, development_id: str) -> None:
    row = await get_owned_development(db, developer, development_id)
    await db.execute(delete(DevelopmentUnit).where(DevelopmentUnit.development_id == row.id))
    # leads outlive the development they came in on
    await db.execute(update(DeveloperLead).where(DeveloperLead.development_id == row.id).values(development_id=None))
    await db.delete(row)
    log_development_activity(
        db,
        developer_id=developer.id,
        development_id=development_id,
        name=row.name,
        activity_type=ActivityType.DEVELOPMENT_DELETED,
        user_id=actor.user_id,
    )
    await db.flush()


async def list_units(db: AsyncSession, development_id: str) -> list[DevelopmentUnit]:
    stmt = (
        select(DevelopmentUnit)
        .where(DevelopmentUnit.development_id == development_id)
        .order_by(DevelopmentUnit.unit_number.asc())
    )
    return list((await db.execute(stmt)).scalars().all())


async def add_unit(db: AsyncSession, *, development: Development, actor: Actor, values: dict) -> DevelopmentUnit:
    clash = (
        await db.execute(
            select(DevelopmentUnit.id).where(
                DevelopmentUnit.development_id == development.id,
                DevelopmentUnit.unit_number == values["unit_number"],
            )
        )
    ).scalar_one_or_none()
    if clash:
        raise HTTPException(status_code=409, detail=f"Unit {values['unit_number']} already exists")
    unit = DevelopmentUnit(
        development_id=development.id,
        created_by=actor.user_id,
        updated_by=actor.user_id,
        **values,
    )
    db.add(unit)
    development.total_units = (development.total_units or 0) + 1
    await db.flush()
    return unit


async def get_unit_or_404(db: AsyncSession, development_id: str, unit_id: str) -> DevelopmentUnit:
    unit = (
        await db.execute(
            select(DevelopmentUnit).where(DevelopmentUnit.id == unit_id, DevelopmentUnit.development_id == development_id)
        )
    ).scalar_one_or_none()
    if not unit:
        raise HTTPException(status_code=404, detail="Unit not found")
    return unit


async def update_unit(
    db: AsyncSession,
    *,
    developer: Developer,
    development: Development,
    unit_id: str,
    actor: Actor,
    status: str | None = None,
    price: float | None = None,
) -> DevelopmentUnit:
    unit = await get_unit_or_404(db, development.id, unit_id)
    now = utcnow()

    if price is not None and price != unit.price:
        log_price_activity(
            db,
            developer_id=developer.id,
            unit_id=unit.id,
            unit_number=unit.unit_number,
            old_price=unit.price,
            new_price=price,
            user_id=actor.user_id,
        )
        unit.price = price

    if status is not None and status != unit.status:
        if status not in UNIT_STATUSES:
            raise HTTPException(status_code=422, detail=f"Unit status must be one of {', '.join(UNIT_STATUSES)}")
        if unit.status == "sold":
            raise HTTPException(status_code=409, detail="Sold units cannot change status")
        unit.status = status
        if status == "reserved":
            unit.reserved_at = now
            log_unit_activity(
                db,
                developer_id=developer.id,
                unit_id=unit.id,
                unit_number=unit.unit_number,
                price=unit.price,
                activity_type=ActivityType.UNIT_RESERVED,
                user_id=actor.user_id,
            )
        elif status == "sold":
            unit.sold_at = now
            log_unit_activity(
                db,
                developer_id=developer.id,
                unit_id=unit.id,
                unit_number=unit.unit_number,
                price=unit.price,
                activity_type=ActivityType.UNIT_SOLD,
                user_id=actor.user_id,
            )
        else:
            unit.reserved_at = None

    unit.updated_by = actor.user_id
    await db.flush()
    return unit


async def capture_lead(db: AsyncSession, *, development: Development, values: dict) -> DeveloperLead:
    """Public enquiry on a published development."""
    if not development.is_published:
        raise HTTPException(status_code=404, detail="Development not found")

    if development.developer_id:
        developer = (
            await db.execute(select(Developer).where(Developer.id == development.developer_id))
        ).scalar_one()
        await enforce_limit(db, developer, "leads")

    lead = DeveloperLead(
        developer_id=development.developer_id,
        brand_profile_id=development.brand_profile_id,
        development_id=development.id,
        status="new",
        **values,
    )
    db.add(lead)
    await db.flush()
    if lead.developer_id:
        log_lead_activity(
            db, developer_id=lead.developer_id, lead_id=lead.id, lead_name=lead.name, activity_type=ActivityType.LEAD_NEW
        )
        await db.flush()
    return lead


async def list_leads(db: AsyncSession, developer_id: str, *, status: str | None = None) -> list[DeveloperLead]:
    stmt = select(DeveloperLead).where(DeveloperLead.developer_id == developer_id)
    if status:
        stmt = stmt.where(DeveloperLead.status == status)
    stmt = stmt.order_by(DeveloperLead.created_at.desc())
    return list((await db.execute(stmt)).scalars().all())


async def update_lead_status(
    db: AsyncSession, *, developer: Developer, lead_id: str, status: str, actor: Actor
) -> DeveloperLead:
    if status not in LEAD_STATUSES:
        raise HTTPException(status_code=422, detail=f"Lead status must be one of {', '.join(LEAD_STATUSES)}")
    lead = (await db.execute(select(DeveloperLead).where(DeveloperLead.id == lead_id))).scalar_one_or_none()
    if not lead:
        raise HTTPException(status_code=404, detail="Lead not found")
    if lead.developer_id != developer.id:
        raise HTTPException(status_code=403, detail="Not the owner of this lead")

    was_qualified = lead.status in QUALIFIED_LEAD_STATUSES
    lead.status = status
    lead.updated_by = actor.user_id

    if status in QUALIFIED_LEAD_STATUSES and not was_qualified:
        lead.qualified_at = utcnow()
        log_lead_activity(
            db,
            developer_id=developer.id,
            lead_id=lead.id,
            lead_name=lead.name,
            activity_type=ActivityType.LEAD_QUALIFIED,
            user_id=actor.user_id,
        )
    elif status == "lost" and was_qualified:
        log_lead_activity(
            db,
            developer_id=developer.id,
            lead_id=lead.id,
            lead_name=lead.name,
            activity_type=ActivityType.LEAD_UNQUALIFIED,
            user_id=actor.user_id,
        )
    await db.flush()
    return lead


async def publish_development(db: AsyncSession, *, developer: Developer, development_id: str, actor: Actor) -> Development:
    row = await get_owned_development(db, developer, development_id)
    if developer.status != "approved":
        raise HTTPException(status_code=409, detail="Developer profile is not approved yet")
    if not row.is_published:
        row.is_published = True
        row.published_at = utcnow()
        row.updated_by = actor.user_id
        log_development_activity(
            db,
            developer_id=developer.id,
            development_id=row.id,
            name=row.name,
            activity_type=ActivityType.DEVELOPMENT_UPDATED,
            user_id=actor.user_id,
        )
        await db.flush()
    return row


async def get_published_development(db: AsyncSession, slug: str) -> Development:
    row = (
        await db.execute(select(Development).where(Development.slug == slug, Development.is_published.is_(True)))
    ).scalar_one_or_none()
    if not row:
        raise HTTPException(status_code=404, detail="Development not found")
    return row


async def set_developer_status(db: AsyncSession, *, developer_id: str, status: str, actor: Actor) -> Developer:
    if status not in ("approved", "rejected"):
        raise HTTPException(status_code=422, detail="Status must be approved or rejected")
    dev = (await db.execute(select(Developer).where(Developer.id == developer_id))).scalar_one_or_none()
    if not dev:
        raise HTTPException(status_code=404, detail="Developer not found")
    dev.status = status
    dev.updated_by = actor.user_id
    await audit(db, actor=actor, action=f"developer.{status}", target_type="developer", target_id=dev.id)
    await db.flush()
    return dev
