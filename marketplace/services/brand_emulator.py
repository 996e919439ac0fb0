"""
Super-admin brand emulation.

A super admin acts as a platform-owned brand profile to seed demo content.
Everything seeded is attributed to the brand (brand_profile_id) so it can be
listed and removed as a unit.
"""
from __future__ import annotations

import logging

from fastapi import HTTPException
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.ids import gen_id, slugify
from marketplace.core.timeutil import utcnow
from marketplace.models.brand_profile import BrandProfile
from marketplace.models.developer_lead import DeveloperLead
from marketplace.models.development import Development, DevelopmentUnit
from marketplace.models.listing import Listing
from marketplace.models.listing_media import ListingMedia
from marketplace.services.audit import audit
from marketplace.services.auth import Actor
from marketplace.services.developers import unique_development_slug
from marketplace.services.listings import unique_listing_slug

log = logging.getLogger(__name__)


async def list_platform_brands(db: AsyncSession, *, search: str | None = None, limit: int = 50) -> list[BrandProfile]:
    stmt = select(BrandProfile).where(BrandProfile.owner_type == "platform")
    if search:
        stmt = stmt.where(BrandProfile.brand_name.ilike(f"%{search}%"))
    stmt = stmt.order_by(BrandProfile.brand_name.asc()).limit(limit)
    return list((await db.execute(stmt)).scalars().all())


async def create_brand(db: AsyncSession, *, actor: Actor, values: dict) -> BrandProfile:
    base = slugify(values["brand_name"])
    slug = base
    while (await db.execute(select(func.count()).select_from(BrandProfile).where(BrandProfile.slug == slug))).scalar_one():
        slug = f"{base}-{gen_id('x')[-6:]}"
    brand = BrandProfile(
        slug=slug,
        owner_type="platform",
        created_by=actor.user_id,
        updated_by=actor.user_id,
        **values,
    )
    db.add(brand)
    await db.flush()
    await audit(db, actor=actor, action="brand.created", target_type="brand_profile", target_id=brand.id)
    return brand


async def get_brand_context(db: AsyncSession, brand_profile_id: str) -> BrandProfile:
    """The brand an emulating admin operates as; only platform brands qualify."""
    brand = (await db.execute(select(BrandProfile).where(BrandProfile.id == brand_profile_id))).scalar_one_or_none()
    if not brand:
        raise HTTPException(status_code=404, detail="Brand profile not found")
    if brand.owner_type != "platform":
        raise HTTPException(status_code=403, detail="Only platform-owned brands can be emulated")
    return brand


async def switch_to_brand(db: AsyncSession, *, actor: Actor, brand_profile_id: str) -> dict:
    brand = await get_brand_context(db, brand_profile_id)
    await audit(db, actor=actor, action="brand.emulation_started", target_type="brand_profile", target_id=brand.id)
    return {
        "brand_profile_id": brand.id,
        "brand_name": brand.brand_name,
        "identity_type": brand.identity_type,
        "brand_tier": brand.brand_tier,
        "operating_mode": "emulator",
        "acting_user_id": actor.user_id,
    }


async def seed_development(db: AsyncSession, *, actor: Actor, brand_profile_id: str, values: dict, units: list[dict]) -> dict:
    brand = await get_brand_context(db, brand_profile_id)
    now = utcnow()
    dev = Development(
        brand_profile_id=brand.id,
        slug=await unique_development_slug(db, values["name"]),
        is_published=True,
        published_at=now,
        total_units=len(units),
        created_by=actor.user_id,
        updated_by=actor.user_id,
        **values,
    )
    db.add(dev)
    await db.flush()

    unit_ids = []
    for unit_values in units:
        unit = DevelopmentUnit(development_id=dev.id, created_by=actor.user_id, updated_by=actor.user_id, **unit_values)
        db.add(unit)
        await db.flush()
        unit_ids.append(unit.id)

    await audit(db, actor=actor, action="brand.seed_development", target_type="development", target_id=dev.id,
                detail={"brand_profile_id": brand.id, "units": len(unit_ids)})
    return _seed_result(brand, "seed_development", [dev.id, *unit_ids])


async def seed_listing(db: AsyncSession, *, actor: Actor, brand_profile_id: str, values: dict, media_urls: list[str]) -> dict:
    """Demo listing, published straight away and attributed to the brand."""
    brand = await get_brand_context(db, brand_profile_id)
    now = utcnow()
    listing = Listing(
        owner_user_id=actor.user_id,
        brand_profile_id=brand.id,
        slug=await unique_listing_slug(db, values["title"]),
        status="published",
        approval_status="approved",
        is_published=True,
        published_at=now,
        reviewed_by=actor.user_id,
        reviewed_at=now,
        created_by=actor.user_id,
        updated_by=actor.user_id,
        **values,
    )
    db.add(listing)
    await db.flush()

    media_ids = []
    for order, url in enumerate(media_urls):
        media = ListingMedia(
            listing_id=listing.id,
            media_type="image",
            url=url,
            display_order=order,
            is_primary=order == 0,
            processing_status="completed",
            created_by=actor.user_id,
            updated_by=actor.user_id,
        )
        db.add(media)
        await db.flush()
        media_ids.append(media.id)

    await audit(db, actor=actor, action="brand.seed_listing", target_type="listing", target_id=listing.id,
                detail={"brand_profile_id": brand.id})
    return _seed_result(brand, "seed_listing", [listing.id, *media_ids])


async def generate_lead(db: AsyncSession, *, actor: Actor, brand_profile_id: str, values: dict) -> dict:
    brand = await get_brand_context(db, brand_profile_id)
    development_id = values.get("development_id")
    if development_id:
        dev = (await db.execute(select(Development).where(Development.id == development_id))).scalar_one_or_none()
        if not dev or dev.brand_profile_id != brand.id:
            raise HTTPException(status_code=404, detail="Development not found for this brand")

    lead = DeveloperLead(
        brand_profile_id=brand.id,
        status="new",
        source=values.pop("source", None) or "emulator",
        created_by=actor.user_id,
        updated_by=actor.user_id,
        **values,
    )
    db.add(lead)
    await db.flush()
    return _seed_result(brand, "generate_lead", [lead.id])


def _seed_result(brand: BrandProfile, operation: str, entity_ids: list[str]) -> dict:
    return {
        "success": True,
        "operation": operation,
        "brand_profile_id": brand.id,
        "brand_profile_name": brand.brand_name,
        "entity_ids": entity_ids,
        "total_entities": len(entity_ids),
    }


async def get_brand_entities(db: AsyncSession, brand_profile_id: str) -> dict:
    brand = await get_brand_context(db, brand_profile_id)
    developments = list((
        await db.execute(select(Development).where(Development.brand_profile_id == brand.id).order_by(Development.created_at.desc()))
    ).scalars().all())
    listings = list((
        await db.execute(select(Listing).where(Listing.brand_profile_id == brand.id).order_by(Listing.created_at.desc()))
    ).scalars().all())
    leads = list((
        await db.execute(
            select(DeveloperLead).where(DeveloperLead.brand_profile_id == brand.id).order_by(DeveloperLead.created_at.desc())
        )
    ).scalars().all())
    return {
        "developments": developments,
        "listings": listings,
        "leads": leads,
        "total_entities": len(developments) + len(listings) + len(leads),
    }


async def get_brand_stats(db: AsyncSession, brand_profile_id: str) -> dict:
    brand = await get_brand_context(db, brand_profile_id)

    async def _count(model, *where) -> int:
        return int((await db.execute(select(func.count()).select_from(model).where(*where))).scalar_one())

    return {
        "brand_profile_id": brand.id,
        "brand_name": brand.brand_name,
        "developments": await _count(Development, Development.brand_profile_id == brand.id),
        "listings": await _count(Listing, Listing.brand_profile_id == brand.id),
        "published_listings": await _count(Listing, Listing.brand_profile_id == brand.id, Listing.is_published.is_(True)),
        "leads": await _count(DeveloperLead, DeveloperLead.brand_profile_id == brand.id),
        "new_leads": await _count(DeveloperLead, DeveloperLead.brand_profile_id == brand.id, DeveloperLead.status == "new"),
    }


async def cleanup_brand_entities(db: AsyncSession, *, actor: Actor, brand_profile_id: str) -> dict:
    """Remove everything seeded under the brand. The brand itself stays."""
    brand = await get_brand_context(db, brand_profile_id)

    dev_ids = list((await db.execute(select(Development.id).where(Development.brand_profile_id == brand.id))).scalars().all())
    listing_ids = list((await db.execute(select(Listing.id).where(Listing.brand_profile_id == brand.id))).scalars().all())

    counts = {"developments": 0, "units": 0, "listings": 0, "media": 0, "leads": 0}

    lead_filter = DeveloperLead.brand_profile_id == brand.id
    if dev_ids:
        lead_filter = or_(lead_filter, DeveloperLead.development_id.in_(dev_ids))
    counts["leads"] = (await db.execute(delete(DeveloperLead).where(lead_filter))).rowcount or 0

    if dev_ids:
        counts["units"] = (
            await db.execute(delete(DevelopmentUnit).where(DevelopmentUnit.development_id.in_(dev_ids)))
        ).rowcount or 0
        counts["developments"] = (await db.execute(delete(Development).where(Development.id.in_(dev_ids)))).rowcount or 0

    if listing_ids:
        counts["media"] = (await db.execute(delete(ListingMedia).where(ListingMedia.listing_id.in_(listing_ids)))).rowcount or 0
        counts["listings"] = (await db.execute(delete(Listing).where(Listing.id.in_(listing_ids)))).rowcount or 0

    await audit(db, actor=actor, action="brand.cleanup", target_type="brand_profile", target_id=brand.id, detail=counts)
    await db.flush()
    log.info("brand cleanup brand_profile_id=%s counts=%s", brand.id, counts)
    return {"success": True, "deleted_counts": counts}
