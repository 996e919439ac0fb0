from __future__ import annotations

from typing import Any

from fastapi import HTTPException
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.ids import gen_id, slugify
from marketplace.models.listing import Listing
from marketplace.models.listing_media import ListingMedia
from marketplace.services.auth import Actor
from marketplace.wizard import rules
from marketplace.wizard.state import LAST_STEP, ListingDraft, Location, MediaItem

# owners may change content only in these states
EDITABLE_STATUSES = ("draft", "rejected")


async def get_listing_or_404(db: AsyncSession, listing_id: str) -> Listing:
    listing = (await db.execute(select(Listing).where(Listing.id == listing_id))).scalar_one_or_none()
    if not listing:
        raise HTTPException(status_code=404, detail="Listing not found")
    return listing


async def get_owned_listing(db: AsyncSession, actor: Actor, listing_id: str) -> Listing:
    listing = await get_listing_or_404(db, listing_id)
    if listing.owner_user_id != actor.user_id and not actor.is_super_admin:
        raise HTTPException(status_code=403, detail="Not the owner of this listing")
    return listing


def assert_listing_editable(listing: Listing) -> None:
    if listing.status not in EDITABLE_STATUSES:
        raise HTTPException(
            status_code=409,
            detail=f"Listing is {listing.status}; only draft or rejected listings can be edited",
        )


async def unique_listing_slug(db: AsyncSession, title: str, *, exclude_id: str | None = None) -> str:
    base = slugify(title or "listing")
    slug = base
    while True:
        stmt = select(func.count()).select_from(Listing).where(Listing.slug == slug)
        if exclude_id:
            stmt = stmt.where(Listing.id != exclude_id)
        if (await db.execute(stmt)).scalar_one() == 0:
            return slug
        slug = f"{base}-{gen_id('x')[-6:]}"


def listing_values_from_draft(draft: ListingDraft) -> dict[str, Any]:
    """Column values for a Listing row built from wizard state."""
    loc = draft.location or Location()
    return {
        "action": draft.action.value if draft.action else None,
        "property_type": draft.property_type.value if draft.property_type else None,
        "title": draft.title.strip(),
        "description": draft.description.strip(),
        "badges": [b.value for b in draft.badges],
        "property_details": draft.property_details.model_dump(mode="json") if draft.property_details else {},
        "pricing": draft.pricing.model_dump(mode="json") if draft.pricing else {},
        "price": rules.headline_price(draft),
        "address": loc.address or None,
        "suburb": loc.suburb,
        "city": loc.city or None,
        "province": loc.province or None,
        "postal_code": loc.postal_code,
        "latitude": loc.latitude,
        "longitude": loc.longitude,
        "place_id": loc.place_id,
        "readiness_score": rules.readiness_score(draft),
    }


async def sync_listing_media(db: AsyncSession, *, listing: Listing, items: list[MediaItem], actor_id: str) -> None:
    """Make listing_media mirror the draft's media list (order and primary flag included)."""
    existing = {
        m.id: m
        for m in (await db.execute(select(ListingMedia).where(ListingMedia.listing_id == listing.id))).scalars().all()
    }
    keep = {item.id for item in items}
    stale = [mid for mid in existing if mid not in keep]
    if stale:
        await db.execute(delete(ListingMedia).where(ListingMedia.id.in_(stale)))

    for order, item in enumerate(items):
        row = existing.get(item.id)
        if row is None:
            row = ListingMedia(id=item.id, listing_id=listing.id, created_by=actor_id, processing_status="completed")
            db.add(row)
        row.media_type = item.media_type
        row.url = item.url
        row.storage_key = item.storage_key
        row.file_name = item.file_name
        row.file_size = item.file_size
        row.mime_type = item.mime_type
        row.duration_seconds = item.duration_seconds
        row.display_order = order
        row.is_primary = item.is_primary
        row.updated_by = actor_id
    await db.flush()


async def write_listing_from_draft(
    *,
    db: AsyncSession,
    actor: Actor,
    draft: ListingDraft,
    listing_id: str | None = None,
) -> Listing:
    """
    Create or update the Listing row behind a wizard draft. No validation:
    drafts may be saved at any step. The status is left alone on update so
    a rejected listing stays rejected until it is resubmitted.
    """
    values = listing_values_from_draft(draft)

    if listing_id:
        listing = await get_owned_listing(db, actor, listing_id)
        assert_listing_editable(listing)
        if values["title"] and values["title"] != listing.title:
            listing.slug = await unique_listing_slug(db, values["title"], exclude_id=listing.id)
        for key, value in values.items():
            setattr(listing, key, value)
        listing.updated_by = actor.user_id
    else:
        listing = Listing(
            id=gen_id("lst"),
            owner_user_id=actor.user_id,
            agency_id=actor.agency_id,
            slug=await unique_listing_slug(db, values["title"]),
            status="draft",
            created_by=actor.user_id,
            updated_by=actor.user_id,
            **values,
        )
        db.add(listing)

    await db.flush()
    await sync_listing_media(db, listing=listing, items=draft.media, actor_id=actor.user_id)
    return listing


async def draft_from_listing(db: AsyncSession, listing: Listing) -> ListingDraft:
    """Rebuild wizard state from a persisted listing, for editing it again."""
    media_rows = (
        await db.execute(
            select(ListingMedia).where(ListingMedia.listing_id == listing.id).order_by(ListingMedia.display_order.asc())
        )
    ).scalars().all()
    media = [
        MediaItem(
            id=m.id,
            media_type=m.media_type,
            url=m.url,
            storage_key=m.storage_key,
            file_name=m.file_name,
            file_size=m.file_size,
            mime_type=m.mime_type,
            duration_seconds=m.duration_seconds,
            display_order=m.display_order,
            is_primary=m.is_primary,
        )
        for m in media_rows
    ]
    primary = next((m.id for m in media if m.is_primary), None)
    location = None
    if listing.address or listing.city:
        location = Location(
            address=listing.address or "",
            suburb=listing.suburb,
            city=listing.city or "",
            province=listing.province or "",
            postal_code=listing.postal_code,
            latitude=listing.latitude,
            longitude=listing.longitude,
            place_id=listing.place_id,
        )
    draft = ListingDraft.model_validate({
        "action": listing.action,
        "property_type": listing.property_type,
        "badges": listing.badges or [],
        "title": listing.title,
        "description": listing.description,
        "property_details": listing.property_details or None,
        "pricing": listing.pricing or None,
        "location": location,
        "media": media,
        "main_media_id": primary,
        "listing_id": listing.id,
    })
    # resume after the last consecutive step that already validates
    for step in rules.SUBMIT_STEPS:
        if rules.validate_step(draft, step):
            break
        draft.completed_steps.append(int(step))
    draft.current_step = min(len(draft.completed_steps) + 1, int(LAST_STEP))
    return draft
