from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.db import get_db
from marketplace.models.listing import Listing
from marketplace.models.listing_media import ListingMedia
from marketplace.schemas.listing import PublicListingOut

router = APIRouter()


async def _primary_images(db: AsyncSession, listing_ids: list[str]) -> dict[str, str]:
    if not listing_ids:
        return {}
    rows = (
        await db.execute(
            select(ListingMedia.listing_id, ListingMedia.url).where(
                ListingMedia.listing_id.in_(listing_ids), ListingMedia.is_primary.is_(True)
            )
        )
    ).all()
    return {listing_id: url for listing_id, url in rows}


def _public(listing: Listing, images: dict[str, str]) -> PublicListingOut:
    out = PublicListingOut.model_validate(listing)
    out.primary_image_url = images.get(listing.id)
    return out


@router.get("/public/listings", response_model=list[PublicListingOut])
async def search_listings(
    city: str | None = None,
    province: str | None = None,
    action: str | None = None,
    property_type: str | None = None,
    min_price: float | None = Query(default=None, ge=0),
    max_price: float | None = Query(default=None, ge=0),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
) -> list[PublicListingOut]:
    stmt = select(Listing).where(Listing.status == "published", Listing.is_published.is_(True))
    if city:
        stmt = stmt.where(Listing.city.ilike(city))
    if province:
        stmt = stmt.where(Listing.province.ilike(province))
    if action:
        stmt = stmt.where(Listing.action == action)
    if property_type:
        stmt = stmt.where(Listing.property_type == property_type)
    if min_price is not None:
        stmt = stmt.where(Listing.price >= min_price)
    if max_price is not None:
        stmt = stmt.where(Listing.price <= max_price)
    stmt = stmt.order_by(Listing.published_at.desc()).limit(limit).offset(offset)

    rows = (await db.execute(stmt)).scalars().all()
    images = await _primary_images(db, [r.id for r in rows])
    return [_public(r, images) for r in rows]


@router.get("/public/listings/{slug}", response_model=PublicListingOut)
async def get_public_listing(slug: str, db: AsyncSession = Depends(get_db)) -> PublicListingOut:
    listing = (
        await db.execute(select(Listing).where(Listing.slug == slug, Listing.status == "published"))
    ).scalar_one_or_none()
    if not listing:
        raise HTTPException(status_code=404, detail="Listing not found")
    return _public(listing, await _primary_images(db, [listing.id]))
