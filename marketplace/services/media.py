from __future__ import annotations

from fastapi import HTTPException
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.models.listing import Listing
from marketplace.models.listing_media import ListingMedia
from marketplace.services.storage import PresignedUpload, S3Presigner, build_object_key
from marketplace.wizard import rules


async def list_listing_media(db: AsyncSession, listing_id: str) -> list[ListingMedia]:
    stmt = (
        select(ListingMedia)
        .where(ListingMedia.listing_id == listing_id)
        .order_by(ListingMedia.display_order.asc(), ListingMedia.created_at.asc())
    )
    return list((await db.execute(stmt)).scalars().all())


async def _get_media_or_404(db: AsyncSession, listing_id: str, media_id: str) -> ListingMedia:
    row = (
        await db.execute(
            select(ListingMedia).where(ListingMedia.id == media_id, ListingMedia.listing_id == listing_id)
        )
    ).scalar_one_or_none()
    if not row:
        raise HTTPException(status_code=404, detail="Media not found")
    return row


async def create_listing_upload(
    db: AsyncSession,
    *,
    listing: Listing,
    presigner: S3Presigner,
    file_name: str,
    content_type: str,
    file_size: int,
    media_type: str,
    duration_seconds: float | None,
    actor_id: str,
) -> tuple[ListingMedia, PresignedUpload]:
    """Presign a direct upload and register a pending media row for it."""
    problem = rules.media_limit_error(
        media_type=media_type, mime_type=content_type, file_size=file_size, duration_seconds=duration_seconds
    )
    if problem:
        raise HTTPException(status_code=422, detail=problem)

    count = (
        await db.execute(
            select(func.count()).select_from(ListingMedia).where(
                ListingMedia.listing_id == listing.id, ListingMedia.media_type == media_type
            )
        )
    ).scalar_one()
    if media_type == "image" and count >= rules.MAX_IMAGES_PER_LISTING:
        raise HTTPException(status_code=422, detail=f"At most {rules.MAX_IMAGES_PER_LISTING} images are allowed")
    if media_type == "video" and count >= rules.MAX_VIDEOS_PER_LISTING:
        raise HTTPException(status_code=422, detail=f"At most {rules.MAX_VIDEOS_PER_LISTING} videos are allowed")

    existing = await list_listing_media(db, listing.id)
    upload = presigner.presign_put(
        key=build_object_key("listings", file_name, owner_id=listing.id),
        content_type=content_type,
    )
    row = ListingMedia(
        listing_id=listing.id,
        media_type=media_type,
        storage_key=upload.key,
        url=upload.public_url,
        file_name=file_name,
        file_size=file_size,
        mime_type=content_type,
        duration_seconds=duration_seconds,
        display_order=len(existing),
        is_primary=not any(m.is_primary for m in existing),
        processing_status="pending",
        created_by=actor_id,
        updated_by=actor_id,
    )
    db.add(row)
    await db.flush()
    return row, upload


async def complete_media_upload(db: AsyncSession, *, listing_id: str, media_id: str, actor_id: str) -> ListingMedia:
    row = await _get_media_or_404(db, listing_id, media_id)
    row.processing_status = "completed"
    row.updated_by = actor_id
    await db.flush()
    return row


async def reorder_media(db: AsyncSession, *, listing_id: str, media_ids: list[str], actor_id: str) -> list[ListingMedia]:
    rows = await list_listing_media(db, listing_id)
    by_id = {m.id: m for m in rows}
    if len(media_ids) != len(by_id) or set(media_ids) != set(by_id):
        raise HTTPException(status_code=422, detail="Reorder must list every media id exactly once")
    for order, media_id in enumerate(media_ids):
        by_id[media_id].display_order = order
        by_id[media_id].updated_by = actor_id
    await db.flush()
    return [by_id[mid] for mid in media_ids]


async def set_primary_media(db: AsyncSession, *, listing_id: str, media_id: str, actor_id: str) -> ListingMedia:
    row = await _get_media_or_404(db, listing_id, media_id)
    await db.execute(
        update(ListingMedia)
        .where(ListingMedia.listing_id == listing_id, ListingMedia.id != media_id)
        .values(is_primary=False)
    )
    row.is_primary = True
    row.updated_by = actor_id
    await db.flush()
    return row


async def delete_media(db: AsyncSession, *, listing_id: str, media_id: str, actor_id: str) -> None:
    row = await _get_media_or_404(db, listing_id, media_id)
    was_primary = row.is_primary
    await db.delete(row)
    await db.flush()

    remaining = await list_listing_media(db, listing_id)
    for order, m in enumerate(remaining):
        m.display_order = order
    if was_primary and remaining:
        remaining[0].is_primary = True
        remaining[0].updated_by = actor_id
    await db.flush()
