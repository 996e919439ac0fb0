from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.db import get_db
from marketplace.models.listing import Listing
from marketplace.schemas.approval import QueueEntryOut
from marketplace.schemas.common import OkResponse
from marketplace.schemas.listing import ListingCreate, ListingOut, ListingSubmit, ListingUpdate
from marketplace.schemas.media import MediaOut, MediaReorder, MediaUploadOut, MediaUploadRequest, PresignedUploadOut
from marketplace.services import approval, media
from marketplace.services.auth import Actor, get_actor
from marketplace.services.listings import (
    assert_listing_editable,
    draft_from_listing,
    get_owned_listing,
    write_listing_from_draft,
)
from marketplace.services.storage import S3Presigner, get_presigner
from marketplace.services.wizard_sessions import apply_draft_patch
from marketplace.wizard import rules
from marketplace.wizard.machine import ListingWizard

router = APIRouter()


@router.post("/listings", response_model=ListingOut, status_code=201)
async def create_listing(
    payload: ListingCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> ListingOut:
    wizard = ListingWizard()
    apply_draft_patch(wizard, payload)
    listing = await write_listing_from_draft(db=db, actor=actor, draft=wizard.draft)
    await db.commit()
    return ListingOut.model_validate(listing)


@router.get("/listings/mine", response_model=list[ListingOut])
async def my_listings(
    status: str | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> list[ListingOut]:
    stmt = select(Listing).where(Listing.owner_user_id == actor.user_id)
    if status:
        stmt = stmt.where(Listing.status == status)
    stmt = stmt.order_by(Listing.updated_at.desc()).limit(limit).offset(offset)
    rows = (await db.execute(stmt)).scalars().all()
    return [ListingOut.model_validate(r) for r in rows]


@router.get("/listings/{listing_id}", response_model=ListingOut)
async def get_listing(listing_id: str, actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> ListingOut:
    return ListingOut.model_validate(await get_owned_listing(db, actor, listing_id))


@router.patch("/listings/{listing_id}", response_model=ListingOut)
async def update_listing(
    listing_id: str,
    payload: ListingUpdate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> ListingOut:
    listing = await get_owned_listing(db, actor, listing_id)
    assert_listing_editable(listing)
    wizard = ListingWizard(await draft_from_listing(db, listing))
    apply_draft_patch(wizard, payload)
    listing = await write_listing_from_draft(db=db, actor=actor, draft=wizard.draft, listing_id=listing.id)
    await db.commit()
    return ListingOut.model_validate(listing)


@router.post("/listings/{listing_id}/submit", response_model=QueueEntryOut)
async def submit_listing(
    listing_id: str,
    payload: ListingSubmit,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> QueueEntryOut:
    listing = await get_owned_listing(db, actor, listing_id)
    approval.assert_submittable(listing)
    errors = rules.validate_for_submit(await draft_from_listing(db, listing))
    if errors:
        raise HTTPException(status_code=422, detail={"message": "Listing is incomplete", "errors": errors})

    listing.auto_publish = payload.publish_on_approval
    entry = await approval.submit_listing(db, listing=listing, actor=actor, priority=payload.priority)
    await db.commit()
    return QueueEntryOut.model_validate(entry)


@router.post("/listings/{listing_id}/publish", response_model=ListingOut)
async def publish_listing(listing_id: str, actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> ListingOut:
    listing = await get_owned_listing(db, actor, listing_id)
    listing = await approval.publish_listing(db, listing=listing, actor=actor)
    await db.commit()
    return ListingOut.model_validate(listing)


@router.post("/listings/{listing_id}/archive", response_model=ListingOut)
async def archive_listing(listing_id: str, actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> ListingOut:
    listing = await get_owned_listing(db, actor, listing_id)
    listing = await approval.archive_listing(db, listing=listing, actor=actor)
    await db.commit()
    return ListingOut.model_validate(listing)


# media

@router.get("/listings/{listing_id}/media", response_model=list[MediaOut])
async def list_media(listing_id: str, actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> list[MediaOut]:
    listing = await get_owned_listing(db, actor, listing_id)
    return [MediaOut.model_validate(m) for m in await media.list_listing_media(db, listing.id)]


@router.post("/listings/{listing_id}/media/upload-url", response_model=MediaUploadOut, status_code=201)
async def create_media_upload(
    listing_id: str,
    payload: MediaUploadRequest,
    actor: Actor = Depends(get_actor),
    presigner: S3Presigner = Depends(get_presigner),
    db: AsyncSession = Depends(get_db),
) -> MediaUploadOut:
    listing = await get_owned_listing(db, actor, listing_id)
    assert_listing_editable(listing)
    row, upload = await media.create_listing_upload(
        db,
        listing=listing,
        presigner=presigner,
        file_name=payload.file_name,
        content_type=payload.content_type,
        file_size=payload.file_size,
        media_type=payload.media_type,
        duration_seconds=payload.duration_seconds,
        actor_id=actor.user_id,
    )
    await db.commit()
    return MediaUploadOut(
        media=MediaOut.model_validate(row),
        upload=PresignedUploadOut(
            upload_url=upload.upload_url,
            key=upload.key,
            public_url=upload.public_url,
            content_type=upload.content_type,
            expires_in=upload.expires_in,
            headers=upload.headers,
        ),
    )


@router.post("/listings/{listing_id}/media/{media_id}/complete", response_model=MediaOut)
async def complete_media(
    listing_id: str,
    media_id: str,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> MediaOut:
    listing = await get_owned_listing(db, actor, listing_id)
    row = await media.complete_media_upload(db, listing_id=listing.id, media_id=media_id, actor_id=actor.user_id)
    await db.commit()
    return MediaOut.model_validate(row)


@router.put("/listings/{listing_id}/media/order", response_model=list[MediaOut])
async def reorder_media(
    listing_id: str,
    payload: MediaReorder,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> list[MediaOut]:
    listing = await get_owned_listing(db, actor, listing_id)
    assert_listing_editable(listing)
    rows = await media.reorder_media(db, listing_id=listing.id, media_ids=payload.media_ids, actor_id=actor.user_id)
    await db.commit()
    return [MediaOut.model_validate(m) for m in rows]


@router.post("/listings/{listing_id}/media/{media_id}/primary", response_model=MediaOut)
async def set_primary_media(
    listing_id: str,
    media_id: str,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> MediaOut:
    listing = await get_owned_listing(db, actor, listing_id)
    assert_listing_editable(listing)
    row = await media.set_primary_media(db, listing_id=listing.id, media_id=media_id, actor_id=actor.user_id)
    await db.commit()
    return MediaOut.model_validate(row)


@router.delete("/listings/{listing_id}/media/{media_id}", response_model=OkResponse)
async def delete_media(
    listing_id: str,
    media_id: str,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> OkResponse:
    listing = await get_owned_listing(db, actor, listing_id)
    assert_listing_editable(listing)
    await media.delete_media(db, listing_id=listing.id, media_id=media_id, actor_id=actor.user_id)
    await db.commit()
    return OkResponse()
