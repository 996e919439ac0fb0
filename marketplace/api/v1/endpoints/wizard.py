import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.db import get_db
from marketplace.models.listing_draft import ListingDraftSession
from marketplace.schemas.common import OkResponse
from marketplace.schemas.wizard import (
    DraftCreate,
    DraftOut,
    DraftPatch,
    GoToStep,
    MediaAdd,
    MediaOrder,
    SaveOut,
    StepMoveOut,
    SubmitDraft,
)
from marketplace.services.auth import Actor, get_actor
from marketplace.services.listings import assert_listing_editable, draft_from_listing, get_owned_listing
from marketplace.services.wizard_sessions import (
    apply_draft_patch,
    draft_saver,
    draft_submitter,
    get_session_or_404,
    load_wizard,
    new_session,
    store_wizard,
)
from marketplace.wizard import rules
from marketplace.wizard.machine import (
    DraftFrozenError,
    InvalidMediaOrderError,
    ListingWizard,
    MediaNotFoundError,
    WizardResult,
)
from marketplace.wizard.state import MediaItem

log = logging.getLogger(__name__)
router = APIRouter()


def _out(row: ListingDraftSession, wizard: ListingWizard) -> DraftOut:
    return DraftOut(
        id=row.id,
        status=wizard.draft.status.value,
        current_step=int(wizard.current_step),
        progress=wizard.progress,
        max_reachable_step=wizard.max_reachable_step,
        is_frozen=wizard.is_frozen,
        listing_id=wizard.draft.listing_id,
        draft=wizard.draft,
    )


def _wizard_error(e: Exception) -> HTTPException:
    if isinstance(e, DraftFrozenError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, MediaNotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    return HTTPException(status_code=422, detail=str(e))


async def _fail(db: AsyncSession, result: WizardResult) -> HTTPException:
    # writer failures carry the HTTP error raised by the listings/approval layer
    await db.rollback()
    if isinstance(result.cause, HTTPException):
        return result.cause
    log.error("wizard write failed: %s", result.error)
    return HTTPException(status_code=409, detail=result.error or "Could not save the listing")


@router.post("/wizard/drafts", response_model=DraftOut, status_code=201)
async def create_draft(
    payload: DraftCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> DraftOut:
    draft = None
    if payload.listing_id:
        listing = await get_owned_listing(db, actor, payload.listing_id)
        assert_listing_editable(listing)
        draft = await draft_from_listing(db, listing)

    row = new_session(actor=actor, draft=draft)
    wizard = load_wizard(row)
    apply_draft_patch(wizard, payload)
    store_wizard(row, wizard, actor=actor)
    db.add(row)
    await db.commit()
    return _out(row, wizard)


@router.get("/wizard/drafts/{draft_id}", response_model=DraftOut)
async def get_draft(draft_id: str, actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> DraftOut:
    row = await get_session_or_404(db, actor, draft_id)
    return _out(row, load_wizard(row))


@router.patch("/wizard/drafts/{draft_id}", response_model=DraftOut)
async def patch_draft(
    draft_id: str,
    payload: DraftPatch,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> DraftOut:
    row = await get_session_or_404(db, actor, draft_id)
    wizard = load_wizard(row)
    try:
        apply_draft_patch(wizard, payload)
    except DraftFrozenError as e:
        raise _wizard_error(e)
    store_wizard(row, wizard, actor=actor)
    await db.commit()
    return _out(row, wizard)


@router.delete("/wizard/drafts/{draft_id}", response_model=OkResponse)
async def delete_draft(draft_id: str, actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> OkResponse:
    # the listing row, if any, is kept
    row = await get_session_or_404(db, actor, draft_id)
    await db.delete(row)
    await db.commit()
    return OkResponse()


@router.post("/wizard/drafts/{draft_id}/media", response_model=DraftOut, status_code=201)
async def add_draft_media(
    draft_id: str,
    payload: MediaAdd,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> DraftOut:
    row = await get_session_or_404(db, actor, draft_id)
    wizard = load_wizard(row)
    item = MediaItem(**payload.model_dump())
    problem = rules.media_item_error(item)
    if problem:
        raise HTTPException(status_code=422, detail=problem)
    same_type = sum(1 for m in wizard.draft.media if m.media_type == item.media_type)
    if item.media_type == "image" and same_type >= rules.MAX_IMAGES_PER_LISTING:
        raise HTTPException(status_code=422, detail=f"At most {rules.MAX_IMAGES_PER_LISTING} images are allowed")
    if item.media_type == "video" and same_type >= rules.MAX_VIDEOS_PER_LISTING:
        raise HTTPException(status_code=422, detail=f"At most {rules.MAX_VIDEOS_PER_LISTING} videos are allowed")
    try:
        wizard.add_media(item)
    except DraftFrozenError as e:
        raise _wizard_error(e)
    store_wizard(row, wizard, actor=actor)
    await db.commit()
    return _out(row, wizard)


@router.delete("/wizard/drafts/{draft_id}/media/{media_id}", response_model=DraftOut)
async def remove_draft_media(
    draft_id: str,
    media_id: str,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> DraftOut:
    row = await get_session_or_404(db, actor, draft_id)
    wizard = load_wizard(row)
    try:
        wizard.remove_media(media_id)
    except (DraftFrozenError, MediaNotFoundError) as e:
        raise _wizard_error(e)
    store_wizard(row, wizard, actor=actor)
    await db.commit()
    return _out(row, wizard)


@router.put("/wizard/drafts/{draft_id}/media/order", response_model=DraftOut)
async def reorder_draft_media(
    draft_id: str,
    payload: MediaOrder,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> DraftOut:
    row = await get_session_or_404(db, actor, draft_id)
    wizard = load_wizard(row)
    try:
        wizard.reorder_media(payload.media_ids)
    except (DraftFrozenError, InvalidMediaOrderError) as e:
        raise _wizard_error(e)
    store_wizard(row, wizard, actor=actor)
    await db.commit()
    return _out(row, wizard)


@router.post("/wizard/drafts/{draft_id}/media/{media_id}/primary", response_model=DraftOut)
async def set_draft_primary_media(
    draft_id: str,
    media_id: str,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> DraftOut:
    row = await get_session_or_404(db, actor, draft_id)
    wizard = load_wizard(row)
    try:
        wizard.set_primary_media(media_id)
    except (DraftFrozenError, MediaNotFoundError) as e:
        raise _wizard_error(e)
    store_wizard(row, wizard, actor=actor)
    await db.commit()
    return _out(row, wizard)


async def _move(db: AsyncSession, actor: Actor, draft_id: str, move) -> StepMoveOut:
    row = await get_session_or_404(db, actor, draft_id)
    wizard = load_wizard(row)
    try:
        moved = move(wizard)
    except DraftFrozenError as e:
        raise _wizard_error(e)
    store_wizard(row, wizard, actor=actor)
    await db.commit()
    return StepMoveOut(moved=moved, **_out(row, wizard).model_dump())


@router.post("/wizard/drafts/{draft_id}/next", response_model=StepMoveOut)
async def next_step(draft_id: str, actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> StepMoveOut:
    return await _move(db, actor, draft_id, lambda w: w.next_step())


@router.post("/wizard/drafts/{draft_id}/prev", response_model=StepMoveOut)
async def prev_step(draft_id: str, actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> StepMoveOut:
    return await _move(db, actor, draft_id, lambda w: w.prev_step())


@router.post("/wizard/drafts/{draft_id}/goto", response_model=StepMoveOut)
async def go_to_step(
    draft_id: str,
    payload: GoToStep,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> StepMoveOut:
    return await _move(db, actor, draft_id, lambda w: w.go_to_step(payload.step))


@router.post("/wizard/drafts/{draft_id}/save", response_model=SaveOut)
async def save_draft(draft_id: str, actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> SaveOut:
    row = await get_session_or_404(db, actor, draft_id)
    wizard = load_wizard(row)
    try:
        result = await wizard.save_draft(draft_saver(db, actor))
    except DraftFrozenError as e:
        raise _wizard_error(e)
    if not result.ok:
        raise await _fail(db, result)
    store_wizard(row, wizard, actor=actor)
    await db.commit()
    return SaveOut(ok=True, listing_id=result.listing_id)


@router.post("/wizard/drafts/{draft_id}/submit", response_model=SaveOut)
async def submit_draft(
    draft_id: str,
    payload: SubmitDraft,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> SaveOut:
    row = await get_session_or_404(db, actor, draft_id)
    wizard = load_wizard(row)
    try:
        result = await wizard.submit_for_review(draft_submitter(db, actor, publish_on_approval=payload.publish_on_approval))
    except DraftFrozenError as e:
        raise _wizard_error(e)

    if result.errors:
        # keep the field errors on the draft so the client can show them
        store_wizard(row, wizard, actor=actor)
        await db.commit()
        raise HTTPException(status_code=422, detail={"message": result.error, "errors": result.errors})
    if not result.ok:
        raise await _fail(db, result)

    store_wizard(row, wizard, actor=actor)
    await db.commit()
    log.info("draft %s submitted as listing %s", row.id, result.listing_id)
    return SaveOut(ok=True, listing_id=result.listing_id)
