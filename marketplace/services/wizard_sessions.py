from __future__ import annotations

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.models.listing_draft import ListingDraftSession
from marketplace.services import approval
from marketplace.services.auth import Actor
from marketplace.services.listings import get_owned_listing, write_listing_from_draft
from marketplace.wizard.machine import DraftWriter, ListingWizard
from marketplace.wizard.state import ListingDraft


async def get_session_or_404(db: AsyncSession, actor: Actor, draft_id: str) -> ListingDraftSession:
    row = (await db.execute(select(ListingDraftSession).where(ListingDraftSession.id == draft_id))).scalar_one_or_none()
    if not row:
        raise HTTPException(status_code=404, detail="Draft not found")
    if row.owner_user_id != actor.user_id:
        raise HTTPException(status_code=403, detail="Not the owner of this draft")
    return row


def load_wizard(row: ListingDraftSession) -> ListingWizard:
    return ListingWizard.from_state(row.state or {})


def store_wizard(row: ListingDraftSession, wizard: ListingWizard, *, actor: Actor) -> None:
    # replace the dict so the JSON column is flagged dirty
    row.state = wizard.to_state()
    row.status = wizard.draft.status.value
    row.current_step = wizard.draft.current_step
    row.listing_id = wizard.draft.listing_id
    row.updated_by = actor.user_id


def new_session(*, actor: Actor, draft: ListingDraft | None = None) -> ListingDraftSession:
    wizard = ListingWizard(draft)
    row = ListingDraftSession(owner_user_id=actor.user_id, created_by=actor.user_id)
    store_wizard(row, wizard, actor=actor)
    return row


def draft_saver(db: AsyncSession, actor: Actor) -> DraftWriter:
    async def _save(draft: ListingDraft) -> str:
        listing = await write_listing_from_draft(db=db, actor=actor, draft=draft, listing_id=draft.listing_id)
        return listing.id

    return _save


def draft_submitter(db: AsyncSession, actor: Actor, *, publish_on_approval: bool = False) -> DraftWriter:
    async def _submit(draft: ListingDraft) -> str:
        # refuse before writing anything so a failed submit leaves no partial rows
        if draft.listing_id:
            existing = await get_owned_listing(db, actor, draft.listing_id)
            approval.assert_submittable(existing)
        listing = await write_listing_from_draft(db=db, actor=actor, draft=draft, listing_id=draft.listing_id)
        listing.auto_publish = publish_on_approval
        await approval.submit_listing(db, listing=listing, actor=actor)
        return listing.id

    return _submit


# action and property type reset pricing/details, so they go first
_PATCH_ORDER = ("action", "property_type", "badges", "title", "description", "property_details", "pricing", "location")


def apply_draft_patch(wizard: ListingWizard, patch) -> None:
    """Apply the fields a client actually sent (pydantic `model_fields_set`)."""
    sent = patch.model_fields_set
    for field in _PATCH_ORDER:
        if field not in sent:
            continue
        value = getattr(patch, field)
        if field == "action" and value is not None:
            wizard.set_action(value)
        elif field == "property_type" and value is not None:
            wizard.set_property_type(value)
        elif field == "badges":
            wizard.set_badges(value or [])
        elif field == "title":
            wizard.set_basic_info(title=value or "")
        elif field == "description":
            wizard.set_basic_info(description=value or "")
        elif field == "property_details":
            wizard.set_property_details(value)
        elif field == "pricing":
            wizard.set_pricing(value)
        elif field == "location":
            wizard.set_location(value)
