from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable

from marketplace.wizard import rules
from marketplace.wizard.state import (
    FIRST_STEP,
    LAST_STEP,
    Badge,
    DraftStatus,
    ListingAction,
    ListingDraft,
    Location,
    MediaItem,
    PropertyType,
    WizardStep,
)

log = logging.getLogger(__name__)

# Persists the draft and returns the id of the listing row it was written to.
DraftWriter = Callable[[ListingDraft], Awaitable[str]]


class WizardError(Exception):
    pass


class DraftFrozenError(WizardError):
    """Raised when a submitted draft is mutated."""


class MediaNotFoundError(WizardError):
    pass


class InvalidMediaOrderError(WizardError):
    pass


@dataclass(frozen=True)
class WizardResult:
    ok: bool
    listing_id: str | None = None
    errors: dict[str, str] = field(default_factory=dict)
    error: str | None = None
    cause: Exception | None = field(default=None, repr=False, compare=False)


class ListingWizard:
    """
    Finite-state owner of one listing draft.

    Steps run 1..9 (Action .. Preview). Moving forward requires the current
    step to validate; moving back is always allowed; jumping is limited to
    steps already reached. Validation problems are recorded on the draft and
    reported through return values, never raised.
    """

    def __init__(self, draft: ListingDraft | None = None):
        self._draft = draft if draft is not None else ListingDraft()

    @classmethod
    def from_state(cls, state: dict) -> "ListingWizard":
        return cls(ListingDraft.model_validate(state))

    def to_state(self) -> dict:
        return self._draft.model_dump(mode="json")

    @property
    def draft(self) -> ListingDraft:
        return self._draft

    @property
    def current_step(self) -> WizardStep:
        return WizardStep(self._draft.current_step)

    @property
    def is_frozen(self) -> bool:
        return self._draft.status != DraftStatus.DRAFT

    @property
    def progress(self) -> int:
        return round(len(set(self._draft.completed_steps)) * 100 / len(WizardStep))

    @property
    def max_reachable_step(self) -> int:
        return min(max(self._draft.completed_steps, default=0) + 1, int(LAST_STEP))

    def _ensure_editable(self) -> None:
        if self.is_frozen:
            raise DraftFrozenError(f"Draft is {self._draft.status.value} and can no longer be edited")

    def _clear_errors(self, prefix: str) -> None:
        self._draft.errors = {
            k: v for k, v in self._draft.errors.items()
            if k != prefix and not k.startswith(prefix + ".")
        }

    # setters

    def set_action(self, action: ListingAction) -> None:
        self._ensure_editable()
        action = ListingAction(action)
        if self._draft.action != action:
            # pricing variants are keyed by action
            self._draft.pricing = None
            self._clear_errors("pricing")
        self._draft.action = action
        self._clear_errors("action")

    def set_property_type(self, property_type: PropertyType) -> None:
        self._ensure_editable()
        property_type = PropertyType(property_type)
        if self._draft.property_type != property_type:
            self._draft.property_details = None
            self._clear_errors("property_details")
        self._draft.property_type = property_type
        self._clear_errors("property_type")

    def set_badges(self, badges: Iterable[Badge]) -> None:
        self._ensure_editable()
        self._draft.badges = [Badge(b) for b in badges]
        self._clear_errors("badges")

    def toggle_badge(self, badge: Badge) -> None:
        self._ensure_editable()
        badge = Badge(badge)
        if badge in self._draft.badges:
            self._draft.badges = [b for b in self._draft.badges if b != badge]
        else:
            self._draft.badges = [*self._draft.badges, badge]
        self._clear_errors("badges")

    def set_basic_info(self, *, title: str | None = None, description: str | None = None) -> None:
        self._ensure_editable()
        if title is not None:
            self._draft.title = title
            self._clear_errors("title")
        if description is not None:
            self._draft.description = description
            self._clear_errors("description")

    def set_property_details(self, details) -> None:
        self._ensure_editable()
        self._draft.property_details = details
        self._clear_errors("property_details")

    def set_pricing(self, pricing) -> None:
        self._ensure_editable()
        self._draft.pricing = pricing
        self._clear_errors("pricing")

    def set_location(self, location: Location) -> None:
        self._ensure_editable()
        self._draft.location = location
        self._clear_errors("location")

    # media

    def _renumber_media(self) -> None:
        for i, item in enumerate(self._draft.media):
            item.display_order = i

    def _find_media(self, media_id: str) -> MediaItem:
        for item in self._draft.media:
            if item.id == media_id:
                return item
        raise MediaNotFoundError(f"Media {media_id} not found")

    def add_media(self, item: MediaItem) -> MediaItem:
        self._ensure_editable()
        item.display_order = len(self._draft.media)
        item.is_primary = False
        self._draft.media.append(item)
        if self._draft.main_media_id is None:
            self.set_primary_media(item.id)
        self._clear_errors("media")
        return item

    def remove_media(self, media_id: str) -> None:
        self._ensure_editable()
        self._find_media(media_id)
        self._draft.media = [m for m in self._draft.media if m.id != media_id]
        self._renumber_media()
        if self._draft.main_media_id == media_id:
            self._draft.main_media_id = None
            if self._draft.media:
                self.set_primary_media(self._draft.media[0].id)
        self._clear_errors(f"media.{media_id}")

    def reorder_media(self, media_ids: list[str]) -> None:
        self._ensure_editable()
        by_id = {m.id: m for m in self._draft.media}
        if len(media_ids) != len(by_id) or set(media_ids) != set(by_id):
            raise InvalidMediaOrderError("Reorder must list every media id exactly once")
        self._draft.media = [by_id[mid] for mid in media_ids]
        self._renumber_media()

    def set_primary_media(self, media_id: str) -> None:
        self._ensure_editable()
        self._find_media(media_id)
        for item in self._draft.media:
            item.is_primary = item.id == media_id
        self._draft.main_media_id = media_id
        self._clear_errors("main_media_id")

    # navigation

    def validate_current_step(self) -> dict[str, str]:
        return rules.validate_step(self._draft, self._draft.current_step)

    def next_step(self) -> bool:
        self._ensure_editable()
        step = self.current_step
        errors = rules.validate_step(self._draft, step)
        self._draft.errors = errors
        if errors:
            return False
        if step not in self._draft.completed_steps:
            self._draft.completed_steps = sorted({*self._draft.completed_steps, int(step)})
        if step == LAST_STEP:
            return False
        self._draft.current_step = int(step) + 1
        return True

    def prev_step(self) -> bool:
        self._ensure_editable()
        if self.current_step == FIRST_STEP:
            return False
        self._draft.current_step -= 1
        self._draft.errors = {}
        return True

    def go_to_step(self, step: int) -> bool:
        self._ensure_editable()
        if step < int(FIRST_STEP) or step > self.max_reachable_step:
            return False
        self._draft.current_step = step
        self._draft.errors = {}
        return True

    # persistence

    async def save_draft(self, writer: DraftWriter) -> WizardResult:
        """Persist the in-progress draft at any step, without validation."""
        self._ensure_editable()
        try:
            listing_id = await writer(self._draft)
        except Exception as e:
            log.warning("wizard: save draft failed: %s", e)
            return WizardResult(ok=False, error=str(e) or type(e).__name__, cause=e)
        self._draft.listing_id = listing_id
        return WizardResult(ok=True, listing_id=listing_id)

    async def submit_for_review(self, submitter: DraftWriter) -> WizardResult:
        """
        Validate steps 1..8, freeze the draft and hand it to `submitter`.

        On a submitter failure the draft is restored exactly as it was before
        the call (no optimistic transition) and the failure is returned.
        """
        self._ensure_editable()
        errors = rules.validate_for_submit(self._draft)
        if errors:
            self._draft.errors = errors
            first_bad = rules.first_invalid_step(self._draft)
            return WizardResult(
                ok=False,
                errors=errors,
                error=f"Step {int(first_bad)} is incomplete" if first_bad else "Draft is incomplete",
            )

        snapshot = self._draft.model_copy(deep=True)
        self._draft.errors = {}
        self._draft.status = DraftStatus.SUBMITTING
        try:
            listing_id = await submitter(self._draft)
        except Exception as e:
            log.warning("wizard: submit failed, draft restored: %s", e)
            self._draft = snapshot
            return WizardResult(ok=False, error=str(e) or type(e).__name__, cause=e)

        self._draft.listing_id = listing_id
        self._draft.status = DraftStatus.SUBMITTED
        self._draft.completed_steps = [int(s) for s in WizardStep]
        self._draft.current_step = int(LAST_STEP)
        return WizardResult(ok=True, listing_id=listing_id)
