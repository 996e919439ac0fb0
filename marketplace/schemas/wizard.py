from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from marketplace.wizard.state import (
    Badge,
    ListingAction,
    ListingDraft,
    Location,
    Pricing,
    PropertyDetails,
    PropertyType,
)


class DraftPatch(BaseModel):
    """Partial wizard update. Only the fields sent are applied."""

    action: ListingAction | None = None
    property_type: PropertyType | None = None
    badges: list[Badge] | None = None
    title: str | None = None
    description: str | None = None
    property_details: PropertyDetails | None = None
    pricing: Pricing | None = None
    location: Location | None = None


class DraftCreate(DraftPatch):
    # resume editing an existing draft/rejected listing
    listing_id: str | None = None


class MediaAdd(BaseModel):
    media_type: Literal["image", "video", "floorplan", "pdf"] = "image"
    url: str = Field(min_length=1, max_length=1000)
    storage_key: str | None = None
    file_name: str | None = None
    file_size: int | None = Field(default=None, ge=0)
    mime_type: str | None = None
    duration_seconds: float | None = Field(default=None, ge=0)


class MediaOrder(BaseModel):
    media_ids: list[str]


class GoToStep(BaseModel):
    step: int


class SubmitDraft(BaseModel):
    publish_on_approval: bool = False


class DraftOut(BaseModel):
    id: str
    status: str
    current_step: int
    progress: int
    max_reachable_step: int
    is_frozen: bool
    listing_id: str | None
    draft: ListingDraft


class StepMoveOut(DraftOut):
    moved: bool


class SaveOut(BaseModel):
    ok: bool
    listing_id: str | None
    error: str | None = None
    errors: dict[str, str] = Field(default_factory=dict)
