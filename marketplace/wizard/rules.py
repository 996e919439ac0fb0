"""
Per-step validation for the listing wizard.

Every validator returns a mapping of field path to message and never raises:
an empty mapping means the step is complete.
"""
from __future__ import annotations

from typing import Callable

from marketplace.wizard.state import (
    AuctionPricing,
    ListingDraft,
    MediaItem,
    PropertyType,
    RentPricing,
    SellPricing,
    WizardStep,
)

TITLE_MIN, TITLE_MAX = 10, 255
DESCRIPTION_MIN, DESCRIPTION_MAX = 50, 5000
ADDRESS_MIN = 5
BEDROOMS_MAX = 50
BATHROOMS_MAX = 20

MB = 1024 * 1024
IMAGE_MAX_BYTES = 5 * MB
VIDEO_MAX_BYTES = 50 * MB
VIDEO_MAX_SECONDS = 180
DOCUMENT_MAX_BYTES = 10 * MB
MAX_IMAGES_PER_LISTING = 30
MAX_VIDEOS_PER_LISTING = 5

IMAGE_MIME_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/webp"}
VIDEO_MIME_TYPES = {"video/mp4", "video/quicktime", "video/webm"}
DOCUMENT_MIME_TYPES = {"application/pdf"}

REQUIRED_DETAIL_FIELDS: dict[PropertyType, tuple[str, ...]] = {
    PropertyType.APARTMENT: ("bedrooms", "bathrooms", "unit_size_m2", "property_settings"),
    PropertyType.HOUSE: ("bedrooms", "bathrooms", "erf_size_m2", "house_area_m2"),
    PropertyType.FARM: ("land_size_ha", "farm_suitability"),
    PropertyType.LAND: ("land_size_m2_or_ha", "zoning"),
    PropertyType.COMMERCIAL: ("subtype", "floor_area_m2"),
    PropertyType.SHARED_LIVING: ("rooms_available", "bathroom_type_per_room"),
}

# fields that must be strictly positive when present
_POSITIVE_DETAIL_FIELDS = (
    "unit_size_m2", "erf_size_m2", "house_area_m2", "land_size_ha",
    "land_size_m2_or_ha", "floor_area_m2", "rooms_available",
)

FieldErrors = dict[str, str]


def _label(field: str) -> str:
    return field.replace("_m2", " (m²)").replace("_ha", " (ha)").replace("_", " ").capitalize()


def _validate_action(draft: ListingDraft) -> FieldErrors:
    if draft.action is None:
        return {"action": "Please select whether you want to sell, rent or auction"}
    return {}


def _validate_property_type(draft: ListingDraft) -> FieldErrors:
    if draft.property_type is None:
        return {"property_type": "Please select a property type"}
    return {}


def _validate_badges(draft: ListingDraft) -> FieldErrors:
    # badges are optional; duplicates are the only thing worth flagging
    if len(set(draft.badges)) != len(draft.badges):
        return {"badges": "Badges must not repeat"}
    return {}


def _validate_property_details(draft: ListingDraft) -> FieldErrors:
    details = draft.property_details
    if details is None:
        return {"property_details": "Property details are required"}
    if draft.property_type is None or details.property_type != draft.property_type.value:
        return {"property_details": "Property details do not match the selected property type"}

    errors: FieldErrors = {}
    for field in REQUIRED_DETAIL_FIELDS[draft.property_type]:
        if getattr(details, field, None) is None:
            errors[f"property_details.{field}"] = f"{_label(field)} is required"

    bedrooms = getattr(details, "bedrooms", None)
    if bedrooms is not None and not 0 <= bedrooms <= BEDROOMS_MAX:
        errors["property_details.bedrooms"] = f"Bedrooms must be between 0 and {BEDROOMS_MAX}"
    bathrooms = getattr(details, "bathrooms", None)
    if bathrooms is not None and not 0 <= bathrooms <= BATHROOMS_MAX:
        errors["property_details.bathrooms"] = f"Bathrooms must be between 0 and {BATHROOMS_MAX}"

    for field in _POSITIVE_DETAIL_FIELDS:
        value = getattr(details, field, None)
        if value is not None and value <= 0:
            errors[f"property_details.{field}"] = f"{_label(field)} must be greater than 0"
    return errors


def _validate_basic_info(draft: ListingDraft) -> FieldErrors:
    errors: FieldErrors = {}
    title = draft.title.strip()
    if len(title) < TITLE_MIN:
        errors["title"] = f"Title must be at least {TITLE_MIN} characters"
    elif len(title) > TITLE_MAX:
        errors["title"] = f"Title must be at most {TITLE_MAX} characters"

    description = draft.description.strip()
    if len(description) < DESCRIPTION_MIN:
        errors["description"] = f"Description must be at least {DESCRIPTION_MIN} characters"
    elif len(description) > DESCRIPTION_MAX:
        errors["description"] = f"Description must be at most {DESCRIPTION_MAX} characters"
    return errors


def _validate_pricing(draft: ListingDraft) -> FieldErrors:
    pricing = draft.pricing
    if pricing is None:
        return {"pricing": "Pricing is required"}
    if draft.action is None or pricing.action != draft.action.value:
        return {"pricing": "Pricing does not match the selected listing type"}

    errors: FieldErrors = {}
    if isinstance(pricing, SellPricing):
        if pricing.asking_price is None or pricing.asking_price <= 0:
            errors["pricing.asking_price"] = "Asking price must be greater than 0"
        if pricing.transfer_cost_estimate is not None and pricing.transfer_cost_estimate < 0:
            errors["pricing.transfer_cost_estimate"] = "Transfer cost estimate cannot be negative"
    elif isinstance(pricing, RentPricing):
        if pricing.monthly_rent is None or pricing.monthly_rent <= 0:
            errors["pricing.monthly_rent"] = "Monthly rent must be greater than 0"
        if pricing.deposit is None or pricing.deposit < 0:
            errors["pricing.deposit"] = "Deposit is required and cannot be negative"
    elif isinstance(pricing, AuctionPricing):
        if pricing.starting_bid is None or pricing.starting_bid <= 0:
            errors["pricing.starting_bid"] = "Starting bid must be greater than 0"
        if pricing.reserve_price is not None and pricing.reserve_price < 0:
            errors["pricing.reserve_price"] = "Reserve price cannot be negative"
        if pricing.auction_date_time is None:
            errors["pricing.auction_date_time"] = "Auction date and time is required"
    return errors


def _validate_location(draft: ListingDraft) -> FieldErrors:
    loc = draft.location
    if loc is None:
        return {"location": "Location is required"}

    errors: FieldErrors = {}
    if len(loc.address.strip()) < ADDRESS_MIN:
        errors["location.address"] = f"Address must be at least {ADDRESS_MIN} characters"
    if not loc.city.strip():
        errors["location.city"] = "City is required"
    if not loc.province.strip():
        errors["location.province"] = "Province is required"
    if loc.latitude is None or not -90 <= loc.latitude <= 90:
        errors["location.latitude"] = "A valid latitude is required"
    if loc.longitude is None or not -180 <= loc.longitude <= 180:
        errors["location.longitude"] = "A valid longitude is required"
    return errors


def _validate_media(draft: ListingDraft) -> FieldErrors:
    if not draft.media:
        return {"media": "At least one photo or video is required"}
    ids = {m.id for m in draft.media}
    if draft.main_media_id is None or draft.main_media_id not in ids:
        return {"main_media_id": "Please choose a main photo"}

    errors: FieldErrors = {}
    for item in draft.media:
        problem = media_item_error(item)
        if problem:
            errors[f"media.{item.id}"] = problem
    images = sum(1 for m in draft.media if m.media_type == "image")
    videos = sum(1 for m in draft.media if m.media_type == "video")
    if images > MAX_IMAGES_PER_LISTING:
        errors["media"] = f"At most {MAX_IMAGES_PER_LISTING} images are allowed"
    elif videos > MAX_VIDEOS_PER_LISTING:
        errors["media"] = f"At most {MAX_VIDEOS_PER_LISTING} videos are allowed"
    return errors


def _validate_preview(draft: ListingDraft) -> FieldErrors:
    return {}


STEP_VALIDATORS: dict[WizardStep, Callable[[ListingDraft], FieldErrors]] = {
    WizardStep.ACTION: _validate_action,
    WizardStep.PROPERTY_TYPE: _validate_property_type,
    WizardStep.BADGES: _validate_badges,
    WizardStep.PROPERTY_DETAILS: _validate_property_details,
    WizardStep.BASIC_INFO: _validate_basic_info,
    WizardStep.PRICING: _validate_pricing,
    WizardStep.LOCATION: _validate_location,
    WizardStep.MEDIA: _validate_media,
    WizardStep.PREVIEW: _validate_preview,
}

SUBMIT_STEPS = tuple(s for s in WizardStep if s < WizardStep.PREVIEW)


def validate_step(draft: ListingDraft, step: int) -> FieldErrors:
    return STEP_VALIDATORS[WizardStep(step)](draft)


def validate_for_submit(draft: ListingDraft) -> FieldErrors:
    errors: FieldErrors = {}
    for step in SUBMIT_STEPS:
        errors.update(validate_step(draft, step))
    return errors


def first_invalid_step(draft: ListingDraft) -> WizardStep | None:
    for step in SUBMIT_STEPS:
        if validate_step(draft, step):
            return step
    return None


def readiness_score(draft: ListingDraft) -> int:
    """Percentage of the content steps (1..8) that currently validate."""
    ok = sum(1 for step in SUBMIT_STEPS if not validate_step(draft, step))
    return round(ok * 100 / len(SUBMIT_STEPS))


def media_limit_error(*, media_type: str, mime_type: str | None, file_size: int | None,
                      duration_seconds: float | None = None) -> str | None:
    if media_type == "image":
        if mime_type and mime_type.lower() not in IMAGE_MIME_TYPES:
            return "Images must be JPG, PNG or WebP"
        if file_size is not None and file_size > IMAGE_MAX_BYTES:
            return "Images must be 5MB or smaller"
    elif media_type == "video":
        if mime_type and mime_type.lower() not in VIDEO_MIME_TYPES:
            return "Videos must be MP4, MOV or WebM"
        if file_size is not None and file_size > VIDEO_MAX_BYTES:
            return "Videos must be 50MB or smaller"
        if duration_seconds is not None and duration_seconds > VIDEO_MAX_SECONDS:
            return "Videos must be 3 minutes or shorter"
    elif media_type in ("floorplan", "pdf"):
        allowed = IMAGE_MIME_TYPES | DOCUMENT_MIME_TYPES
        if mime_type and mime_type.lower() not in allowed:
            return "Floorplans and documents must be PDF or an image"
        if file_size is not None and file_size > DOCUMENT_MAX_BYTES:
            return "Documents must be 10MB or smaller"
    return None


def media_item_error(item: MediaItem) -> str | None:
    return media_limit_error(
        media_type=item.media_type,
        mime_type=item.mime_type,
        file_size=item.file_size,
        duration_seconds=item.duration_seconds,
    )


def headline_price(draft: ListingDraft) -> float | None:
    pricing = draft.pricing
    if isinstance(pricing, SellPricing):
        return pricing.asking_price
    if isinstance(pricing, RentPricing):
        return pricing.monthly_rent
    if isinstance(pricing, AuctionPricing):
        return pricing.starting_bid
    return None

