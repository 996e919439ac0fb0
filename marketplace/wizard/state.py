"""
Serializable state of one listing-creation wizard session.

Property details and pricing are tagged unions: the `property_type` / `action`
literal on each variant selects the model, so a payload can never carry rent
fields on a sale or farm fields on an apartment.
"""
from __future__ import annotations

from datetime import date, datetime
from enum import Enum, IntEnum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from marketplace.core.ids import gen_id


class ListingAction(str, Enum):
    SELL = "sell"
    RENT = "rent"
    AUCTION = "auction"


class PropertyType(str, Enum):
    APARTMENT = "apartment"
    HOUSE = "house"
    FARM = "farm"
    LAND = "land"
    COMMERCIAL = "commercial"
    SHARED_LIVING = "shared_living"


class Badge(str, Enum):
    READY_TO_MOVE = "ready_to_move"
    UNDER_CONSTRUCTION = "under_construction"
    OFF_PLAN = "off_plan"
    MOVE_IN_READY = "move_in_ready"
    FIXER_UPPER = "fixer_upper"
    RENOVATED = "renovated"
    WATER_RIGHTS = "water_rights"
    GOING_CONCERN = "going_concern"
    GAME_FENCED = "game_fenced"
    IRRIGATION = "irrigation"
    ORGANIC_CERTIFIED = "organic_certified"
    EXPORT_QUALITY = "export_quality"


class WizardStep(IntEnum):
    ACTION = 1
    PROPERTY_TYPE = 2
    BADGES = 3
    PROPERTY_DETAILS = 4
    BASIC_INFO = 5
    PRICING = 6
    LOCATION = 7
    MEDIA = 8
    PREVIEW = 9


FIRST_STEP = WizardStep.ACTION
LAST_STEP = WizardStep.PREVIEW


class DraftStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"


class _Variant(BaseModel):
    model_config = ConfigDict(extra="forbid")


# Property details. Fields are optional here; the step rules decide what is required.

class ApartmentDetails(_Variant):
    property_type: Literal["apartment"] = "apartment"
    bedrooms: int | None = None
    bathrooms: float | None = None
    unit_size_m2: float | None = None
    property_settings: Literal["sectional_title", "freehold"] | None = None
    floor_number: int | None = None
    parking_bays: int | None = None
    levies: float | None = None
    pet_friendly: bool | None = None
    amenities: list[str] = Field(default_factory=list)


class HouseDetails(_Variant):
    property_type: Literal["house"] = "house"
    bedrooms: int | None = None
    bathrooms: float | None = None
    erf_size_m2: float | None = None
    house_area_m2: float | None = None
    garages: int | None = None
    has_pool: bool | None = None
    has_garden: bool | None = None
    amenities: list[str] = Field(default_factory=list)


class FarmDetails(_Variant):
    property_type: Literal["farm"] = "farm"
    land_size_ha: float | None = None
    farm_suitability: Literal["crop", "livestock", "game", "mixed", "equestrian"] | None = None
    water_source: str | None = None
    homestead_bedrooms: int | None = None
    outbuildings: list[str] = Field(default_factory=list)


class LandDetails(_Variant):
    property_type: Literal["land"] = "land"
    land_size_m2_or_ha: float | None = None
    land_size_unit: Literal["m2", "ha"] = "m2"
    zoning: Literal["residential", "commercial", "industrial", "agricultural", "mixed_use"] | None = None
    services_available: list[str] = Field(default_factory=list)


class CommercialDetails(_Variant):
    property_type: Literal["commercial"] = "commercial"
    subtype: Literal["office", "retail", "industrial", "warehouse", "hospitality", "mixed_use"] | None = None
    floor_area_m2: float | None = None
    parking_bays: int | None = None
    zoning: str | None = None


class SharedLivingDetails(_Variant):
    property_type: Literal["shared_living"] = "shared_living"
    rooms_available: int | None = None
    bathroom_type_per_room: Literal["private", "shared", "mixed"] | None = None
    furnished: bool | None = None
    house_rules: list[str] = Field(default_factory=list)


PropertyDetails = Annotated[
    Union[ApartmentDetails, HouseDetails, FarmDetails, LandDetails, CommercialDetails, SharedLivingDetails],
    Field(discriminator="property_type"),
]


# Pricing, keyed by listing action.

class SellPricing(_Variant):
    action: Literal["sell"] = "sell"
    asking_price: float | None = None
    negotiable: bool = False
    transfer_cost_estimate: float | None = None


class RentPricing(_Variant):
    action: Literal["rent"] = "rent"
    monthly_rent: float | None = None
    deposit: float | None = None
    lease_terms: str | None = None
    available_from: date | None = None
    utilities_included: bool = False


class AuctionPricing(_Variant):
    action: Literal["auction"] = "auction"
    starting_bid: float | None = None
    reserve_price: float | None = None
    auction_date_time: datetime | None = None
    auction_terms_document_url: str | None = None


Pricing = Annotated[Union[SellPricing, RentPricing, AuctionPricing], Field(discriminator="action")]


class Location(BaseModel):
    address: str = ""
    suburb: str | None = None
    city: str = ""
    province: str = ""
    postal_code: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    place_id: str | None = None


class MediaItem(BaseModel):
    id: str = Field(default_factory=lambda: gen_id("med"))
    media_type: Literal["image", "video", "floorplan", "pdf"] = "image"
    url: str
    storage_key: str | None = None
    file_name: str | None = None
    file_size: int | None = None
    mime_type: str | None = None
    duration_seconds: float | None = None
    display_order: int = 0
    is_primary: bool = False


class ListingDraft(BaseModel):
    action: ListingAction | None = None
    property_type: PropertyType | None = None
    badges: list[Badge] = Field(default_factory=list)

    title: str = ""
    description: str = ""

    property_details: PropertyDetails | None = None
    pricing: Pricing | None = None
    location: Location | None = None

    media: list[MediaItem] = Field(default_factory=list)
    main_media_id: str | None = None

    current_step: int = int(FIRST_STEP)
    completed_steps: list[int] = Field(default_factory=list)
    # field path -> message, e.g. {"pricing.monthly_rent": "Monthly rent must be greater than 0"}
    errors: dict[str, str] = Field(default_factory=dict)

    status: DraftStatus = DraftStatus.DRAFT
    listing_id: str | None = None
