from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from marketplace.schemas.developer import DevelopmentCreate, DevelopmentOut, LeadOut, UnitCreate
from marketplace.schemas.listing import ListingOut


class BrandCreate(BaseModel):
    brand_name: str = Field(min_length=2, max_length=255)
    identity_type: Literal["developer", "agency", "hybrid"] = "developer"
    brand_tier: Literal["national", "regional", "boutique"] = "regional"
    logo_url: str | None = None
    about: str | None = None
    headquarters: str | None = None
    contact_email: EmailStr | None = None


class BrandOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    brand_name: str
    slug: str
    identity_type: str
    brand_tier: str
    owner_type: str
    logo_url: str | None
    about: str | None
    headquarters: str | None
    contact_email: str | None
    is_visible: bool


class EmulationContextOut(BaseModel):
    brand_profile_id: str
    brand_name: str
    identity_type: str
    brand_tier: str
    operating_mode: str
    acting_user_id: str


class SeedDevelopment(DevelopmentCreate):
    units: list[UnitCreate] = Field(default_factory=list)


class SeedListing(BaseModel):
    action: Literal["sell", "rent", "auction"]
    property_type: Literal["apartment", "house", "farm", "land", "commercial", "shared_living"]
    title: str = Field(min_length=10, max_length=255)
    description: str = Field(min_length=1, max_length=5000)
    price: float = Field(gt=0)
    city: str = Field(min_length=1, max_length=120)
    province: str = Field(min_length=1, max_length=120)
    address: str | None = None
    suburb: str | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    property_details: dict = Field(default_factory=dict)
    media_urls: list[str] = Field(default_factory=list)


class SeedLead(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: EmailStr
    phone: str | None = None
    message: str | None = None
    development_id: str | None = None
    affordability_match: float | None = Field(default=None, ge=0, le=100)
    source: str | None = None


class SeedResultOut(BaseModel):
    success: bool
    operation: str
    brand_profile_id: str
    brand_profile_name: str
    entity_ids: list[str]
    total_entities: int


class BrandEntitiesOut(BaseModel):
    developments: list[DevelopmentOut]
    listings: list[ListingOut]
    leads: list[LeadOut]
    total_entities: int


class BrandStatsOut(BaseModel):
    brand_profile_id: str
    brand_name: str
    developments: int
    listings: int
    published_listings: int
    leads: int
    new_leads: int


class CleanupOut(BaseModel):
    success: bool
    deleted_counts: dict[str, int]
