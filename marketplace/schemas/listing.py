from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict

from marketplace.schemas.wizard import DraftPatch


class ListingCreate(DraftPatch):
    pass


class ListingUpdate(DraftPatch):
    pass


class ListingSubmit(BaseModel):
    priority: Literal["low", "normal", "high", "urgent"] = "normal"
    publish_on_approval: bool = False


class ListingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    owner_user_id: str
    agency_id: str | None
    brand_profile_id: str | None
    action: str | None
    property_type: str | None
    title: str
    description: str
    slug: str
    badges: list
    property_details: dict
    pricing: dict
    price: float | None
    currency: str
    address: str | None
    suburb: str | None
    city: str | None
    province: str | None
    postal_code: str | None
    latitude: float | None
    longitude: float | None
    status: str
    approval_status: str | None
    is_published: bool
    published_at: datetime | None
    archived_at: datetime | None
    reviewed_at: datetime | None
    rejection_reason: str | None
    readiness_score: int
    auto_publish: bool
    created_at: datetime
    updated_at: datetime


class PublicListingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    slug: str
    action: str | None
    property_type: str | None
    title: str
    description: str
    badges: list
    property_details: dict
    pricing: dict
    price: float | None
    currency: str
    suburb: str | None
    city: str | None
    province: str | None
    latitude: float | None
    longitude: float | None
    published_at: datetime | None
    primary_image_url: str | None = None
