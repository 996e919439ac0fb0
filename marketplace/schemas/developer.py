from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class DeveloperRegister(BaseModel):
    company_name: str = Field(min_length=2, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(default=None, max_length=50)


class DeveloperOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    company_name: str
    email: str | None
    phone: str | None
    status: str
    brand_profile_id: str | None


class DevelopmentCreate(BaseModel):
    name: str = Field(min_length=2, max_length=255)
    development_type: Literal["residential", "commercial", "mixed_use", "estate", "complex"] = "residential"
    description: str | None = None
    address: str | None = None
    city: str = Field(min_length=1, max_length=120)
    province: str = Field(min_length=1, max_length=120)
    status: Literal["planning", "under_construction", "completed", "selling"] = "planning"
    price_from: float | None = Field(default=None, ge=0)
    price_to: float | None = Field(default=None, ge=0)
    amenities: list[str] = Field(default_factory=list)


class DevelopmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    developer_id: str | None
    brand_profile_id: str | None
    name: str
    slug: str
    development_type: str
    description: str | None
    address: str | None
    city: str
    province: str
    status: str
    is_published: bool
    published_at: datetime | None
    price_from: float | None
    price_to: float | None
    total_units: int
    amenities: list
    created_at: datetime


class UnitCreate(BaseModel):
    unit_number: str = Field(min_length=1, max_length=50)
    unit_type: str | None = Field(default=None, max_length=50)
    bedrooms: int | None = Field(default=None, ge=0, le=50)
    price: float = Field(gt=0)


class UnitUpdate(BaseModel):
    status: Literal["available", "reserved", "sold"] | None = None
    price: float | None = Field(default=None, gt=0)


class UnitOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    development_id: str
    unit_number: str
    unit_type: str | None
    bedrooms: int | None
    price: float
    status: str
    reserved_at: datetime | None
    sold_at: datetime | None


class LeadCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: EmailStr
    phone: str | None = Field(default=None, max_length=50)
    message: str | None = Field(default=None, max_length=5000)
    source: str = Field(default="website", max_length=50)
    affordability_match: float | None = Field(default=None, ge=0, le=100)


class LeadStatusUpdate(BaseModel):
    status: Literal["new", "contacted", "qualified", "viewing_scheduled", "offer_made", "converted", "lost"]


class LeadOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    developer_id: str | None
    brand_profile_id: str | None
    development_id: str | None
    name: str
    email: str
    phone: str | None
    message: str | None
    source: str
    status: str
    affordability_match: float | None
    qualified_at: datetime | None
    created_at: datetime


class SubscriptionLimitsOut(BaseModel):
    max_developments: int
    max_leads_per_month: int
    max_team_members: int
    analytics_retention_days: int
    crm_integration_enabled: bool
    advanced_analytics_enabled: bool
    bond_integration_enabled: bool


class DeveloperSubscriptionOut(BaseModel):
    tier: str
    status: str
    trial_ends_at: datetime | None
    trial_days_remaining: int
    current_period_end: datetime | None
    limits: SubscriptionLimitsOut
    usage: dict[str, int]


class KpiTrendsOut(BaseModel):
    total_leads: float
    qualified_leads: float
    conversion_rate: float
    units_sold: float
    affordability_match_percent: float
    marketing_performance_score: float


class KpisOut(BaseModel):
    time_range: str
    total_leads: int
    qualified_leads: int
    conversion_rate: float
    units_sold: int
    units_available: int
    affordability_match_percent: float
    marketing_performance_score: float
    trends: KpiTrendsOut
    cached: bool
    calculated_at: str


class ActivityOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    activity_type: str
    title: str
    description: str | None
    metadata: dict = Field(validation_alias="meta")
    related_entity_type: str | None
    related_entity_id: str | None
    user_id: str | None
    created_at: datetime


class DeveloperStatusUpdate(BaseModel):
    status: Literal["approved", "rejected"]
