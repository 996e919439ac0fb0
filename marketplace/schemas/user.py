from typing import Literal

from pydantic import BaseModel, EmailStr, Field


class UserBootstrap(BaseModel):
    email: EmailStr
    name: str = Field(min_length=1, max_length=200)
    role: Literal["user", "agent", "agency_admin", "property_developer", "super_admin"] = "user"
    # creates the agency too when set
    agency_name: str | None = None
    agency_id: str | None = None


class UserBootstrapOut(BaseModel):
    user_id: str
    role: str
    agency_id: str | None
    api_key: str  # returned only once


class RotateKeyOut(BaseModel):
    user_id: str
    api_key: str
