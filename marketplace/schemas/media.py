from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class MediaOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    listing_id: str
    media_type: str
    storage_key: str | None
    url: str
    file_name: str | None
    file_size: int | None
    mime_type: str | None
    duration_seconds: float | None
    display_order: int
    is_primary: bool
    processing_status: str


class MediaUploadRequest(BaseModel):
    file_name: str = Field(min_length=1, max_length=255)
    content_type: str = Field(min_length=1, max_length=100)
    file_size: int = Field(gt=0)
    media_type: Literal["image", "video", "floorplan", "pdf"] = "image"
    duration_seconds: float | None = Field(default=None, ge=0)


class PresignedUploadOut(BaseModel):
    upload_url: str
    key: str
    public_url: str
    content_type: str
    expires_in: int
    headers: dict[str, str]


class MediaUploadOut(BaseModel):
    media: MediaOut
    upload: PresignedUploadOut


class MediaReorder(BaseModel):
    media_ids: list[str]
