from typing import Literal

from pydantic import BaseModel, Field


class PresignRequest(BaseModel):
    file_name: str = Field(min_length=1, max_length=255)
    content_type: str | None = Field(default=None, max_length=100)
    folder: Literal["listings", "developments", "avatars", "documents"] = "listings"
