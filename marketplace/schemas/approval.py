from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict


class QueueEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    listing_id: str
    submitted_by: str
    submitted_at: datetime
    status: str
    priority: str
    reviewed_by: str | None
    reviewed_at: datetime | None
    review_notes: str | None
    rejection_reason: str | None
    compliance_checks: dict
    submission_count: int


class QueueItemOut(BaseModel):
    entry: QueueEntryOut
    listing_title: str
    listing_status: str
    owner_user_id: str
    readiness_score: int


class ReviewDecision(BaseModel):
    decision: Literal["approved", "rejected"]
    notes: str | None = None


class ReviewOut(BaseModel):
    entry: QueueEntryOut
    listing_id: str
    listing_status: str
    approval_status: str | None
    is_published: bool
