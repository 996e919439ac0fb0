"""
Listing approval workflow.

    draft/rejected --submit--> pending_review --review--> approved | rejected
    approved --publish--> published --archive--> archived

One open (pending or reviewing) queue entry per listing. A resubmission after
rejection reopens the listing's latest queue entry instead of adding one.
"""
from __future__ import annotations

import logging

from fastapi import HTTPException
from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.config import settings
from marketplace.core.timeutil import utcnow
from marketplace.models.approval_queue import OPEN_QUEUE_STATUSES, ApprovalQueueEntry
from marketplace.models.listing import Listing
from marketplace.models.listing_media import ListingMedia
from marketplace.models.user import User
from marketplace.services.audit import audit
from marketplace.services.auth import Actor
from marketplace.services.notifications import enqueue_email

log = logging.getLogger(__name__)

REVIEW_DECISIONS = ("approved", "rejected")
PRIORITIES = ("low", "normal", "high", "urgent")


async def run_compliance_checks(db: AsyncSession, listing: Listing) -> dict:
    """Automated pre-review checks recorded on the queue entry for the moderator."""
    media_count, has_primary = (
        await db.execute(
            select(
                func.count(ListingMedia.id),
                func.coalesce(func.sum(case((ListingMedia.is_primary.is_(True), 1), else_=0)), 0),
            )
            .where(ListingMedia.listing_id == listing.id)
        )
    ).one()
    checks = {
        "has_title": bool(listing.title and len(listing.title) >= 10),
        "has_description": bool(listing.description and len(listing.description) >= 50),
        "has_price": listing.price is not None and listing.price > 0,
        "has_coordinates": listing.latitude is not None and listing.longitude is not None,
        "has_media": media_count > 0,
        "has_primary_media": bool(has_primary),
    }
    return {
        "checks": checks,
        "passed": all(checks.values()),
        "readiness_score": listing.readiness_score,
        "checked_at": utcnow().isoformat(),
    }


async def get_open_entry(db: AsyncSession, listing_id: str) -> ApprovalQueueEntry | None:
    stmt = select(ApprovalQueueEntry).where(
        ApprovalQueueEntry.listing_id == listing_id,
        ApprovalQueueEntry.status.in_(OPEN_QUEUE_STATUSES),
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def get_latest_entry(db: AsyncSession, listing_id: str) -> ApprovalQueueEntry | None:
    stmt = (
        select(ApprovalQueueEntry)
        .where(ApprovalQueueEntry.listing_id == listing_id)
        .order_by(ApprovalQueueEntry.submitted_at.desc())
        .limit(1)
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def get_queue_entry_or_404(db: AsyncSession, queue_id: str) -> ApprovalQueueEntry:
    entry = (await db.execute(select(ApprovalQueueEntry).where(ApprovalQueueEntry.id == queue_id))).scalar_one_or_none()
    if not entry:
        raise HTTPException(status_code=404, detail="Approval queue entry not found")
    return entry


def assert_submittable(listing: Listing) -> None:
    if listing.status == "archived":
        raise HTTPException(status_code=409, detail="Archived listings cannot be submitted")
    if listing.approval_status == "approved" or listing.status in ("approved", "published"):
        raise HTTPException(status_code=409, detail="Listing is already approved")


async def submit_listing(
    db: AsyncSession,
    *,
    listing: Listing,
    actor: Actor,
    priority: str = "normal",
) -> ApprovalQueueEntry:
    """Move a listing to pending_review and make sure it has exactly one open queue entry."""
    assert_submittable(listing)

    entry = await get_open_entry(db, listing.id)
    if entry is not None:
        # already waiting for review
        listing.status = "pending_review"
        listing.approval_status = "pending"
        return entry

    now = utcnow()
    compliance = await run_compliance_checks(db, listing)
    latest = await get_latest_entry(db, listing.id)

    if latest is not None and latest.status == "rejected":
        await audit(
            db,
            actor=actor,
            action="listing.resubmitted",
            target_type="listing",
            target_id=listing.id,
            detail={
                "queue_id": latest.id,
                "previous_reviewed_by": latest.reviewed_by,
                "previous_reviewed_at": latest.reviewed_at.isoformat() if latest.reviewed_at else None,
                "previous_rejection_reason": latest.rejection_reason,
                "submission_count": latest.submission_count + 1,
            },
        )
        entry = latest
        entry.status = "pending"
        entry.submitted_by = actor.user_id
        entry.submitted_at = now
        entry.reviewed_by = None
        entry.reviewed_at = None
        entry.review_notes = None
        entry.rejection_reason = None
        entry.compliance_checks = compliance
        entry.submission_count = latest.submission_count + 1
        entry.priority = priority
        entry.updated_by = actor.user_id
    else:
        entry = ApprovalQueueEntry(
            listing_id=listing.id,
            submitted_by=actor.user_id,
            submitted_at=now,
            status="pending",
            priority=priority,
            compliance_checks=compliance,
            submission_count=1,
            created_by=actor.user_id,
            updated_by=actor.user_id,
        )
        db.add(entry)
        await audit(db, actor=actor, action="listing.submitted", target_type="listing", target_id=listing.id)

    listing.status = "pending_review"
    listing.approval_status = "pending"
    listing.reviewed_by = None
    listing.reviewed_at = None
    listing.rejection_reason = None
    listing.updated_by = actor.user_id

    await db.flush()
    return entry


async def start_review(db: AsyncSession, *, queue_id: str, actor: Actor) -> ApprovalQueueEntry:
    entry = await get_queue_entry_or_404(db, queue_id)
    if entry.status != "pending":
        raise HTTPException(status_code=409, detail=f"Queue entry is {entry.status}")
    entry.status = "reviewing"
    entry.reviewed_by = actor.user_id
    entry.updated_by = actor.user_id
    await db.flush()
    return entry


async def review_listing(
    db: AsyncSession,
    *,
    queue_id: str,
    decision: str,
    notes: str | None,
    actor: Actor,
) -> tuple[ApprovalQueueEntry, Listing]:
    if decision not in REVIEW_DECISIONS:
        raise HTTPException(status_code=422, detail=f"Decision must be one of {', '.join(REVIEW_DECISIONS)}")
    if decision == "rejected" and not (notes and notes.strip()):
        raise HTTPException(status_code=422, detail="A rejection reason is required")

    entry = await get_queue_entry_or_404(db, queue_id)
    if entry.status not in OPEN_QUEUE_STATUSES:
        raise HTTPException(status_code=409, detail=f"Queue entry is already {entry.status}")

    listing = (await db.execute(select(Listing).where(Listing.id == entry.listing_id))).scalar_one()
    now = utcnow()
    reason = notes.strip() if decision == "rejected" else None

    entry.status = decision
    entry.reviewed_by = actor.user_id
    entry.reviewed_at = now
    entry.review_notes = notes
    entry.rejection_reason = reason
    entry.updated_by = actor.user_id

    listing.status = decision
    listing.approval_status = decision
    listing.reviewed_by = actor.user_id
    listing.reviewed_at = now
    listing.rejection_reason = reason
    listing.updated_by = actor.user_id

    await audit(
        db,
        actor=actor,
        action=f"listing.{decision}",
        target_type="listing",
        target_id=listing.id,
        detail={"queue_id": entry.id, "notes": notes},
    )

    owner = (await db.execute(select(User).where(User.id == listing.owner_user_id))).scalar_one_or_none()
    if owner is not None:
        enqueue_email(
            db,
            to=owner.email,
            template="listing_approved" if decision == "approved" else "listing_rejected",
            context={"listing_title": listing.title, "reason": reason or ""},
            aggregate_type="listing",
            aggregate_id=listing.id,
            created_by=actor.user_id,
        )

    if decision == "approved" and settings.auto_publish_on_approve:
        await publish_listing(db, listing=listing, actor=actor)

    await db.flush()
    return entry, listing


async def publish_listing(db: AsyncSession, *, listing: Listing, actor: Actor | None) -> Listing:
    if listing.approval_status != "approved":
        raise HTTPException(status_code=409, detail="Only approved listings can be published")
    if listing.status == "published":
        return listing
    if listing.status == "archived":
        raise HTTPException(status_code=409, detail="Archived listings cannot be published")

    listing.status = "published"
    listing.is_published = True
    listing.published_at = utcnow()
    listing.archived_at = None
    listing.updated_by = actor.user_id if actor else "publish-job"
    await audit(db, actor=actor, action="listing.published", target_type="listing", target_id=listing.id)
    await db.flush()
    return listing


async def archive_listing(db: AsyncSession, *, listing: Listing, actor: Actor) -> Listing:
    if listing.status == "archived":
        return listing

    entry = await get_open_entry(db, listing.id)
    if entry is not None:
        # withdrawn before a decision
        entry.status = "withdrawn"
        entry.review_notes = "withdrawn by owner"
        entry.updated_by = actor.user_id

    listing.status = "archived"
    listing.is_published = False
    listing.published_at = None
    listing.archived_at = utcnow()
    listing.updated_by = actor.user_id
    await audit(db, actor=actor, action="listing.archived", target_type="listing", target_id=listing.id)
    await db.flush()
    return listing


async def publish_approved_listings(db: AsyncSession, *, limit: int = 100) -> int:
    """Publish job: approved listings whose owners asked to go live on approval."""
    stmt = (
        select(Listing)
        .where(
            Listing.status == "approved",
            Listing.approval_status == "approved",
            Listing.auto_publish.is_(True),
        )
        .order_by(Listing.reviewed_at.asc())
        .limit(limit)
    )
    rows = (await db.execute(stmt)).scalars().all()
    for listing in rows:
        await publish_listing(db, listing=listing, actor=None)
    if rows:
        log.info("publish job: published %d listings", len(rows))
    return len(rows)


async def list_queue(
    db: AsyncSession,
    *,
    status: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[tuple[ApprovalQueueEntry, Listing]]:
    stmt = select(ApprovalQueueEntry, Listing).join(Listing, Listing.id == ApprovalQueueEntry.listing_id)
    if status:
        stmt = stmt.where(ApprovalQueueEntry.status == status)
    else:
        stmt = stmt.where(ApprovalQueueEntry.status.in_(OPEN_QUEUE_STATUSES))
    stmt = stmt.order_by(ApprovalQueueEntry.submitted_at.asc()).limit(limit).offset(offset)
    return [(entry, listing) for entry, listing in (await db.execute(stmt)).all()]
