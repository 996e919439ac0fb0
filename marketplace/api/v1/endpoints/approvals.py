from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.db import get_db
from marketplace.schemas.approval import QueueEntryOut, QueueItemOut, ReviewDecision, ReviewOut
from marketplace.schemas.developer import DeveloperOut, DeveloperStatusUpdate
from marketplace.services import approval, developers
from marketplace.services.auth import Actor, require_super_admin

router = APIRouter()


@router.get("/admin/approvals", response_model=list[QueueItemOut])
async def list_approval_queue(
    status: str | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    actor: Actor = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
) -> list[QueueItemOut]:
    rows = await approval.list_queue(db, status=status, limit=limit, offset=offset)
    return [
        QueueItemOut(
            entry=QueueEntryOut.model_validate(entry),
            listing_title=listing.title,
            listing_status=listing.status,
            owner_user_id=listing.owner_user_id,
            readiness_score=listing.readiness_score,
        )
        for entry, listing in rows
    ]


@router.post("/admin/approvals/{queue_id}/claim", response_model=QueueEntryOut)
async def claim_for_review(
    queue_id: str,
    actor: Actor = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
) -> QueueEntryOut:
    entry = await approval.start_review(db, queue_id=queue_id, actor=actor)
    await db.commit()
    return QueueEntryOut.model_validate(entry)


@router.post("/admin/approvals/{queue_id}/review", response_model=ReviewOut)
async def review(
    queue_id: str,
    payload: ReviewDecision,
    actor: Actor = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
) -> ReviewOut:
    entry, listing = await approval.review_listing(
        db, queue_id=queue_id, decision=payload.decision, notes=payload.notes, actor=actor
    )
    await db.commit()
    return ReviewOut(
        entry=QueueEntryOut.model_validate(entry),
        listing_id=listing.id,
        listing_status=listing.status,
        approval_status=listing.approval_status,
        is_published=listing.is_published,
    )


@router.post("/admin/developers/{developer_id}/status", response_model=DeveloperOut)
async def set_developer_status(
    developer_id: str,
    payload: DeveloperStatusUpdate,
    actor: Actor = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
) -> DeveloperOut:
    dev = await developers.set_developer_status(db, developer_id=developer_id, status=payload.status, actor=actor)
    await db.commit()
    return DeveloperOut.model_validate(dev)
