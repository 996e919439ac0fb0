"""
Lease-based hand-off of outbox rows to Celery.

A claim stamps a batch of due rows with one lease id and a lease expiry.
Workers only act on a row while it still carries their lease, and leases
left behind by a crashed dispatcher or worker are put back to pending.
"""
from datetime import timedelta
import logging
import uuid

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.timeutil import utcnow
from marketplace.models.outbox import OutboxEvent
from worker.celery_app import celery


log = logging.getLogger(__name__)

PROCESS_TASK = "worker.tasks.process_outbox_event"
OUTBOX_QUEUE = "outbox"

_CLEAR_LEASE = {"lease_id": None, "lease_expires_at": None, "processing_started_at": None}


async def requeue_expired_leases(db: AsyncSession) -> int:
    stmt = (
        update(OutboxEvent)
        .where(
            OutboxEvent.status == "processing",
            OutboxEvent.lease_expires_at.is_not(None),
            OutboxEvent.lease_expires_at < utcnow(),
        )
        .values(status="pending", last_error="requeued: lease expired", **_CLEAR_LEASE)
    )
    result = await db.execute(stmt)
    return int(result.rowcount or 0)


async def claim_outbox_event_ids(db: AsyncSession, batch_size: int = 100, lease_minutes: int = 10) -> tuple[str, list[str]]:
    """Lease up to `batch_size` due pending rows; each claim counts as an attempt."""
    lease_id = uuid.uuid4().hex
    now = utcnow()

    due = (
        select(OutboxEvent.id)
        .where(
            OutboxEvent.status == "pending",
            or_(OutboxEvent.next_attempt_at.is_(None), OutboxEvent.next_attempt_at <= now),
        )
        .order_by(OutboxEvent.created_at.asc())
        .with_for_update(skip_locked=True)
        .limit(batch_size)
    )
    ids = list((await db.execute(due)).scalars().all())
    if ids:
        await db.execute(
            update(OutboxEvent)
            .where(OutboxEvent.id.in_(ids))
            .values(
                status="processing",
                attempts=OutboxEvent.attempts + 1,
                lease_id=lease_id,
                lease_expires_at=now + timedelta(minutes=lease_minutes),
                processing_started_at=now,
            )
        )
        await db.flush()
    return lease_id, ids


async def _release_unsent(db: AsyncSession, lease_id: str, failures: dict[str, str]) -> None:
    # never reached a worker, so the claim should not count as an attempt
    for outbox_id, reason in failures.items():
        await db.execute(
            update(OutboxEvent)
            .where(OutboxEvent.id == outbox_id, OutboxEvent.lease_id == lease_id)
            .values(
                status="pending",
                attempts=OutboxEvent.attempts - 1,
                last_error=f"enqueue failed: {reason}",
                **_CLEAR_LEASE,
            )
        )
    await db.commit()


async def dispatch_outbox(db: AsyncSession, batch_size: int = 100, lease_minutes: int = 10) -> int:
    requeued = await requeue_expired_leases(db)
    if requeued:
        log.warning("outbox: requeued %d expired leases", requeued)

    lease_id, ids = await claim_outbox_event_ids(db, batch_size=batch_size, lease_minutes=lease_minutes)
    # workers must see the lease before their task runs
    await db.commit()

    failures: dict[str, str] = {}
    for outbox_id in ids:
        try:
            celery.send_task(PROCESS_TASK, args=[outbox_id, lease_id], queue=OUTBOX_QUEUE)
        except Exception as e:
            failures[outbox_id] = f"{type(e).__name__}: {e}"

    if failures:
        log.error("outbox: %d of %d enqueues failed", len(failures), len(ids))
        await _release_unsent(db, lease_id, failures)

    return len(ids) - len(failures)
