import asyncio
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from marketplace.core.config import settings
import marketplace.models  # noqa: F401  # ensures Models are registered
from marketplace.core.timeutil import utcnow
from marketplace.models.outbox import OutboxEvent
from marketplace.services.approval import publish_approved_listings as publish_approved
from marketplace.services.email import EmailProvider, get_email_provider, render_email
from marketplace.services.notifications import EMAIL_EVENT_TYPE
from marketplace.services.retry import next_attempt_at
from worker.celery_app import celery


log = logging.getLogger(__name__)


class PermanentFailure(Exception):
    """The event can never succeed; dead-letter it without retrying."""


async def _deliver_email(payload: dict, provider: EmailProvider) -> None:
    try:
        message = render_email(payload["template"], to=payload["to"], context=payload.get("context") or {})
    except KeyError as e:
        raise PermanentFailure(f"bad email payload: {e}")
    result = await provider.send(message)
    if result.ok:
        log.info("outbox: email %s sent to %s id=%s", payload["template"], payload["to"], result.message_id)
        return
    if not result.retryable:
        raise PermanentFailure(result.error or "email rejected")
    raise RuntimeError(result.error or "email send failed")


async def process_claimed_event(
    db: AsyncSession,
    outbox_id: str,
    lease_id: str,
    *,
    email_provider: EmailProvider | None = None,
) -> str:
    """
    Run one leased outbox event. Returns the resulting status, or "skipped"
    when the row is gone or the lease was lost to another dispatcher.
    Failures go back to pending with backoff until `outbox_max_attempts`,
    then the row is dead-lettered.
    """
    ev = (await db.execute(select(OutboxEvent).where(OutboxEvent.id == outbox_id))).scalar_one_or_none()
    if not ev or ev.lease_id != lease_id or ev.status != "processing":
        return "skipped"

    try:
        if ev.event_type == EMAIL_EVENT_TYPE:
            await _deliver_email(ev.payload, email_provider or get_email_provider())
        else:
            raise PermanentFailure(f"no handler for event type {ev.event_type}")
    except PermanentFailure as e:
        ev.status = "dead"
        ev.last_error = str(e)
        log.error("outbox: %s dead-lettered: %s", ev.id, e)
    except Exception as e:
        ev.last_error = f"{type(e).__name__}: {e}"
        if ev.attempts >= settings.outbox_max_attempts:
            ev.status = "dead"
            log.error("outbox: %s dead-lettered after %d attempts", ev.id, ev.attempts)
        else:
            ev.status = "pending"
            ev.next_attempt_at = next_attempt_at(ev.attempts)
            log.warning("outbox: %s attempt %d failed, retry at %s", ev.id, ev.attempts, ev.next_attempt_at)
    else:
        ev.status = "done"
        ev.processed_at = utcnow()
        ev.last_error = None

    ev.lease_id = None
    ev.lease_expires_at = None
    ev.processing_started_at = None
    await db.flush()
    return ev.status


async def _process_outbox_event(outbox_id: str, lease_id: str) -> None:
    engine = create_async_engine(settings.database_url, pool_pre_ping=True)
    Session = async_sessionmaker(engine, expire_on_commit=False)

    async with Session() as db:
        await process_claimed_event(db, outbox_id, lease_id)
        await db.commit()

    await engine.dispose()


async def _publish_approved_listings() -> int:
    engine = create_async_engine(settings.database_url, pool_pre_ping=True)
    Session = async_sessionmaker(engine, expire_on_commit=False)

    async with Session() as db:
        count = await publish_approved(db)
        await db.commit()

    await engine.dispose()
    return count


@celery.task(name="worker.tasks.process_outbox_event")
def process_outbox_event(outbox_id: str, lease_id: str) -> None:
    asyncio.run(_process_outbox_event(outbox_id, lease_id))


@celery.task(name="worker.tasks.publish_approved_listings")
def publish_approved_listings() -> int:
    return asyncio.run(_publish_approved_listings())
