import json
import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.config import settings
from marketplace.core.db import get_db
from marketplace.services.stripe_webhooks import (
    SignatureVerificationError,
    handle_stripe_event,
    verify_stripe_signature,
)

log = logging.getLogger(__name__)

router = APIRouter()


@router.post("/webhooks/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None),
    db: AsyncSession = Depends(get_db),
) -> dict:
    # Stripe retries anything but 2xx, so an unconfigured deployment still acknowledges
    if not settings.stripe_configured:
        return {"received": True, "status": "stripe_not_configured"}

    payload = await request.body()
    try:
        verify_stripe_signature(
            payload,
            stripe_signature,
            settings.stripe_webhook_secret.get_secret_value(),
            tolerance=settings.stripe_webhook_tolerance_seconds,
        )
    except SignatureVerificationError as exc:
        log.warning("stripe webhook rejected: %s", exc)
        raise HTTPException(status_code=400, detail=f"Invalid signature: {exc}")

    try:
        event = json.loads(payload)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON payload")
    if not isinstance(event, dict) or not event.get("id"):
        raise HTTPException(status_code=400, detail="Event id missing")

    status = await handle_stripe_event(db, event)
    try:
        await db.commit()
    except IntegrityError:
        # a concurrent delivery of the same event won the insert
        await db.rollback()
        status = "duplicate"
    return {"received": True, "status": status}
