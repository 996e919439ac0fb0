from __future__ import annotations

import logging
from datetime import timedelta

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.security import generate_token
from marketplace.core.timeutil import utcnow
from marketplace.models.agency import Agency
from marketplace.models.invitation import Invitation
from marketplace.services.auth import Actor
from marketplace.services.notifications import enqueue_email

log = logging.getLogger(__name__)

INVITATION_TTL_DAYS = 7
INVITABLE_ROLES = ("agent", "agency_admin")
# batch size when a checkout activates an agency
INVITATION_SEND_LIMIT = 50


async def create_invitation(db: AsyncSession, *, actor: Actor, email: str, role: str) -> Invitation:
    """
    Invitations stay pending until the agency has an active subscription;
    they go out on activation or straight away if already active.
    """
    if role not in INVITABLE_ROLES:
        raise HTTPException(status_code=422, detail=f"Role must be one of {', '.join(INVITABLE_ROLES)}")
    agency = (await db.execute(select(Agency).where(Agency.id == actor.agency_id))).scalar_one()

    open_invite = (
        await db.execute(
            select(Invitation).where(
                Invitation.agency_id == agency.id,
                Invitation.email == email.lower(),
                Invitation.status.in_(("pending", "sent")),
            )
        )
    ).scalar_one_or_none()
    if open_invite:
        raise HTTPException(status_code=409, detail="An invitation for this email is already open")

    inv = Invitation(
        agency_id=agency.id,
        email=email.lower(),
        role=role,
        token=generate_token(),
        status="pending",
        invited_by=actor.user_id,
        expires_at=utcnow() + timedelta(days=INVITATION_TTL_DAYS),
        created_by=actor.user_id,
        updated_by=actor.user_id,
    )
    db.add(inv)
    await db.flush()

    if agency.subscription_status == "active":
        send_invitation(db, agency=agency, invitation=inv)
    await db.flush()
    return inv


def send_invitation(db: AsyncSession, *, agency: Agency, invitation: Invitation) -> None:
    enqueue_email(
        db,
        to=invitation.email,
        template="team_invitation",
        context={"agency_name": agency.name, "token": invitation.token},
        aggregate_type="invitation",
        aggregate_id=invitation.id,
    )
    invitation.status = "sent"
    invitation.sent_at = utcnow()


async def send_pending_invitations(db: AsyncSession, agency: Agency) -> int:
    """Queue emails for the agency's pending, unexpired invitations."""
    now = utcnow()
    rows = (
        await db.execute(
            select(Invitation)
            .where(Invitation.agency_id == agency.id, Invitation.status == "pending", Invitation.expires_at > now)
            .order_by(Invitation.created_at.asc())
            .limit(INVITATION_SEND_LIMIT)
        )
    ).scalars().all()
    for inv in rows:
        send_invitation(db, agency=agency, invitation=inv)
    if rows:
        log.info("queued %d invitations agency_id=%s", len(rows), agency.id)
    return len(rows)


async def list_invitations(db: AsyncSession, agency_id: str) -> list[Invitation]:
    stmt = select(Invitation).where(Invitation.agency_id == agency_id).order_by(Invitation.created_at.desc())
    return list((await db.execute(stmt)).scalars().all())
