import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.db import get_db
from marketplace.core.security import generate_api_key
from marketplace.core.timeutil import utcnow
from marketplace.models.agency import Agency
from marketplace.models.api_key import ApiKey
from marketplace.models.user import User
from marketplace.schemas.user import RotateKeyOut, UserBootstrap, UserBootstrapOut
from marketplace.services.internal_admin import require_internal_admin

log = logging.getLogger(__name__)
router = APIRouter()


@router.post("/users/bootstrap", response_model=UserBootstrapOut, dependencies=[Depends(require_internal_admin)])
async def bootstrap_user(payload: UserBootstrap, db: AsyncSession = Depends(get_db)) -> UserBootstrapOut:
    """Internal-only: create a user (and optionally its agency) with a first API key."""
    agency_id = payload.agency_id
    if payload.agency_name:
        agency = Agency(name=payload.agency_name, email=payload.email, created_by="internal", updated_by="internal")
        db.add(agency)
        await db.flush()
        agency_id = agency.id
    elif agency_id:
        exists = (await db.execute(select(Agency.id).where(Agency.id == agency_id))).scalar_one_or_none()
        if not exists:
            raise HTTPException(status_code=404, detail="Agency not found")

    user = User(
        email=payload.email.lower(),
        name=payload.name,
        role=payload.role,
        agency_id=agency_id,
        created_by="internal",
        updated_by="internal",
    )
    key = generate_api_key()
    try:
        db.add(user)
        await db.flush()
        db.add(ApiKey(user_id=user.id, key_prefix=key.prefix, key_hash=key.hashed, is_active=True))
        await db.commit()
    except IntegrityError:
        await db.rollback()
        log.exception("bootstrap user failed: integrity error")
        raise HTTPException(status_code=409, detail="A user with this email already exists")

    return UserBootstrapOut(user_id=user.id, role=user.role, agency_id=agency_id, api_key=key.plain)


@router.post("/users/{user_id}/rotate-key", response_model=RotateKeyOut, dependencies=[Depends(require_internal_admin)])
async def rotate_user_key(user_id: str, db: AsyncSession = Depends(get_db)) -> RotateKeyOut:
    user = (await db.execute(select(User).where(User.id == user_id))).scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    await db.execute(
        update(ApiKey)
        .where(ApiKey.user_id == user_id, ApiKey.is_active.is_(True))
        .values(is_active=False, rotated_at=utcnow())
    )
    key = generate_api_key()
    db.add(ApiKey(user_id=user_id, key_prefix=key.prefix, key_hash=key.hashed, is_active=True))
    await db.commit()
    return RotateKeyOut(user_id=user_id, api_key=key.plain)
