from dataclasses import dataclass
from fastapi import Depends, HTTPException, Security
from fastapi.security.api_key import APIKeyHeader
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.db import get_db
from marketplace.core.security import hash_api_key
from marketplace.models.api_key import ApiKey
from marketplace.models.user import User

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

ROLES = ("user", "agent", "agency_admin", "property_developer", "super_admin")


@dataclass(frozen=True)
class Actor:
    api_key_id: str
    user_id: str
    role: str  # one of ROLES
    agency_id: str | None
    email: str

    @property
    def is_super_admin(self) -> bool:
        return self.role == "super_admin"


async def get_actor(
    api_key: str | None = Security(api_key_header),
    db: AsyncSession = Depends(get_db),
) -> Actor:
    if not api_key:
        raise HTTPException(status_code=401, detail="Missing X-API-Key")

    hashed = hash_api_key(api_key)
    stmt = (
        select(ApiKey, User)
        .join(User, User.id == ApiKey.user_id)
        .where(ApiKey.key_hash == hashed, ApiKey.is_active.is_(True), User.is_active.is_(True))
    )
    row = (await db.execute(stmt)).one_or_none()
    if not row:
        raise HTTPException(status_code=401, detail="Invalid API key")

    key, user = row
    return Actor(
        api_key_id=key.id,
        user_id=user.id,
        role=user.role,
        agency_id=user.agency_id,
        email=user.email,
    )


def require_super_admin(actor: Actor = Depends(get_actor)) -> Actor:
    if not actor.is_super_admin:
        raise HTTPException(status_code=403, detail="Super admin role required")
    return actor


def require_agency_admin(actor: Actor = Depends(get_actor)) -> Actor:
    if actor.role not in ("agency_admin", "super_admin"):
        raise HTTPException(status_code=403, detail="Agency admin role required")
    if not actor.agency_id:
        raise HTTPException(status_code=403, detail="Agency membership required")
    return actor


def require_developer(actor: Actor = Depends(get_actor)) -> Actor:
    if actor.role not in ("property_developer", "super_admin"):
        raise HTTPException(status_code=403, detail="Property developer role required")
    return actor
