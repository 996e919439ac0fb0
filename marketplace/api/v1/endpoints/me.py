from fastapi import APIRouter, Depends

from marketplace.schemas.me import MeOut
from marketplace.services.auth import Actor, get_actor

router = APIRouter()


@router.get("/me", response_model=MeOut)
async def me(actor: Actor = Depends(get_actor)) -> MeOut:
    return MeOut(
        api_key_id=actor.api_key_id,
        user_id=actor.user_id,
        email=actor.email,
        role=actor.role,
        agency_id=actor.agency_id,
    )
