from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.db import get_db
from marketplace.schemas.common import OkResponse
from marketplace.schemas.developer import (
    ActivityOut,
    DeveloperOut,
    DeveloperRegister,
    DeveloperSubscriptionOut,
    DevelopmentCreate,
    DevelopmentOut,
    KpisOut,
    LeadOut,
    LeadStatusUpdate,
    SubscriptionLimitsOut,
    UnitCreate,
    UnitOut,
    UnitUpdate,
)
from marketplace.services import developers
from marketplace.services.activity import get_activity_feed
from marketplace.services.auth import Actor, require_developer
from marketplace.services.kpis import get_dashboard_kpis
from marketplace.services.subscriptions import (
    TIER_LIMITS,
    current_usage,
    get_or_create_subscription,
    trial_days_remaining,
)

router = APIRouter(prefix="/developer")


@router.post("/profile", response_model=DeveloperOut, status_code=201)
async def register_profile(
    payload: DeveloperRegister,
    actor: Actor = Depends(require_developer),
    db: AsyncSession = Depends(get_db),
) -> DeveloperOut:
    dev = await developers.register_developer(
        db, actor=actor, company_name=payload.company_name, email=payload.email, phone=payload.phone
    )
    await get_or_create_subscription(db, dev)
    await db.commit()
    return DeveloperOut.model_validate(dev)


@router.get("/profile", response_model=DeveloperOut)
async def get_profile(actor: Actor = Depends(require_developer), db: AsyncSession = Depends(get_db)) -> DeveloperOut:
    return DeveloperOut.model_validate(await developers.get_developer_for_actor(db, actor))


@router.get("/developments", response_model=list[DevelopmentOut])
async def list_developments(actor: Actor = Depends(require_developer), db: AsyncSession = Depends(get_db)) -> list[DevelopmentOut]:
    dev = await developers.get_developer_for_actor(db, actor)
    return [DevelopmentOut.model_validate(d) for d in await developers.list_developments(db, dev.id)]


@router.post("/developments", response_model=DevelopmentOut, status_code=201)
async def create_development(
    payload: DevelopmentCreate,
    actor: Actor = Depends(require_developer),
    db: AsyncSession = Depends(get_db),
) -> DevelopmentOut:
    if payload.price_from is not None and payload.price_to is not None and payload.price_from > payload.price_to:
        raise HTTPException(status_code=422, detail="price_from cannot exceed price_to")
    dev = await developers.get_developer_for_actor(db, actor)
    row = await developers.create_development(db, developer=dev, actor=actor, values=payload.model_dump())
    await db.commit()
    return DevelopmentOut.model_validate(row)


@router.delete("/developments/{development_id}", response_model=OkResponse)
async def delete_development(
    development_id: str,
    actor: Actor = Depends(require_developer),
    db: AsyncSession = Depends(get_db),
) -> OkResponse:
    dev = await developers.get_developer_for_actor(db, actor)
    await developers.delete_development(db, developer=dev, actor=actor, development_id=development_id)
    await db.commit()
    return OkResponse()


@router.post("/developments/{development_id}/publish", response_model=DevelopmentOut)
async def publish_development(
    development_id: str,
    actor: Actor = Depends(require_developer),
    db: AsyncSession = Depends(get_db),
) -> DevelopmentOut:
    dev = await developers.get_developer_for_actor(db, actor)
    row = await developers.publish_development(db, developer=dev, development_id=development_id, actor=actor)
    await db.commit()
    return DevelopmentOut.model_validate(row)


@router.get("/developments/{development_id}/units", response_model=list[UnitOut])
async def list_units(
    development_id: str,
    actor: Actor = Depends(require_developer),
    db: AsyncSession = Depends(get_db),
) -> list[UnitOut]:
    dev = await developers.get_developer_for_actor(db, actor)
    development = await developers.get_owned_development(db, dev, development_id)
    return [UnitOut.model_validate(u) for u in await developers.list_units(db, development.id)]


@router.post("/developments/{development_id}/units", response_model=UnitOut, status_code=201)
async def add_unit(
    development_id: str,
    payload: UnitCreate,
    actor: Actor = Depends(require_developer),
    db: AsyncSession = Depends(get_db),
) -> UnitOut:
    dev = await developers.get_developer_for_actor(db, actor)
    development = await developers.get_owned_development(db, dev, development_id)
    unit = await developers.add_unit(db, development=development, actor=actor, values=payload.model_dump())
    await db.commit()
    return UnitOut.model_validate(unit)


@router.patch("/developments/{development_id}/units/{unit_id}", response_model=UnitOut)
async def update_unit(
    development_id: str,
    unit_id: str,
    payload: UnitUpdate,
    actor: Actor = Depends(require_developer),
    db: AsyncSession = Depends(get_db),
) -> UnitOut:
    dev = await developers.get_developer_for_actor(db, actor)
    development = await developers.get_owned_development(db, dev, development_id)
    unit = await developers.update_unit(
        db,
        developer=dev,
        development=development,
        unit_id=unit_id,
        actor=actor,
        status=payload.status,
        price=payload.price,
    )
    await db.commit()
    return UnitOut.model_validate(unit)


@router.get("/leads", response_model=list[LeadOut])
async def list_leads(
    status: str | None = None,
    actor: Actor = Depends(require_developer),
    db: AsyncSession = Depends(get_db),
) -> list[LeadOut]:
    dev = await developers.get_developer_for_actor(db, actor)
    return [LeadOut.model_validate(lead) for lead in await developers.list_leads(db, dev.id, status=status)]


@router.patch("/leads/{lead_id}", response_model=LeadOut)
async def update_lead_status(
    lead_id: str,
    payload: LeadStatusUpdate,
    actor: Actor = Depends(require_developer),
    db: AsyncSession = Depends(get_db),
) -> LeadOut:
    dev = await developers.get_developer_for_actor(db, actor)
    lead = await developers.update_lead_status(db, developer=dev, lead_id=lead_id, status=payload.status, actor=actor)
    await db.commit()
    return LeadOut.model_validate(lead)


@router.get("/subscription", response_model=DeveloperSubscriptionOut)
async def get_subscription(
    actor: Actor = Depends(require_developer),
    db: AsyncSession = Depends(get_db),
) -> DeveloperSubscriptionOut:
    dev = await developers.get_developer_for_actor(db, actor)
    sub = await get_or_create_subscription(db, dev)
    usage = await current_usage(db, dev.id)
    await db.commit()
    return DeveloperSubscriptionOut(
        tier=sub.tier,
        status=sub.status,
        trial_ends_at=sub.trial_ends_at,
        trial_days_remaining=trial_days_remaining(sub),
        current_period_end=sub.current_period_end,
        limits=SubscriptionLimitsOut(**TIER_LIMITS[sub.tier]),
        usage=usage,
    )


@router.get("/kpis", response_model=KpisOut)
async def get_kpis(
    time_range: Literal["7d", "30d", "90d"] = Query(default="30d", alias="range"),
    force_refresh: bool = False,
    actor: Actor = Depends(require_developer),
    db: AsyncSession = Depends(get_db),
) -> KpisOut:
    dev = await developers.get_developer_for_actor(db, actor)
    kpis = await get_dashboard_kpis(db, dev, time_range, force_refresh=force_refresh)
    await db.commit()
    return KpisOut(**kpis)


@router.get("/activity", response_model=list[ActivityOut])
async def activity_feed(
    limit: int = Query(default=20, ge=1, le=100),
    actor: Actor = Depends(require_developer),
    db: AsyncSession = Depends(get_db),
) -> list[ActivityOut]:
    dev = await developers.get_developer_for_actor(db, actor)
    return [ActivityOut.model_validate(a) for a in await get_activity_feed(db, developer_id=dev.id, limit=limit)]
