from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.db import get_db
from marketplace.schemas.brand import (
    BrandCreate,
    BrandEntitiesOut,
    BrandOut,
    BrandStatsOut,
    CleanupOut,
    EmulationContextOut,
    SeedDevelopment,
    SeedLead,
    SeedListing,
    SeedResultOut,
)
from marketplace.schemas.developer import DevelopmentOut, LeadOut
from marketplace.schemas.listing import ListingOut
from marketplace.services import brand_emulator
from marketplace.services.auth import Actor, require_super_admin

router = APIRouter(prefix="/admin/brands")

# headline amount lands in the field the wizard reads for that action
PRICE_FIELDS = {"sell": "asking_price", "rent": "monthly_rent", "auction": "starting_bid"}


@router.get("", response_model=list[BrandOut])
async def list_brands(
    search: str | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    actor: Actor = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
) -> list[BrandOut]:
    return [BrandOut.model_validate(b) for b in await brand_emulator.list_platform_brands(db, search=search, limit=limit)]


@router.post("", response_model=BrandOut, status_code=201)
async def create_brand(
    payload: BrandCreate,
    actor: Actor = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
) -> BrandOut:
    brand = await brand_emulator.create_brand(db, actor=actor, values=payload.model_dump())
    await db.commit()
    return BrandOut.model_validate(brand)


@router.get("/{brand_id}", response_model=BrandOut)
async def get_brand_context(
    brand_id: str,
    actor: Actor = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
) -> BrandOut:
    return BrandOut.model_validate(await brand_emulator.get_brand_context(db, brand_id))


@router.post("/{brand_id}/switch", response_model=EmulationContextOut)
async def switch_to_brand(
    brand_id: str,
    actor: Actor = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
) -> EmulationContextOut:
    ctx = await brand_emulator.switch_to_brand(db, actor=actor, brand_profile_id=brand_id)
    await db.commit()
    return EmulationContextOut(**ctx)


@router.post("/{brand_id}/developments", response_model=SeedResultOut, status_code=201)
async def seed_development(
    brand_id: str,
    payload: SeedDevelopment,
    actor: Actor = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
) -> SeedResultOut:
    values = payload.model_dump(exclude={"units"})
    units = [u.model_dump() for u in payload.units]
    result = await brand_emulator.seed_development(db, actor=actor, brand_profile_id=brand_id, values=values, units=units)
    await db.commit()
    return SeedResultOut(**result)


@router.post("/{brand_id}/listings", response_model=SeedResultOut, status_code=201)
async def seed_listing(
    brand_id: str,
    payload: SeedListing,
    actor: Actor = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
) -> SeedResultOut:
    values = payload.model_dump(exclude={"media_urls"})
    values["pricing"] = {"action": payload.action, PRICE_FIELDS[payload.action]: payload.price}
    result = await brand_emulator.seed_listing(
        db, actor=actor, brand_profile_id=brand_id, values=values, media_urls=payload.media_urls
    )
    await db.commit()
    return SeedResultOut(**result)


@router.post("/{brand_id}/leads", response_model=SeedResultOut, status_code=201)
async def generate_lead(
    brand_id: str,
    payload: SeedLead,
    actor: Actor = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
) -> SeedResultOut:
    result = await brand_emulator.generate_lead(db, actor=actor, brand_profile_id=brand_id, values=payload.model_dump())
    await db.commit()
    return SeedResultOut(**result)


@router.get("/{brand_id}/entities", response_model=BrandEntitiesOut)
async def brand_entities(
    brand_id: str,
    actor: Actor = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
) -> BrandEntitiesOut:
    res = await brand_emulator.get_brand_entities(db, brand_id)
    return BrandEntitiesOut(
        developments=[DevelopmentOut.model_validate(d) for d in res["developments"]],
        listings=[ListingOut.model_validate(item) for item in res["listings"]],
        leads=[LeadOut.model_validate(lead) for lead in res["leads"]],
        total_entities=res["total_entities"],
    )


@router.get("/{brand_id}/stats", response_model=BrandStatsOut)
async def brand_stats(
    brand_id: str,
    actor: Actor = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
) -> BrandStatsOut:
    return BrandStatsOut(**await brand_emulator.get_brand_stats(db, brand_id))


@router.delete("/{brand_id}/entities", response_model=CleanupOut)
async def cleanup_brand(
    brand_id: str,
    actor: Actor = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
) -> CleanupOut:
    result = await brand_emulator.cleanup_brand_entities(db, actor=actor, brand_profile_id=brand_id)
    await db.commit()
    return CleanupOut(**result)
