from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.db import get_db
from marketplace.schemas.common import IdResponse
from marketplace.schemas.developer import DevelopmentOut, LeadCreate, UnitOut
from marketplace.services import developers

router = APIRouter()


@router.get("/public/developments/{slug}", response_model=DevelopmentOut)
async def get_development(slug: str, db: AsyncSession = Depends(get_db)) -> DevelopmentOut:
    return DevelopmentOut.model_validate(await developers.get_published_development(db, slug))


@router.get("/public/developments/{slug}/units", response_model=list[UnitOut])
async def get_development_units(slug: str, db: AsyncSession = Depends(get_db)) -> list[UnitOut]:
    development = await developers.get_published_development(db, slug)
    return [UnitOut.model_validate(u) for u in await developers.list_units(db, development.id)]


@router.post("/public/developments/{slug}/leads", response_model=IdResponse, status_code=201)
async def submit_lead(slug: str, payload: LeadCreate, db: AsyncSession = Depends(get_db)) -> IdResponse:
    development = await developers.get_published_development(db, slug)
    lead = await developers.capture_lead(db, development=development, values=payload.model_dump())
    await db.commit()
    return IdResponse(id=lead.id)
