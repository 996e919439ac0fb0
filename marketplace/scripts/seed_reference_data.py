import asyncio
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from marketplace.core.config import settings
from marketplace.core.ids import slugify
from marketplace.core.logging import configure_logging
from marketplace.models.brand_profile import BrandProfile
from marketplace.models.plan import Plan

log = logging.getLogger(__name__)

# prices in cents (ZAR); stripe_price_id is set later from the admin billing API
PLANS = [
    {
        "name": "basic",
        "display_name": "Basic",
        "description": "For solo agents getting started.",
        "price": 49900,
        "features": ["10 active listings", "Email support"],
        "limits": {"listings": 10, "agents": 1},
        "sort_order": 1,
    },
    {
        "name": "professional",
        "display_name": "Professional",
        "description": "For growing agencies.",
        "price": 149900,
        "features": ["100 active listings", "Team invitations", "Priority review"],
        "limits": {"listings": 100, "agents": 10},
        "is_popular": True,
        "sort_order": 2,
    },
    {
        "name": "enterprise",
        "display_name": "Enterprise",
        "description": "Unlimited listings for large networks.",
        "price": 499900,
        "features": ["Unlimited listings", "Unlimited agents", "Dedicated support"],
        "limits": {"listings": -1, "agents": -1},
        "sort_order": 3,
    },
]

PLATFORM_BRANDS = [
    {"brand_name": "Skyline Developments", "identity_type": "developer", "brand_tier": "national",
     "headquarters": "Johannesburg, Gauteng"},
    {"brand_name": "Coastal Living Properties", "identity_type": "hybrid", "brand_tier": "regional",
     "headquarters": "Durban, KwaZulu-Natal"},
    {"brand_name": "Winelands Estates", "identity_type": "agency", "brand_tier": "boutique",
     "headquarters": "Stellenbosch, Western Cape"},
]


async def seed_reference_data(db: AsyncSession) -> dict[str, int]:
    """Insert missing plans and platform brands. Existing rows are left untouched."""
    plans = 0
    for values in PLANS:
        exists = (await db.execute(select(Plan.id).where(Plan.name == values["name"]))).scalar_one_or_none()
        if not exists:
            db.add(Plan(created_by="seed", updated_by="seed", **values))
            plans += 1

    brands = 0
    for values in PLATFORM_BRANDS:
        slug = slugify(values["brand_name"])
        exists = (await db.execute(select(BrandProfile.id).where(BrandProfile.slug == slug))).scalar_one_or_none()
        if not exists:
            db.add(BrandProfile(slug=slug, owner_type="platform", created_by="seed", updated_by="seed", **values))
            brands += 1

    await db.flush()
    return {"plans": plans, "brands": brands}


async def main():
    configure_logging()
    engine = create_async_engine(settings.database_url, pool_pre_ping=True)
    Session = async_sessionmaker(engine, expire_on_commit=False)

    async with Session() as db:
        inserted = await seed_reference_data(db)
        await db.commit()
        log.info("seeded %d plans, %d brands", inserted["plans"], inserted["brands"])

    await engine.dispose()

if __name__ == "__main__":
    asyncio.run(main())
