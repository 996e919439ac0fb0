import pytest_asyncio

from marketplace.core.ids import gen_id
from marketplace.core.security import generate_api_key
from marketplace.models.agency import Agency
from marketplace.models.api_key import ApiKey
from marketplace.models.brand_profile import BrandProfile
from marketplace.models.developer import Developer
from marketplace.models.plan import Plan
from marketplace.models.user import User


async def create_user(db_session, *, role: str, agency_id: str | None = None, email: str | None = None) -> dict:
    user = User(
        email=email or f"{gen_id('u')[-8:]}@test.com",
        name=f"{role} test",
        role=role,
        agency_id=agency_id,
        created_by="test",
        updated_by="test",
    )
    db_session.add(user)
    await db_session.flush()

    key = generate_api_key()
    key_row = ApiKey(user_id=user.id, key_prefix=key.prefix, key_hash=key.hashed, is_active=True)
    db_session.add(key_row)
    await db_session.flush()

    return {
        "user_id": user.id,
        "email": user.email,
        "role": role,
        "agency_id": agency_id,
        "api_key": key.plain,
        "api_key_id": key_row.id,
        "headers": {"X-API-Key": key.plain},
    }


@pytest_asyncio.fixture
async def seed_agent(db_session):
    agent = await create_user(db_session, role="agent")
    await db_session.commit()
    return agent


@pytest_asyncio.fixture
async def seed_super_admin(db_session):
    admin = await create_user(db_session, role="super_admin")
    await db_session.commit()
    return admin


@pytest_asyncio.fixture
async def seed_agency_admin(db_session):
    agency = Agency(name="Cape Realty", email="billing@caperealty.test", created_by="test", updated_by="test")
    db_session.add(agency)
    await db_session.flush()
    admin = await create_user(db_session, role="agency_admin", agency_id=agency.id, email="owner@caperealty.test")
    await db_session.commit()
    return {**admin, "agency_id": agency.id}


@pytest_asyncio.fixture
async def seed_plan(db_session):
    plan = Plan(
        name="professional",
        display_name="Professional",
        price=149900,
        stripe_price_id="price_pro_monthly",
        features=["100 active listings"],
        limits={"listings": 100},
        created_by="test",
        updated_by="test",
    )
    db_session.add(plan)
    await db_session.commit()
    return plan


@pytest_asyncio.fixture
async def seed_developer(db_session):
    """A property developer with an approved profile."""
    user = await create_user(db_session, role="property_developer")
    dev = Developer(
        user_id=user["user_id"],
        company_name="Skyline Homes",
        email=user["email"],
        status="approved",
        created_by="test",
        updated_by="test",
    )
    db_session.add(dev)
    await db_session.commit()
    return {**user, "developer_id": dev.id}


@pytest_asyncio.fixture
async def seed_brand(db_session):
    brand = BrandProfile(
        brand_name="Coastal Living Properties",
        slug="coastal-living-properties",
        identity_type="hybrid",
        brand_tier="regional",
        owner_type="platform",
        created_by="test",
        updated_by="test",
    )
    db_session.add(brand)
    await db_session.commit()
    return brand
