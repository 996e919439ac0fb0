"""Developer subscription tiers and their limits."""
from __future__ import annotations

from datetime import timedelta

from fastapi import HTTPException
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.timeutil import as_utc, utcnow
from marketplace.models.developer import Developer, DeveloperSubscription
from marketplace.models.developer_lead import DeveloperLead
from marketplace.models.development import Development

TRIAL_DAYS = 14

# -1 means unlimited
TIER_LIMITS: dict[str, dict] = {
    "free_trial": {
        "max_developments": 1,
        "max_leads_per_month": 50,
        "max_team_members": 1,
        "analytics_retention_days": 30,
        "crm_integration_enabled": False,
        "advanced_analytics_enabled": False,
        "bond_integration_enabled": False,
    },
    "basic": {
        "max_developments": 5,
        "max_leads_per_month": 200,
        "max_team_members": 3,
        "analytics_retention_days": 90,
        "crm_integration_enabled": False,
        "advanced_analytics_enabled": True,
        "bond_integration_enabled": False,
    },
    "premium": {
        "max_developments": -1,
        "max_leads_per_month": -1,
        "max_team_members": 10,
        "analytics_retention_days": 365,
        "crm_integration_enabled": True,
        "advanced_analytics_enabled": True,
        "bond_integration_enabled": True,
    },
}

LIMIT_KEYS = {
    "developments": "max_developments",
    "leads": "max_leads_per_month",
}


async def get_or_create_subscription(db: AsyncSession, developer: Developer) -> DeveloperSubscription:
    sub = (
        await db.execute(select(DeveloperSubscription).where(DeveloperSubscription.developer_id == developer.id))
    ).scalar_one_or_none()
    if sub is not None:
        return sub

    now = utcnow()
    sub = DeveloperSubscription(
        developer_id=developer.id,
        tier="free_trial",
        status="active",
        trial_ends_at=now + timedelta(days=TRIAL_DAYS),
        current_period_start=now,
        current_period_end=now + timedelta(days=TRIAL_DAYS),
        created_by=developer.user_id,
        updated_by=developer.user_id,
    )
    db.add(sub)
    await db.flush()
    return sub


def trial_days_remaining(sub: DeveloperSubscription) -> int:
    if sub.tier != "free_trial" or sub.trial_ends_at is None:
        return 0
    remaining = as_utc(sub.trial_ends_at) - utcnow()
    return max(0, remaining.days + (1 if remaining.seconds else 0))


async def current_usage(db: AsyncSession, developer_id: str) -> dict[str, int]:
    developments = (
        await db.execute(select(func.count()).select_from(Development).where(Development.developer_id == developer_id))
    ).scalar_one()
    month_start = utcnow().replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    leads = (
        await db.execute(
            select(func.count()).select_from(DeveloperLead).where(
                DeveloperLead.developer_id == developer_id, DeveloperLead.created_at >= month_start
            )
        )
    ).scalar_one()
    return {"developments": int(developments), "leads": int(leads)}


async def check_limit(db: AsyncSession, developer: Developer, limit_type: str) -> dict:
    sub = await get_or_create_subscription(db, developer)
    if sub.tier == "free_trial" and trial_days_remaining(sub) == 0:
        sub.status = "expired"
    maximum = TIER_LIMITS[sub.tier][LIMIT_KEYS[limit_type]]
    current = (await current_usage(db, developer.id))[limit_type]
    allowed = sub.status == "active" and (maximum < 0 or current < maximum)
    return {"allowed": allowed, "current": current, "max": maximum, "tier": sub.tier, "status": sub.status}


async def enforce_limit(db: AsyncSession, developer: Developer, limit_type: str) -> None:
    res = await check_limit(db, developer, limit_type)
    if res["status"] != "active":
        raise HTTPException(status_code=402, detail=f"Subscription is {res['status']}")
    if not res["allowed"]:
        raise HTTPException(
            status_code=403,
            detail=f"Your {res['tier']} plan allows {res['max']} {limit_type}; upgrade to add more",
        )
