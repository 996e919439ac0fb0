"""
Developer dashboard KPIs.

Each range is compared with the period of the same length right before it.
Results are cached per range on the developer row.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.config import settings
from marketplace.core.timeutil import as_utc, utcnow
from marketplace.models.developer import Developer
from marketplace.models.developer_lead import QUALIFIED_LEAD_STATUSES, DeveloperLead
from marketplace.models.development import Development, DevelopmentUnit

log = logging.getLogger(__name__)

TIME_RANGES = {"7d": 7, "30d": 30, "90d": 90}
AFFORDABILITY_MATCH_THRESHOLD = 80.0


def _pct(part: float, whole: float) -> float:
    return round(part / whole * 100, 1) if whole else 0.0


def trend(current: float, previous: float) -> float:
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return round((current - previous) / previous * 100, 1)


async def _lead_stats(db: AsyncSession, developer_id: str, start: datetime, end: datetime) -> dict:
    total, qualified, converted, matched = (
        await db.execute(
            select(
                func.count(DeveloperLead.id),
                func.coalesce(func.sum(case((DeveloperLead.status.in_(QUALIFIED_LEAD_STATUSES), 1), else_=0)), 0),
                func.coalesce(func.sum(case((DeveloperLead.status == "converted", 1), else_=0)), 0),
                func.coalesce(
                    func.sum(case((DeveloperLead.affordability_match >= AFFORDABILITY_MATCH_THRESHOLD, 1), else_=0)), 0
                ),
            ).where(
                DeveloperLead.developer_id == developer_id,
                DeveloperLead.created_at >= start,
                DeveloperLead.created_at < end,
            )
        )
    ).one()
    return {
        "total_leads": int(total),
        "qualified_leads": int(qualified),
        "converted_leads": int(converted),
        "affordability_matched": int(matched),
    }


async def _units_sold(db: AsyncSession, developer_id: str, start: datetime, end: datetime) -> int:
    return int((
        await db.execute(
            select(func.count(DevelopmentUnit.id))
            .join(Development, Development.id == DevelopmentUnit.development_id)
            .where(
                Development.developer_id == developer_id,
                DevelopmentUnit.status == "sold",
                DevelopmentUnit.sold_at >= start,
                DevelopmentUnit.sold_at < end,
            )
        )
    ).scalar_one())


async def _units_available(db: AsyncSession, developer_id: str) -> int:
    return int((
        await db.execute(
            select(func.count(DevelopmentUnit.id))
            .join(Development, Development.id == DevelopmentUnit.development_id)
            .where(Development.developer_id == developer_id, DevelopmentUnit.status == "available")
        )
    ).scalar_one())


def _derived(stats: dict, units_sold: int) -> dict:
    conversion = _pct(stats["converted_leads"], stats["total_leads"])
    qualified_rate = _pct(stats["qualified_leads"], stats["total_leads"])
    return {
        "total_leads": stats["total_leads"],
        "qualified_leads": stats["qualified_leads"],
        "conversion_rate": conversion,
        "units_sold": units_sold,
        "affordability_match_percent": _pct(stats["affordability_matched"], stats["total_leads"]),
        "marketing_performance_score": round(0.5 * conversion + 0.5 * qualified_rate, 1),
    }


async def calculate_kpis(db: AsyncSession, developer_id: str, time_range: str = "30d", *, now: datetime | None = None) -> dict:
    days = TIME_RANGES[time_range]
    end = now or utcnow()
    start = end - timedelta(days=days)
    prev_start = start - timedelta(days=days)

    current = _derived(await _lead_stats(db, developer_id, start, end), await _units_sold(db, developer_id, start, end))
    previous = _derived(
        await _lead_stats(db, developer_id, prev_start, start), await _units_sold(db, developer_id, prev_start, start)
    )

    return {
        **current,
        "units_available": await _units_available(db, developer_id),
        "time_range": time_range,
        "trends": {key: trend(current[key], previous[key]) for key in current},
    }


async def get_dashboard_kpis(
    db: AsyncSession, developer: Developer, time_range: str = "30d", *, force_refresh: bool = False
) -> dict:
    """Cached KPIs; recalculated when stale or when forced."""
    now = utcnow()
    cached = (developer.kpi_cache or {}).get(time_range)
    if cached and not force_refresh:
        calculated_at = as_utc(datetime.fromisoformat(cached["calculated_at"]))
        if (now - calculated_at).total_seconds() < settings.kpi_cache_ttl_seconds:
            return {**cached["kpis"], "cached": True, "calculated_at": cached["calculated_at"]}

    kpis = await calculate_kpis(db, developer.id, time_range, now=now)
    # replace the dict so the JSON column is flagged dirty
    developer.kpi_cache = {**(developer.kpi_cache or {}), time_range: {"calculated_at": now.isoformat(), "kpis": kpis}}
    developer.last_kpi_calculation = now
    await db.flush()
    log.info("kpis recalculated developer_id=%s range=%s", developer.id, time_range)
    return {**kpis, "cached": False, "calculated_at": now.isoformat()}
