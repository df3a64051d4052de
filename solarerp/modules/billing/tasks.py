"""Celery tasks for billing usage roll-ups."""

from __future__ import annotations

import asyncio
import logging
from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from celery_app import celery
from solarerp.config import settings
from solarerp.database.tls import build_tls_connect_args
from solarerp.modules.billing.usage_service import UsageService, yesterday

logger = logging.getLogger(__name__)


# ── Async implementations ────────────────────────────────────────────────────


async def _aggregate_active_users_async(day: date) -> int:
    """Run one roll-up on a throwaway engine bound to this task's event loop."""
    if not settings.registry_configured:
        logger.info("Registry not configured, skipping active-user aggregation")
        return 0

    registry_engine = create_async_engine(
        settings.tenant_registry_db_url,
        poolclass=NullPool,
        connect_args=build_tls_connect_args(settings.is_production),
    )
    session_factory = async_sessionmaker(registry_engine, class_=AsyncSession, expire_on_commit=False)
    try:
        async with session_factory() as session:
            try:
                updated = await UsageService(session).aggregate_active_users_for_date(day)
                await session.commit()
                return updated
            except Exception:
                await session.rollback()
                logger.exception("Failed to aggregate active users for %s", day.isoformat())
                raise
    finally:
        await registry_engine.dispose()


# ── Celery task definitions ──────────────────────────────────────────────────


@celery.task(
    name="solarerp.modules.billing.tasks.aggregate_active_users",
    bind=True,
    max_retries=3,
)
def aggregate_active_users(self, day: str | None = None) -> int:
    """Daily: roll yesterday's distinct users into ``customer_usage_daily``."""
    target = date.fromisoformat(day) if day else yesterday()
    try:
        return asyncio.run(_aggregate_active_users_async(target))
    except Exception as exc:
        logger.exception("aggregate_active_users failed for %s", target.isoformat())
        raise self.retry(exc=exc, countdown=300)
