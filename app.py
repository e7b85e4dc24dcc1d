"""Catalog service entry point."""

import asyncio
import os
import signal
import subprocess
from datetime import datetime, timedelta, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from config import settings
from database.db import async_session_maker, init_db, close_db
from scheduler import tasks
from services.product_service import ProductService
from utils.cache import BoundedTtlCache
from utils.logger import logger


def build_product_cache() -> BoundedTtlCache:
    """Create the product cache from settings."""
    return BoundedTtlCache(
        capacity=settings.cache_capacity_or_none,
        default_ttl=settings.cache_default_ttl,
    )


def setup_scheduler(scheduler: AsyncIOScheduler, cache: BoundedTtlCache) -> None:
    """Register periodic jobs for the product cache."""
    scheduler.add_job(
        tasks.cleanup_product_cache,
        trigger='interval',
        minutes=settings.cache_cleanup_interval_minutes,
        args=[cache],
        id='cleanup_product_cache',
        replace_existing=True
    )

    scheduler.add_job(
        tasks.report_cache_stats,
        trigger='interval',
        minutes=settings.cache_stats_interval_minutes,
        args=[cache],
        id='report_cache_stats',
        replace_existing=True
    )

    scheduler.add_job(
        tasks.scheduler_heartbeat,
        trigger='interval',
        minutes=30,
        id='scheduler_heartbeat',
        replace_existing=True
    )


def check_heartbeat() -> None:
    """Warn when the previous run's scheduler stopped beating."""
    heartbeat_file = tasks.HEARTBEAT_FILE
    if not os.path.exists(heartbeat_file):
        return
    try:
        with open(heartbeat_file, "r") as f:
            last_beat = datetime.fromisoformat(f.read().strip())
        if datetime.now(timezone.utc) - last_beat > timedelta(minutes=60):
            logger.warning(
                f"Scheduler was stale! Last heartbeat: {last_beat.isoformat()}. "
                f"Possible scheduler outage detected."
            )
    except Exception as e:
        logger.error(f"Error reading heartbeat file: {e}")


async def on_startup(
    scheduler: AsyncIOScheduler,
    products: ProductService,
) -> None:
    logger.info("Catalog service starting...")

    try:
        result = subprocess.run(
            ["alembic", "upgrade", "head"],
            capture_output=True, text=True, timeout=60
        )
        if result.returncode == 0:
            logger.info("Alembic migrations applied successfully")
        else:
            logger.error(f"Alembic migration failed: {result.stderr}")
    except Exception as e:
        logger.error(f"Failed to run alembic migrations: {e}")

    await init_db()

    if settings.cache_warmup_size:
        await products.warm_up(settings.cache_warmup_size)

    logger.info("Setting up scheduler...")
    setup_scheduler(scheduler, products.cache)
    check_heartbeat()

    scheduler.start()
    logger.info(f"Scheduler started with {len(scheduler.get_jobs())} tasks")


async def on_shutdown(
    scheduler: AsyncIOScheduler,
    products: ProductService,
) -> None:
    logger.info("Catalog service shutting down...")

    scheduler.shutdown(wait=True)
    logger.info("Scheduler stopped")

    products.cache.clear()
    await close_db()

    logger.info("Catalog service stopped")


async def main() -> None:
    """Run the catalog service until SIGINT/SIGTERM."""
    cache = build_product_cache()
    products = ProductService(cache, async_session_maker)
    scheduler = AsyncIOScheduler()

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    await on_startup(scheduler, products)
    try:
        await stop.wait()
    finally:
        await on_shutdown(scheduler, products)


if __name__ == "__main__":
    asyncio.run(main())
