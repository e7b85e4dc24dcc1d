"""Scheduler tasks: product cache cleanup, cache stats, heartbeat."""

import os
from datetime import datetime, timezone

from config import settings
from utils.cache import BoundedTtlCache
from utils.logger import logger

HEARTBEAT_FILE = os.path.join(settings.log_dir, "scheduler_heartbeat")


async def cleanup_product_cache(cache: BoundedTtlCache) -> int:
    """
    Purge expired product cache entries.

    Lazy expiry on get() only removes entries that are read again; this job
    drops the ones nobody asks for anymore. Runs every
    CACHE_CLEANUP_INTERVAL_MINUTES.
    """
    try:
        return cache.cleanup()
    except Exception as e:
        logger.error(f"Error in cleanup_product_cache: {e}", exc_info=True)
        return 0


async def report_cache_stats(cache: BoundedTtlCache) -> None:
    """Log product cache size and LRU/MRU keys."""
    try:
        stats = cache.get_stats()
        capacity = stats.capacity if stats.capacity is not None else "unbounded"
        logger.info(
            f"Product cache stats: size={stats.size}/{capacity}, "
            f"oldest={stats.oldest_key}, newest={stats.newest_key}"
        )
    except Exception as e:
        logger.error(f"Error in report_cache_stats: {e}", exc_info=True)


async def scheduler_heartbeat() -> None:
    """Write the current UTC time to the heartbeat file."""
    try:
        os.makedirs(os.path.dirname(HEARTBEAT_FILE), exist_ok=True)
        with open(HEARTBEAT_FILE, "w") as f:
            f.write(datetime.now(timezone.utc).isoformat())
        logger.debug("Scheduler heartbeat written")
    except Exception as e:
        logger.error(f"Error in scheduler_heartbeat: {e}", exc_info=True)
