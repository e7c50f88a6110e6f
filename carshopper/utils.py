# carshopper/utils.py
"""Shared utilities: the service logger and timeout wrapping for async fetches."""
import os
import asyncio
import logging
from dotenv import load_dotenv

load_dotenv()

# per-fetch timeout for search, scoreboard and exclusion lookups
SEARCH_TIMEOUT_SECONDS = float(os.getenv("SEARCH_TIMEOUT_SECONDS", "12"))

def get_logger(name=__name__):
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
        level=getattr(logging, level, logging.INFO)
    )
    return logging.getLogger(name)

logger = get_logger("carshopper")

async def with_timeout(coro, label: str, seconds: float | None = None):
    """Await `coro`, raising asyncio.TimeoutError tagged with `label` when it runs too long."""
    limit = SEARCH_TIMEOUT_SECONDS if seconds is None else seconds
    try:
        return await asyncio.wait_for(coro, timeout=limit)
    except asyncio.TimeoutError:
        logger.warning("%s timed out after %ss", label, limit)
        raise
