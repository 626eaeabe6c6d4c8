import asyncio
import logging

from storefront.config import settings
from storefront.services.store import AuctionStore

logger = logging.getLogger(__name__)


async def run_countdown_ticker(store: AuctionStore, interval: float = settings.TICK_INTERVAL_SECONDS):
    """Background task that advances the store's local countdowns once per interval."""
    logger.info(f"[Ticker] Started ({interval}s interval)")
    while True:
        await asyncio.sleep(interval)
        try:
            store.tick()
        except Exception as e:
            logger.error(f"[Ticker] Tick failed: {e}")
