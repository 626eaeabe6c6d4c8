import json
import logging
import math
import time
from typing import Any, Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront.db import crud
from storefront.db.database import async_session

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "access_token"
REFRESH_TOKEN_KEY = "refresh_token"
JOINED_AUCTIONS_KEY = "joined_auctions"
USER_BIDS_KEY = "user_bids"
USER_COINS_KEY = "user_coins"
TIMER_PREFIX = "auction_"
WINNER_SHOWN_PREFIX = "winner_announcement_shown_"

SESSION_KEYS = [ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, USER_COINS_KEY, JOINED_AUCTIONS_KEY, USER_BIDS_KEY]


def _timer_key(auction_id: str) -> str:
    return f"{TIMER_PREFIX}{auction_id}_timer"


def _timestamp_key(auction_id: str) -> str:
    return f"{TIMER_PREFIX}{auction_id}_timestamp"


class LocalStorage:
    """Key-value store standing in for the device's persistent storage."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = async_session,
        clock: Callable[[], float] = time.time,
    ):
        self._session_factory = session_factory
        self._clock = clock

    async def get(self, key: str) -> str | None:
        async with self._session_factory() as db:
            return await crud.get_value(db, key)

    async def set_value(self, key: str, value: str):
        async with self._session_factory() as db:
            await crud.set_value(db, key, value)

    async def remove(self, *keys: str):
        async with self._session_factory() as db:
            await crud.delete_values(db, list(keys))

    async def get_json(self, key: str, default: Any = None) -> Any:
        raw = await self.get(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"[Storage] Discarding unreadable value for {key}")
            return default

    async def set_json(self, key: str, value: Any):
        await self.set_value(key, json.dumps(value))

    # --- Participation ---

    async def load_joined_auctions(self) -> set[str]:
        return {str(i) for i in await self.get_json(JOINED_AUCTIONS_KEY, [])}

    async def save_joined_auctions(self, auction_ids: set[str]):
        await self.set_json(JOINED_AUCTIONS_KEY, sorted(auction_ids))

    async def load_user_bids(self) -> dict[str, int]:
        return {str(k): v for k, v in (await self.get_json(USER_BIDS_KEY, {})).items()}

    async def save_user_bids(self, bids: dict[str, int]):
        await self.set_json(USER_BIDS_KEY, bids)

    # --- Timer snapshots ---

    async def save_timer(self, auction_id: str, remaining: int):
        await self.set_value(_timer_key(auction_id), str(remaining))
        await self.set_value(_timestamp_key(auction_id), repr(self._clock()))

    async def resume_timer(self, auction_id: str, fallback: int) -> int:
        """Remaining seconds from the stored snapshot, or `fallback` without one."""
        saved = await self.get(_timer_key(auction_id))
        captured_at = await self.get(_timestamp_key(auction_id))
        if saved is None or captured_at is None:
            return fallback
        try:
            elapsed = math.floor(self._clock() - float(captured_at))
            return max(0, int(saved) - elapsed)
        except ValueError:
            return fallback

    async def clear_timer(self, auction_id: str):
        await self.remove(_timer_key(auction_id), _timestamp_key(auction_id))

    # --- Winner announcement ---

    async def winner_announced(self, auction_id: str) -> bool:
        return await self.get(f"{WINNER_SHOWN_PREFIX}{auction_id}") == "true"

    async def mark_winner_announced(self, auction_id: str):
        await self.set_value(f"{WINNER_SHOWN_PREFIX}{auction_id}", "true")

    async def clear_session(self):
        async with self._session_factory() as db:
            await crud.delete_values(db, SESSION_KEYS)
            cleared = await crud.delete_prefixed(db, TIMER_PREFIX)
        logger.debug(f"[Storage] Session cleared ({cleared} timer keys)")
