import logging
import unittest
from logging import Logger
from unittest.mock import AsyncMock

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront.clients.api import ApiClient
from storefront.db.database import init_db, make_engine
from storefront.schemas.auction import Auction, LIVE
from storefront.schemas.envelope import ApiResponse
from storefront.services.local_storage import LocalStorage
from storefront.services.store import AuctionStore

logging.basicConfig(
    level=logging.DEBUG,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

USER = {
    "id": "u-1",
    "email": "ann@example.com",
    "name": "Ann Able",
    "wallet_balance": "500.00",
}
TOKENS = {"access_token": "access-1", "refresh_token": "refresh-1", "expires_in": 3600}


def ok(data=None) -> ApiResponse:
    return ApiResponse(success=True, data=data)


def failed(error: str | None = None) -> ApiResponse:
    return ApiResponse(success=False, error=error)


def live_auction(auction_id: str = "a1", current_bid: int = 45, **fields) -> Auction:
    data = {
        "id": auction_id,
        "title": f"Auction {auction_id}",
        "current_bid": current_bid,
        "market_price": 3750,
        "time_left": 1200,
        "entry_fee": 20,
        "status": LIVE,
    }
    data.update(fields)
    return Auction.model_validate(data)


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


def mock_api() -> AsyncMock:
    """An ApiClient double that behaves like a logged-out client with no backend."""
    api = AsyncMock(spec=ApiClient)
    api.load_token.return_value = None
    api.set_token.return_value = None
    api.login.return_value = ok({"user": USER, "tokens": TOKENS})
    api.register.return_value = ok({"user": USER, "tokens": TOKENS})
    api.get_current_user.return_value = ok(USER)
    api.logout.return_value = ok()
    api.get_auctions.return_value = failed("offline")
    api.get_auction.return_value = failed("Auction not found")
    api.get_auction_bids.return_value = ok([])
    api.join_auction.return_value = ok({"joined": True})
    api.place_bid.return_value = ok()
    api.get_products.return_value = failed("offline")
    api.get_product.return_value = failed("offline")
    api.get_product_categories.return_value = failed("offline")
    api.get_banners.return_value = failed("offline")
    api.create_payment_intent.return_value = failed("offline")
    api.confirm_payment.return_value = ok()
    api.health_check.return_value = ok({"status": "ok"})
    return api


class StorefrontTestCase(unittest.TestCase):
    maxDiff = None

    def get_logger(self, name: str) -> Logger:
        return logging.getLogger(f"{self.__class__.__name__}.{name}")


class StorefrontAsyncTestCase(unittest.IsolatedAsyncioTestCase):
    """Gives each test an in-memory storage, a fake clock and a mocked backend."""

    maxDiff = None

    async def asyncSetUp(self) -> None:
        self.engine = make_engine("sqlite+aiosqlite://")
        await init_db(self.engine)
        self.clock = FakeClock()
        self.storage = LocalStorage(
            async_sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False),
            clock=self.clock,
        )
        self.api = mock_api()
        self.store = AuctionStore(self.api, self.storage)

    async def asyncTearDown(self) -> None:
        await self.engine.dispose()

    async def login(self) -> AuctionStore:
        self.assertTrue(await self.store.login(USER["email"], "secret"))
        return self.store

    def get_logger(self, name: str) -> Logger:
        return logging.getLogger(f"{self.__class__.__name__}.{name}")


if __name__ == "__main__":
    unittest.main()
