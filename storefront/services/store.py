import asyncio
import functools
import logging
from typing import Any, Awaitable

from pydantic import ValidationError

from storefront.clients.api import ApiClient
from storefront.clients.push import PushClient, SERVER_EVENTS
from storefront.config import settings
from storefront.schemas.auction import Auction, UPCOMING, LIVE, ENDED, to_coins
from storefront.schemas.envelope import ApiResponse
from storefront.schemas.user import User, UserProfile
from storefront.schemas.views import OutbidNotice
from storefront.services import reconcile
from storefront.services.catalog import fetch_auctions
from storefront.services.local_storage import LocalStorage, REFRESH_TOKEN_KEY, USER_COINS_KEY
from storefront.services.pricing import outbid_next_bid

logger = logging.getLogger(__name__)


class AuctionStore:
    """Shared session and auction-list state for the storefront.

    Created once at startup and passed to whoever needs it. Server calls never
    raise out of here: failures come back as False with `error` set.
    """

    def __init__(self, api: ApiClient, storage: LocalStorage, limit: int = settings.AUCTION_LIST_LIMIT):
        self.api = api
        self.storage = storage
        self.user: User | None = None
        self.user_coins = settings.GUEST_COINS
        self.user_profile = UserProfile()
        self.joined_auctions: set[str] = set()
        self.user_bids: dict[str, int] = {}
        self.pending_joins: set[str] = set()
        self.pending_bids: dict[str, int] = {}
        self.board = reconcile.AuctionBoard(limit=limit)
        self.loading = True
        self.error: str | None = None
        self.outbid: OutbidNotice | None = None
        self._push_handlers: dict[str, Any] = {}

    @property
    def is_logged_in(self) -> bool:
        return self.user is not None

    @property
    def upcoming_auctions(self) -> list[Auction]:
        return list(self.board.upcoming)

    @property
    def live_auctions(self) -> list[Auction]:
        return list(self.board.live)

    @property
    def ended_auctions(self) -> list[Auction]:
        return list(self.board.ended)

    @property
    def auction_countdowns(self) -> dict[str, int]:
        return dict(self.board.countdowns)

    def find_auction(self, auction_id: str) -> Auction | None:
        return self.board.find(str(auction_id))

    async def _call(self, request: Awaitable[ApiResponse], fallback_error: str) -> ApiResponse:
        try:
            return await request
        except Exception as e:
            logger.exception(f"[Store] Request failed: {e}")
            return ApiResponse(success=False, error=str(e) or fallback_error)

    def _adopt_user(self, user: User):
        self.user = user
        self.user_coins = user.wallet_balance
        self.user_profile = UserProfile.for_name(user.name)

    @staticmethod
    def _user_from(data: Any) -> User | None:
        if isinstance(data, dict) and isinstance(data.get("user"), dict):
            data = data["user"]
        if not isinstance(data, dict):
            return None
        try:
            return User.model_validate(data)
        except ValidationError as e:
            logger.warning(f"[Store] Unreadable user payload: {e}")
            return None

    # --- Session ---

    async def restore(self):
        """Resume a stored session and the persisted participation record."""
        try:
            token = await self.api.load_token()
            if token:
                response = await self._call(self.api.get_current_user(), "Failed to load user")
                user = self._user_from(response.data) if response.success else None
                if user is not None:
                    self._adopt_user(user)
                    logger.info(f"[Store] Restored session for {user.email or user.name}")
                else:
                    logger.warning(f"[Store] Stored session rejected: {response.error}")
                    await self.api.set_token(None)
                    await self.storage.remove(REFRESH_TOKEN_KEY)

            self.joined_auctions = await self.storage.load_joined_auctions()
            self.user_bids = await self.storage.load_user_bids()
            if not self.is_logged_in:
                coins = await self.storage.get(USER_COINS_KEY)
                if coins is not None:
                    self.user_coins = to_coins(coins)
        finally:
            self.loading = False

    async def _clear_participation(self):
        self.joined_auctions = set()
        self.user_bids = {}
        self.pending_joins.clear()
        self.pending_bids.clear()
        await self.storage.save_joined_auctions(self.joined_auctions)
        await self.storage.save_user_bids(self.user_bids)

    async def _authenticate(self, request: Awaitable[ApiResponse], fallback_error: str) -> bool:
        self.loading = True
        self.error = None
        try:
            response = await self._call(request, fallback_error)
            user = None
            if response.success and isinstance(response.data, dict):
                user = self._user_from(response.data.get("user"))
            if user is None:
                self.error = response.error or fallback_error
                logger.warning(f"[Store] Authentication failed: {self.error}")
                return False
            self._adopt_user(user)
            await self._clear_participation()
            logger.info(f"[Store] Signed in as {user.email or user.name}")
            return True
        finally:
            self.loading = False

    async def login(self, email: str, password: str) -> bool:
        return await self._authenticate(self.api.login(email, password), "Login failed")

    async def register(self, name: str, email: str, password: str, phone: str | None = None) -> bool:
        return await self._authenticate(self.api.register(name, email, password, phone), "Registration failed")

    async def logout(self):
        response = await self._call(self.api.logout(), "Logout failed")
        if not response.success:
            logger.warning(f"[Store] Logout error ignored: {response.error}")
        self.user = None
        self.user_coins = settings.GUEST_COINS
        self.user_profile = UserProfile()
        self.joined_auctions = set()
        self.user_bids = {}
        self.pending_joins.clear()
        self.pending_bids.clear()
        self.error = None
        self.outbid = None
        await self.storage.clear_session()

    async def refresh_user(self) -> bool:
        """Refetch the user after a wallet-affecting mutation and adopt the server balance."""
        response = await self._call(self.api.get_current_user(), "Failed to refresh user")
        user = self._user_from(response.data) if response.success else None
        if user is None:
            logger.warning(f"[Store] User refresh failed: {response.error}")
            return False
        self._adopt_user(user)
        return True

    async def add_coins(self, amount: int):
        self.user_coins += int(amount)
        await self.storage.set_value(USER_COINS_KEY, str(self.user_coins))
        logger.info(f"[Store] Added {amount} coins, balance {self.user_coins}")

    # --- Participation ---

    def is_participating_in_auction(self, auction_id: str) -> bool:
        return str(auction_id) in self.joined_auctions

    def get_user_bid_for_auction(self, auction_id: str) -> int:
        auction_id = str(auction_id)
        return self.pending_bids.get(auction_id, self.user_bids.get(auction_id, 0))

    async def join_auction(self, auction_id: str, entry_fee: int = 0) -> bool:
        auction_id = str(auction_id)
        if not self.is_logged_in:
            self.error = "Must be logged in to join auction"
            return False
        if auction_id in self.joined_auctions:
            return True

        self.error = None
        self.pending_joins.add(auction_id)
        try:
            response = await self._call(self.api.join_auction(auction_id), "Failed to join auction")
        finally:
            self.pending_joins.discard(auction_id)

        if not response.success:
            self.error = response.error or "Failed to join auction"
            logger.warning(f"[Store] Join {auction_id} failed: {self.error}")
            return False

        self.joined_auctions.add(auction_id)
        await self.storage.save_joined_auctions(self.joined_auctions)
        logger.info(f"[Store] Joined auction {auction_id} (entry fee {entry_fee})")
        await self.refresh_user()
        return True

    async def place_bid(self, auction_id: str, amount: int) -> bool:
        auction_id = str(auction_id)
        if not self.is_logged_in:
            self.error = "Must be logged in to place bid"
            return False
        if not self.is_participating_in_auction(auction_id):
            self.error = "Must join auction before bidding"
            return False

        self.error = None
        self.pending_bids[auction_id] = amount
        try:
            response = await self._call(self.api.place_bid(auction_id, amount), "Failed to place bid")
        finally:
            self.pending_bids.pop(auction_id, None)

        if not response.success:
            self.error = response.error or "Failed to place bid"
            logger.warning(f"[Store] Bid {amount} on {auction_id} failed: {self.error}")
            return False

        self.user_bids[auction_id] = amount
        await self.storage.save_user_bids(self.user_bids)
        if self.outbid is not None and self.outbid.auction_id == auction_id:
            self.outbid = None
        self._merge_bid_echo(auction_id, response.data)
        logger.info(f"[Store] Placed bid {amount} on {auction_id}")
        await self.refresh_user()
        return True

    def _merge_bid_echo(self, auction_id: str, data: Any):
        if not isinstance(data, dict):
            return
        if isinstance(data.get("auction"), dict):
            self.board = reconcile.apply_auction(self.board, {"id": auction_id, **data["auction"]})
            return
        new_bid = data.get("current_bid", data.get("newBid"))
        if new_bid is not None:
            self.board = reconcile.apply_bid(
                self.board, auction_id, new_bid, data.get("total_participants", data.get("totalBidders"))
            )

    # --- Auction lists ---

    async def load_auctions(self):
        limit = self.board.limit
        upcoming, live, ended = await asyncio.gather(
            fetch_auctions(self.api, UPCOMING, limit),
            fetch_auctions(self.api, LIVE, limit),
            fetch_auctions(self.api, ENDED, limit),
        )
        self.board = reconcile.build_board(upcoming, live, ended, limit=limit)
        logger.info(f"[Store] Board loaded: {len(upcoming)} upcoming, {len(live)} live, {len(ended)} ended")

    def move_auction_to_live(self, auction_id: str):
        self.board = reconcile.move_auction(self.board, str(auction_id), LIVE)

    def move_auction_to_ended(self, auction_id: str):
        self.board = reconcile.move_auction(self.board, str(auction_id), ENDED)

    def update_auction_countdown(self, auction_id: str, seconds: int):
        self.board = reconcile.update_countdown(self.board, str(auction_id), seconds)

    def tick(self):
        self.board, promoted, expired = reconcile.tick(self.board)
        for auction_id in promoted:
            logger.info(f"[Store] Auction {auction_id} countdown finished, now live")
        for auction_id in expired:
            logger.info(f"[Store] Auction {auction_id} ran out of time")

    # --- Push events ---

    def handle_event(self, event: str, data: Any):
        if event == "bid_placed" and isinstance(data, dict):
            self._check_outbid(data)
        self.board = reconcile.apply_event(self.board, event, data)

    def _check_outbid(self, data: dict):
        auction_id = data.get("auctionId") or data.get("auction_id")
        if auction_id is None or data.get("newBid") is None:
            return
        auction_id = str(auction_id)
        user_bid = self.user_bids.get(auction_id)
        new_bid = to_coins(data["newBid"])
        bidder = data.get("bidderName") or data.get("bidder") or "Another bidder"
        if not user_bid or new_bid <= user_bid or bidder == self.user_profile.name:
            return
        auction = self.find_auction(auction_id)
        self.outbid = OutbidNotice(
            auction_id=auction_id,
            title=auction.title if auction else "",
            image=auction.image if auction else None,
            outbid_by=bidder,
            new_bid=new_bid,
            next_bid=outbid_next_bid(new_bid, user_bid),
        )
        logger.info(f"[Store] Outbid on {auction_id} by {bidder} ({new_bid})")

    def dismiss_outbid(self):
        self.outbid = None

    def attach(self, push: PushClient):
        for event in SERVER_EVENTS:
            handler = functools.partial(self.handle_event, event)
            self._push_handlers[event] = handler
            push.on(event, handler)

    def detach(self, push: PushClient):
        for event, handler in self._push_handlers.items():
            push.off(event, handler)
        self._push_handlers = {}
