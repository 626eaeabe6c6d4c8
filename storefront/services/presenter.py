"""View-model builders for the storefront pages.

Everything here is derived from the store's state and is recomputed on every
request; nothing is cached or written back.
"""
import math
from datetime import datetime, timezone

from storefront.schemas.auction import Auction, Bid, UPCOMING, LIVE, ENDED
from storefront.schemas.catalog import Product
from storefront.schemas.user import User, UserProfile, initials
from storefront.schemas.views import (
    AuctionCardView, LeaderboardEntry, WinnerAnnouncement, ProductCardView, ProfileStats, ProfileView,
    SessionView,
)
from storefront.services.pricing import next_bid_amount, potential_savings
from storefront.services.store import AuctionStore

CATEGORY_EMOJIS = {
    "electronics": "📱",
    "audio": "🎧",
    "computers": "💻",
    "wearables": "⌚",
    "gaming": "🎮",
    "fashion": "👕",
    "home": "🏠",
    "sports": "⚽",
    "books": "📚",
    "toys": "🧸",
}

# Action outcomes
LOGIN_REQUIRED = "login_required"
JOIN_REQUIRED = "join_required"
TOPUP_REQUIRED = "topup_required"
ALREADY_JOINED = "already_joined"
HIGHEST_BIDDER = "highest_bidder"
AUCTION_ENDED = "ended"
JOIN = "join"
BID = "bid"

PRODUCT_ENTRY_FEE_RATE = 0.02
PRODUCT_MIN_WALLET_RATE = 0.10


def format_time(seconds: int, show_seconds: bool = False) -> str:
    """Live clock text: "1h 5m" (or "1h 5m 9s") above an hour, "4:07" below."""
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours}h {minutes}m {secs}s" if show_seconds else f"{hours}h {minutes}m"
    return f"{minutes}:{secs:02d}"


def format_countdown(seconds: int) -> str:
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def time_ago(moment: datetime | None, now: datetime | None = None) -> str:
    if moment is None:
        return "Just ended"
    now = now or datetime.now(timezone.utc)
    difference = (now - moment).total_seconds()
    days = int(difference // 86400)
    hours = int(difference // 3600)
    minutes = int(difference // 60)
    if days > 0:
        return f"{days} day{'s' if days > 1 else ''} ago"
    if hours > 0:
        return f"{hours} hour{'s' if hours > 1 else ''} ago"
    if minutes > 0:
        return f"{minutes} minute{'s' if minutes > 1 else ''} ago"
    return "Just ended"


def category_emoji(category: str | None) -> str:
    return CATEGORY_EMOJIS.get((category or "").lower(), "📦")


# --- Action planning ---

def plan_join(store: AuctionStore, auction: Auction) -> tuple[str, int | None]:
    """Decide what a join press does. Returns (outcome, coins still needed)."""
    if not store.is_logged_in:
        return LOGIN_REQUIRED, None
    if store.is_participating_in_auction(auction.id):
        return ALREADY_JOINED, None
    if auction.status == ENDED:
        return AUCTION_ENDED, None
    if store.user_coins < auction.entry_fee:
        return TOPUP_REQUIRED, auction.entry_fee - store.user_coins
    return JOIN, None


def plan_bid(
    store: AuctionStore,
    auction: Auction,
    time_left: int | None = None,
    leader: LeaderboardEntry | None = None,
) -> tuple[str, int]:
    """Decide what a bid press does. Returns (outcome, next bid amount)."""
    user_bid = store.get_user_bid_for_auction(auction.id)
    amount = next_bid_amount(_display_bid(auction, leader), user_bid)
    time_left = auction.time_left if time_left is None else time_left
    if not store.is_logged_in:
        return LOGIN_REQUIRED, amount
    if not store.is_participating_in_auction(auction.id):
        return JOIN_REQUIRED, amount
    if auction.status != LIVE or time_left <= 0:
        return AUCTION_ENDED, amount
    if leader is not None and leader.is_current_user:
        return HIGHEST_BIDDER, amount
    if store.user_coins < amount:
        return TOPUP_REQUIRED, amount
    return BID, amount


# --- Cards ---

def _display_bid(auction: Auction, leader: LeaderboardEntry | None = None) -> int:
    if auction.status == ENDED and auction.final_bid is not None:
        return auction.final_bid
    return max(auction.current_bid, leader.bid if leader else 0)


def auction_card(
    store: AuctionStore,
    auction: Auction,
    time_left: int | None = None,
    leader: LeaderboardEntry | None = None,
    now: datetime | None = None,
) -> AuctionCardView:
    user_bid = store.get_user_bid_for_auction(auction.id)
    display_bid = _display_bid(auction, leader)
    time_left = auction.time_left if time_left is None else time_left
    participating = store.is_participating_in_auction(auction.id)
    highest = leader is not None and leader.is_current_user

    card = AuctionCardView(
        auction=auction,
        display_bid=display_bid,
        next_bid=next_bid_amount(display_bid, user_bid),
        user_bid=user_bid,
        is_participating=participating,
        is_user_highest_bidder=highest,
        can_join=auction.status != ENDED and store.user_coins >= auction.entry_fee,
        can_bid=auction.status == LIVE and participating and time_left > 0 and not highest,
        potential_savings=potential_savings(auction.market_price, display_bid),
        time_left_text=format_time(time_left),
        category_emoji=category_emoji(auction.category),
    )
    if auction.status == UPCOMING:
        countdown = store.auction_countdowns.get(auction.id)
        if countdown is not None:
            card.countdown = countdown
            card.countdown_text = format_countdown(countdown)
    elif auction.status == ENDED:
        card.ended_ago = time_ago(auction.end_time, now)
    return card


def product_card(product: Product) -> ProductCardView:
    return ProductCardView(
        product=product,
        entry_fee=math.floor(product.market_price * PRODUCT_ENTRY_FEE_RATE),
        min_wallet=math.floor(product.market_price * PRODUCT_MIN_WALLET_RATE),
        category_emoji=category_emoji(product.category),
    )


# --- Bidding page ---

def build_leaderboard(bids: list[Bid], user: User | None, user_bid: int = 0) -> list[LeaderboardEntry]:
    """Highest bid per bidder, best first, with the current user flagged.

    The user's own last bid is included even if the bid list has not caught up
    with it yet.
    """
    best: dict[str, tuple[str, int, bool]] = {}
    for bid in bids:
        is_user = user is not None and bid.user_id is not None and bid.user_id == user.id
        key = bid.user_id or bid.user_name
        if key not in best or bid.amount > best[key][1]:
            best[key] = (bid.user_name, bid.amount, is_user)

    if user is not None and user_bid:
        key = user.id or user.name
        if key not in best or user_bid > best[key][1]:
            best[key] = (user.name or "You", user_bid, True)

    rows = sorted(best.values(), key=lambda row: row[1], reverse=True)
    return [
        LeaderboardEntry(rank=i, name=name, avatar=initials(name), bid=amount, is_current_user=is_user)
        for i, (name, amount, is_user) in enumerate(rows, start=1)
    ]


def winner_announcement(
    auction: Auction,
    leaderboard: list[LeaderboardEntry],
    profile: UserProfile,
) -> WinnerAnnouncement | None:
    if leaderboard:
        leader = leaderboard[0]
        return WinnerAnnouncement(
            auction_id=auction.id,
            winner_name=leader.name,
            winning_bid=auction.final_bid or leader.bid,
            is_current_user=leader.is_current_user,
        )
    if auction.winner:
        return WinnerAnnouncement(
            auction_id=auction.id,
            winner_name=auction.winner,
            winning_bid=auction.final_bid or auction.current_bid,
            is_current_user=bool(profile.name) and auction.winner == profile.name,
        )
    return None


# --- Session and profile ---

def session_view(store: AuctionStore) -> SessionView:
    return SessionView(
        is_logged_in=store.is_logged_in,
        user=store.user,
        profile=store.user_profile,
        user_coins=store.user_coins,
        error=store.error,
    )


def profile_view(store: AuctionStore) -> ProfileView:
    won = [
        a for a in store.ended_auctions
        if store.user_profile.name and a.winner == store.user_profile.name
    ]
    stats = ProfileStats(
        auctions_joined=len(store.joined_auctions),
        bids_placed=len(store.user_bids),
        coins_committed=sum(store.user_bids.values()),
        auctions_won=len(won),
    )
    return ProfileView(
        user=store.user,
        profile=store.user_profile,
        user_coins=store.user_coins,
        joined_auctions=sorted(store.joined_auctions),
        user_bids=dict(store.user_bids),
        stats=stats,
        outbid=store.outbid,
    )
