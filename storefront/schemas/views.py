from pydantic import BaseModel

from storefront.schemas.auction import Auction
from storefront.schemas.catalog import Product, Banner
from storefront.schemas.user import User, UserProfile


class OutbidNotice(BaseModel):
    auction_id: str
    title: str = ""
    image: str | None = None
    outbid_by: str
    new_bid: int
    next_bid: int


class AuctionCardView(BaseModel):
    auction: Auction
    display_bid: int
    next_bid: int
    user_bid: int = 0
    is_participating: bool = False
    is_user_highest_bidder: bool = False
    can_join: bool = False
    can_bid: bool = False
    potential_savings: float = 0
    time_left_text: str = ""
    countdown: int | None = None
    countdown_text: str | None = None
    ended_ago: str | None = None
    category_emoji: str = ""


class LeaderboardEntry(BaseModel):
    rank: int
    name: str
    avatar: str
    bid: int
    is_current_user: bool = False


class WinnerAnnouncement(BaseModel):
    auction_id: str
    winner_name: str
    winning_bid: int
    is_current_user: bool = False


class BiddingPageView(BaseModel):
    card: AuctionCardView
    time_left: int
    time_left_text: str
    leaderboard: list[LeaderboardEntry]
    winner: WinnerAnnouncement | None = None
    show_winner_announcement: bool = False


class HomePageView(BaseModel):
    is_logged_in: bool
    user_coins: int
    profile: UserProfile
    live: list[AuctionCardView]
    upcoming: list[AuctionCardView]
    ended: list[AuctionCardView]
    banners: list[Banner]
    outbid: OutbidNotice | None = None


class ProductCardView(BaseModel):
    product: Product
    entry_fee: int
    min_wallet: int
    category_emoji: str = ""


class StorePageView(BaseModel):
    products: list[ProductCardView]
    categories: list[str]
    banners: list[Banner]


class ProfileStats(BaseModel):
    auctions_joined: int = 0
    bids_placed: int = 0
    coins_committed: int = 0
    auctions_won: int = 0


class ProfileView(BaseModel):
    user: User | None
    profile: UserProfile
    user_coins: int
    joined_auctions: list[str]
    user_bids: dict[str, int]
    stats: ProfileStats
    outbid: OutbidNotice | None = None


class SessionView(BaseModel):
    is_logged_in: bool
    user: User | None = None
    profile: UserProfile
    user_coins: int
    error: str | None = None


class ActionResult(BaseModel):
    """Outcome of a join/bid button press."""

    outcome: str
    success: bool
    amount: int | None = None
    needed_coins: int | None = None
    user_coins: int
    error: str | None = None
