import logging
from datetime import datetime, timedelta, timezone

from pydantic import ValidationError

from storefront.clients.api import ApiClient
from storefront.config import settings
from storefront.schemas.auction import Auction, Bid, UPCOMING, LIVE, ENDED
from storefront.schemas.catalog import Product, Banner

logger = logging.getLogger(__name__)


def _items(data) -> list:
    # Lists arrive either bare or wrapped as {"auctions": [...]} / {"items": [...]}
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in ("auctions", "products", "banners", "bids", "items"):
            if isinstance(data.get(key), list):
                return data[key]
    return []


async def fetch_auctions(api: ApiClient, status: str, limit: int = settings.AUCTION_LIST_LIMIT) -> list[Auction]:
    """Fetch one status bucket; falls back to demo auctions so the page never renders empty."""
    response = await api.get_auctions(status=status, limit=limit)
    if not response.success:
        logger.warning(f"[Catalog] {status} auctions unavailable ({response.error}), using fallback")
        return fallback_auctions(status)

    auctions = []
    for item in _items(response.data):
        try:
            auction = Auction.model_validate(item)
        except ValidationError as e:
            logger.warning(f"[Catalog] Skipping malformed auction: {e}")
            continue
        # The backend may ignore the status filter
        if auction.status == status:
            auctions.append(auction)
    logger.info(f"[Catalog] Loaded {len(auctions)} {status} auctions")
    return auctions[:limit]


async def fetch_auction(api: ApiClient, auction_id: str) -> Auction | None:
    response = await api.get_auction(auction_id)
    if not response.success or not isinstance(response.data, dict):
        logger.warning(f"[Catalog] Auction {auction_id} unavailable: {response.error}")
        return None
    payload = response.data.get("auction", response.data)
    try:
        return Auction.model_validate(payload)
    except ValidationError as e:
        logger.warning(f"[Catalog] Malformed auction {auction_id}: {e}")
        return None


async def fetch_bids(api: ApiClient, auction_id: str) -> list[Bid]:
    response = await api.get_auction_bids(auction_id)
    if not response.success:
        logger.warning(f"[Catalog] Bids for {auction_id} unavailable: {response.error}")
        return []
    bids = []
    for item in _items(response.data):
        try:
            bids.append(Bid.model_validate(item))
        except ValidationError as e:
            logger.warning(f"[Catalog] Skipping malformed bid: {e}")
    return bids


async def fetch_products(
    api: ApiClient,
    category: str | None = None,
    search: str | None = None,
    page: int | None = None,
    limit: int | None = None,
) -> list[Product]:
    response = await api.get_products(category=category, page=page, limit=limit, search=search)
    if not response.success:
        logger.warning(f"[Catalog] Products unavailable ({response.error}), using fallback")
        products = fallback_products()
        if category:
            products = [p for p in products if (p.category or "").lower() == category.lower()]
        return products

    products = []
    for item in _items(response.data):
        try:
            products.append(Product.model_validate(item))
        except ValidationError as e:
            logger.warning(f"[Catalog] Skipping malformed product: {e}")
    return products


async def fetch_categories(api: ApiClient) -> list[str]:
    response = await api.get_product_categories()
    if response.success and isinstance(response.data, list):
        return [str(c) for c in response.data]
    return sorted({p.category for p in fallback_products() if p.category})


async def fetch_banners(api: ApiClient) -> list[Banner]:
    response = await api.get_banners()
    banners = []
    if response.success:
        for item in _items(response.data):
            try:
                banners.append(Banner.model_validate(item))
            except ValidationError as e:
                logger.warning(f"[Catalog] Skipping malformed banner: {e}")
    if not banners:
        return fallback_banners()
    return sorted((b for b in banners if b.is_active), key=lambda b: b.order_index)


# --- Fallback content ---

def fallback_auctions(status: str, now: datetime | None = None) -> list[Auction]:
    now = now or datetime.now(timezone.utc)
    if status == UPCOMING:
        return [
            Auction(
                id="demo-upcoming-1",
                title='iPad Pro 12.9"',
                image="https://images.pexels.com/photos/1334597/pexels-photo-1334597.jpeg",
                entry_fee=25,
                min_wallet=125,
                market_price=1099,
                bidders=35,
                category="Electronics",
                status=UPCOMING,
                start_time=now + timedelta(minutes=5),
            ),
            Auction(
                id="demo-upcoming-2",
                title="Sony WH-1000XM5",
                image="https://images.pexels.com/photos/3394650/pexels-photo-3394650.jpeg",
                entry_fee=12,
                min_wallet=60,
                market_price=399,
                bidders=22,
                category="Audio",
                status=UPCOMING,
                start_time=now + timedelta(minutes=15),
            ),
        ]
    if status == LIVE:
        return [
            Auction(
                id="demo-live-1",
                title="iPhone 15 Pro Max",
                image="https://images.pexels.com/photos/788946/pexels-photo-788946.jpeg",
                current_bid=45,
                market_price=3750,
                time_left=1200,
                bidders=24,
                entry_fee=20,
                min_wallet=100,
                description="Latest iPhone 15 Pro Max with 256GB storage in Titanium Blue",
                category="Electronics",
                status=LIVE,
            ),
            Auction(
                id="demo-live-2",
                title="Nike Air Max 90",
                image="https://images.pexels.com/photos/2529148/pexels-photo-2529148.jpeg",
                current_bid=28,
                market_price=450,
                time_left=1800,
                bidders=18,
                entry_fee=15,
                min_wallet=75,
                description="Classic Nike Air Max 90 sneakers in premium white colorway",
                category="Fashion",
                status=LIVE,
            ),
        ]
    if status == ENDED:
        return [
            Auction(
                id="demo-ended-1",
                title='MacBook Pro 16"',
                image="https://images.pexels.com/photos/205421/pexels-photo-205421.jpeg",
                final_bid=89,
                current_bid=89,
                market_price=9370,
                winner="Alex Thunder",
                bidders=45,
                status=ENDED,
                end_time=now - timedelta(hours=2),
            ),
            Auction(
                id="demo-ended-2",
                title="PlayStation 5",
                image="https://images.pexels.com/photos/4523184/pexels-photo-4523184.jpeg",
                final_bid=67,
                current_bid=67,
                market_price=1870,
                winner="Sarah Storm",
                bidders=38,
                status=ENDED,
                end_time=now - timedelta(hours=5),
            ),
        ]
    return []


def fallback_products() -> list[Product]:
    return [
        Product(
            id="demo-product-1",
            name="iPhone 15 Pro",
            image_url="https://images.pexels.com/photos/788946/pexels-photo-788946.jpeg",
            market_price=3750,
            category="Electronics",
        ),
        Product(
            id="demo-product-2",
            name="Sony WH-1000XM5",
            image_url="https://images.pexels.com/photos/3394650/pexels-photo-3394650.jpeg",
            market_price=1499,
            category="Audio",
        ),
        Product(
            id="demo-product-3",
            name="Nike Air Max 90",
            image_url="https://images.pexels.com/photos/2529148/pexels-photo-2529148.jpeg",
            market_price=450,
            category="Fashion",
        ),
    ]


def fallback_banners() -> list[Banner]:
    return [
        Banner(
            title="Get Your Favorite iPhone",
            subtitle="At Unbeatable Prices!",
            description="Bid smart and win the latest iPhone 15 Pro for up to 80% off retail price",
            image_url="https://images.pexels.com/photos/788946/pexels-photo-788946.jpeg",
            gradient="from-blue-600 to-purple-700",
            button_text="Start Bidding",
            order_index=0,
        ),
        Banner(
            title="Premium Gaming Setup",
            subtitle="Power Up Your Gaming!",
            description="Win high-end gaming PCs and accessories at incredible auction prices",
            image_url="https://images.pexels.com/photos/2047905/pexels-photo-2047905.jpeg",
            gradient="from-green-600 to-emerald-700",
            button_text="Start Bidding",
            order_index=1,
        ),
        Banner(
            title="Designer Sneakers",
            subtitle="Step Into Style!",
            description="Bid on limited-edition sneakers from top brands",
            image_url="https://images.pexels.com/photos/2529148/pexels-photo-2529148.jpeg",
            gradient="from-orange-600 to-red-700",
            button_text="Start Bidding",
            order_index=2,
        ),
    ]
