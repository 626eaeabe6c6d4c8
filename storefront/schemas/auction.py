from datetime import datetime, timezone
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, model_validator

UPCOMING = "upcoming"
LIVE = "live"
ENDED = "ended"
STATUSES = (UPCOMING, LIVE, ENDED)

# Backend status synonyms folded into the three display buckets
STATUS_SYNONYMS = {
    "upcoming": UPCOMING,
    "scheduled": UPCOMING,
    "pending": UPCOMING,
    "live": LIVE,
    "active": LIVE,
    "ended": ENDED,
    "completed": ENDED,
    "concluded": ENDED,
}

# canonical field -> accepted payload keys, in order of preference
FIELD_ALIASES = {
    "id": ("id", "auctionId", "auction_id"),
    "title": ("title", "product_name"),
    "image": ("image", "image_url", "product_image"),
    "current_bid": ("current_bid", "currentBid", "starting_bid"),
    "market_price": ("market_price", "marketPrice", "product_market_price"),
    "time_left": ("time_left", "timeLeft"),
    "bidders": ("bidders", "total_participants", "bidder_count", "expectedBidders"),
    "entry_fee": ("entry_fee", "entryFee"),
    "min_wallet": ("min_wallet", "minWallet"),
    "description": ("description",),
    "category": ("category", "product_category"),
    "status": ("status",),
    "start_time": ("start_time", "startTime"),
    "end_time": ("end_time", "endTime"),
    "winner": ("winner", "winner_name"),
    "final_bid": ("final_bid", "finalBid"),
}


def to_coins(value: Any) -> Any:
    """Coerce numeric strings and floats ("500.00", 45.0) to whole coins."""
    if value is None or value == "":
        return 0
    if isinstance(value, (str, float)):
        try:
            return int(round(float(value)))
        except ValueError:
            return value
    return value


Coins = Annotated[int, BeforeValidator(to_coins)]


def as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def seconds_until(moment: datetime | None, now: datetime | None = None) -> int:
    if moment is None:
        return 0
    now = now or datetime.now(timezone.utc)
    return max(0, int((as_utc(moment) - now).total_seconds()))


def fold_status(status: Any) -> str | None:
    if status is None:
        return None
    return STATUS_SYNONYMS.get(str(status).lower(), str(status).lower())


def normalize_auction_payload(data: dict) -> dict:
    """Map a raw backend/push payload onto canonical field names.

    Only fields present in the payload (and not null) are returned, so the
    result can be used as a merge-patch over an existing record.
    """
    out = {}
    for field, keys in FIELD_ALIASES.items():
        for key in keys:
            if data.get(key) is not None:
                out[field] = data[key]
                break
    if "id" in out:
        out["id"] = str(out["id"])
    if "status" in out:
        out["status"] = fold_status(out["status"])
    return out


class Auction(BaseModel):
    id: str
    title: str = ""
    image: str | None = None
    current_bid: Coins = 0
    market_price: float = 0
    time_left: int = 0
    bidders: int = 0
    entry_fee: Coins = 0
    min_wallet: Coins = 0
    description: str | None = None
    category: str | None = None
    status: str = UPCOMING
    start_time: datetime | None = None
    end_time: datetime | None = None
    winner: str | None = None
    final_bid: Coins | None = None

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        normalized = normalize_auction_payload(data)
        if "status" not in normalized:
            normalized["status"] = _infer_status(normalized)
        return normalized

    @model_validator(mode="after")
    def _derive_time_left(self) -> "Auction":
        self.start_time = as_utc(self.start_time)
        self.end_time = as_utc(self.end_time)
        if "time_left" not in self.model_fields_set and self.end_time is not None:
            self.time_left = seconds_until(self.end_time)
        return self

    def seconds_until_start(self, now: datetime | None = None) -> int:
        return seconds_until(self.start_time, now)


def _infer_status(data: dict) -> str:
    now = datetime.now(timezone.utc)
    try:
        start = _parse_dt(data.get("start_time"))
        end = _parse_dt(data.get("end_time"))
    except ValueError:
        return UPCOMING
    if end is not None and end <= now:
        return ENDED
    if start is not None and start <= now:
        return LIVE
    return UPCOMING


def _parse_dt(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return as_utc(value)
    return as_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))


class Bid(BaseModel):
    """A leaderboard row from the list-bids endpoint."""

    id: str | None = None
    user_id: str | None = None
    user_name: str = "Bidder"
    amount: Coins = 0
    created_at: datetime | None = None

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for key in ("id", "user_id"):
            if data.get(key) is not None:
                data[key] = str(data[key])
        if data.get("user_name") is None:
            data["user_name"] = data.get("name") or data.get("bidder") or "Bidder"
        if data.get("amount") is None:
            data["amount"] = data.get("bid_amount", 0)
        return data
