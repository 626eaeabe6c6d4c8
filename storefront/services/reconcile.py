"""Client-side auction list reconciliation.

Pure functions over an immutable AuctionBoard: each auction lives in exactly
one of the upcoming/live/ended sequences, chosen by its status. Fetch results
and push events are merge-patched into the board; unknown auction ids are
always inserted. Nothing here is authoritative: a later server payload simply
overwrites whatever was derived locally (last write wins).
"""
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Iterable

from pydantic import ValidationError

from storefront.config import settings
from storefront.schemas.auction import (
    Auction, UPCOMING, LIVE, ENDED, STATUSES, fold_status, normalize_auction_payload, to_coins,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuctionBoard:
    upcoming: tuple[Auction, ...] = ()
    live: tuple[Auction, ...] = ()
    ended: tuple[Auction, ...] = ()
    countdowns: dict[str, int] = field(default_factory=dict)  # upcoming id -> seconds to start
    limit: int = settings.AUCTION_LIST_LIMIT

    def bucket(self, status: str) -> tuple[Auction, ...]:
        return getattr(self, status)

    def locate(self, auction_id: str) -> str | None:
        for status in STATUSES:
            if any(a.id == auction_id for a in self.bucket(status)):
                return status
        return None

    def find(self, auction_id: str) -> Auction | None:
        for status in STATUSES:
            for auction in self.bucket(status):
                if auction.id == auction_id:
                    return auction
        return None


def _with_bucket(board: AuctionBoard, status: str, auctions: Iterable[Auction]) -> AuctionBoard:
    return replace(board, **{status: tuple(auctions)})


def _without(board: AuctionBoard, status: str, auction_id: str) -> AuctionBoard:
    return _with_bucket(board, status, (a for a in board.bucket(status) if a.id != auction_id))


def _prepend(board: AuctionBoard, status: str, auction: Auction) -> AuctionBoard:
    rest = [a for a in board.bucket(status) if a.id != auction.id]
    return _with_bucket(board, status, [auction, *rest][: board.limit])


def _sync_countdowns(board: AuctionBoard, refresh: Iterable[str] = (), now: datetime | None = None) -> AuctionBoard:
    """Keep countdowns only for upcoming auctions, deriving missing ones from start_time."""
    refresh = set(refresh)
    countdowns = {}
    for auction in board.upcoming:
        if auction.id in board.countdowns and auction.id not in refresh:
            countdowns[auction.id] = board.countdowns[auction.id]
        elif auction.start_time is not None:
            countdowns[auction.id] = auction.seconds_until_start(now)
    return replace(board, countdowns=countdowns)


def _merge(existing: Auction | None, patch: dict) -> Auction:
    if existing is None:
        return Auction.model_validate(patch)
    base = existing.model_dump()
    if "end_time" in patch and "time_left" not in patch:
        base.pop("time_left")
    return Auction.model_validate({**base, **patch})


def build_board(
    upcoming: Iterable[Auction] = (),
    live: Iterable[Auction] = (),
    ended: Iterable[Auction] = (),
    limit: int = settings.AUCTION_LIST_LIMIT,
    now: datetime | None = None,
) -> AuctionBoard:
    board = AuctionBoard(limit=limit)
    for status, auctions in ((UPCOMING, upcoming), (LIVE, live), (ENDED, ended)):
        for auction in auctions:
            board = _place(board, auction.model_copy(update={"status": status}), append=True)
    return _sync_countdowns(board, now=now)


def _place(board: AuctionBoard, auction: Auction, append: bool = False) -> AuctionBoard:
    source = board.locate(auction.id)
    if source is not None:
        board = _without(board, source, auction.id)
    if append:
        current = board.bucket(auction.status)
        if len(current) >= board.limit:
            return board
        return _with_bucket(board, auction.status, [*current, auction])
    return _prepend(board, auction.status, auction)


def apply_auction(board: AuctionBoard, payload: dict, status: str | None = None) -> AuctionBoard:
    """Merge-patch an auction payload, moving it if its status changed."""
    patch = normalize_auction_payload(payload)
    if status is not None:
        patch["status"] = status
    auction_id = patch.get("id")
    if not auction_id:
        logger.warning(f"[Reconcile] Ignoring auction payload without id: {payload}")
        return board

    source = board.locate(auction_id)
    existing = board.find(auction_id)
    try:
        merged = _merge(existing, patch)
    except ValidationError as e:
        logger.warning(f"[Reconcile] Invalid auction payload for {auction_id}: {e}")
        return board

    if existing is not None and merged == existing:
        return board

    if merged.status not in STATUSES:
        logger.info(f"[Reconcile] Auction {auction_id} has status {merged.status}, removing from view")
        return remove_auction(board, auction_id)

    if source == merged.status:
        board = _with_bucket(
            board, source, (merged if a.id == auction_id else a for a in board.bucket(source))
        )
    else:
        if source is not None:
            board = _without(board, source, auction_id)
        board = _prepend(board, merged.status, merged)

    refresh = [auction_id] if "start_time" in patch or source != merged.status else []
    return _sync_countdowns(board, refresh=refresh)


def move_auction(board: AuctionBoard, auction_id: str, status: str) -> AuctionBoard:
    """Move an auction to the `status` bucket. No-op if unknown or already there."""
    source = board.locate(auction_id)
    if source is None or source == status:
        return board
    auction = board.find(auction_id)
    update: dict[str, Any] = {"status": status}
    if status == ENDED:
        update["time_left"] = 0
    board = _without(board, source, auction_id)
    board = _prepend(board, status, auction.model_copy(update=update))
    return _sync_countdowns(board, refresh=[auction_id])


def remove_auction(board: AuctionBoard, auction_id: str) -> AuctionBoard:
    source = board.locate(auction_id)
    if source is None:
        return board
    return _sync_countdowns(_without(board, source, auction_id))


def replace_bucket(board: AuctionBoard, status: str, payloads: Iterable[dict]) -> AuctionBoard:
    """Swap one bucket wholesale (bulk list update), keeping ids unique across buckets."""
    auctions = []
    for payload in payloads:
        try:
            auction = Auction.model_validate(payload)
        except ValidationError as e:
            logger.warning(f"[Reconcile] Skipping invalid auction in {status} list: {e}")
            continue
        auctions.append(auction.model_copy(update={"status": status}))
    auctions = auctions[: board.limit]

    ids = {a.id for a in auctions}
    for other in STATUSES:
        if other != status:
            board = _with_bucket(board, other, (a for a in board.bucket(other) if a.id not in ids))
    board = _with_bucket(board, status, auctions)
    return _sync_countdowns(board, refresh=ids)


def apply_bid(
    board: AuctionBoard,
    auction_id: str,
    new_bid: Any,
    bidders: int | None = None,
    time_left: int | None = None,
) -> AuctionBoard:
    """Patch a bid update onto a known auction; bids for unknown ids are dropped."""
    existing = board.find(auction_id)
    if existing is None:
        logger.debug(f"[Reconcile] Bid for unknown auction {auction_id} dropped")
        return board
    update: dict[str, Any] = {"current_bid": to_coins(new_bid)}
    if bidders is not None:
        update["bidders"] = int(bidders)
    if time_left:
        update["time_left"] = int(time_left)
    updated = existing.model_copy(update=update)
    if updated == existing:
        return board
    source = board.locate(auction_id)
    return _with_bucket(board, source, (updated if a.id == auction_id else a for a in board.bucket(source)))


def update_countdown(board: AuctionBoard, auction_id: str, seconds: int) -> AuctionBoard:
    """Set an upcoming auction's countdown; at zero it is promoted to live."""
    if board.locate(auction_id) != UPCOMING:
        return board
    if seconds <= 0:
        return move_auction(board, auction_id, LIVE)
    return replace(board, countdowns={**board.countdowns, auction_id: int(seconds)})


def set_time_left(board: AuctionBoard, auction_id: str, seconds: int) -> AuctionBoard:
    source = board.locate(auction_id)
    if source is None:
        return board
    return _with_bucket(
        board,
        source,
        (a.model_copy(update={"time_left": max(0, int(seconds))}) if a.id == auction_id else a
         for a in board.bucket(source)),
    )


def _has_clock(auction: Auction) -> bool:
    return auction.end_time is not None or "time_left" in auction.model_fields_set


def tick(board: AuctionBoard) -> tuple[AuctionBoard, list[str], list[str]]:
    """Advance local timers by one second.

    Returns (board, promoted_ids, expired_ids). Upcoming auctions whose
    countdown reaches zero go live and live auctions with a known clock that
    is at or below zero end, both optimistically. A live auction the backend
    sent without any timing stays live until the server says otherwise.
    """
    promoted = []
    countdowns = {}
    for auction_id, seconds in board.countdowns.items():
        remaining = seconds - 1
        if remaining <= 0:
            promoted.append(auction_id)
        countdowns[auction_id] = max(0, remaining)
    board = replace(board, countdowns=countdowns)

    expired = []
    live = []
    for auction in board.live:
        if auction.time_left > 0:
            auction = auction.model_copy(update={"time_left": auction.time_left - 1})
        if auction.time_left <= 0 and _has_clock(auction):
            expired.append(auction.id)
        live.append(auction)
    board = _with_bucket(board, LIVE, live)

    for auction_id in promoted:
        board = move_auction(board, auction_id, LIVE)
    for auction_id in expired:
        board = move_auction(board, auction_id, ENDED)
    return board, promoted, expired


def _auction_payload(data: dict) -> dict:
    auction = data.get("auction")
    return auction if isinstance(auction, dict) else data


def _event_auction_id(data: dict) -> str | None:
    value = data.get("auctionId") or data.get("auction_id") or data.get("id")
    if value is None and isinstance(data.get("auction"), dict):
        value = data["auction"].get("id")
    return None if value is None else str(value)


def apply_event(board: AuctionBoard, event: str, data: Any) -> AuctionBoard:
    """Route one push event through the matching reconciliation function."""
    if not isinstance(data, dict):
        logger.debug(f"[Reconcile] Ignoring {event} with payload {data!r}")
        return board

    if event in ("auction:created", "auction:updated", "auction_status_changed"):
        return apply_auction(board, _auction_payload(data))
    if event == "auction_started":
        return apply_auction(board, _auction_payload(data), status=LIVE)
    if event == "auction_ended":
        return apply_auction(board, _auction_payload(data), status=ENDED)

    auction_id = _event_auction_id(data)
    if event == "auction:deleted":
        return remove_auction(board, auction_id) if auction_id else board
    if event == "bid_placed":
        if not auction_id or data.get("newBid") is None:
            return board
        return apply_bid(board, auction_id, data["newBid"], data.get("totalBidders"), data.get("timeLeft"))
    if event == "auction_time_update":
        if not auction_id or data.get("timeLeft") is None:
            return board
        if board.locate(auction_id) == UPCOMING:
            return update_countdown(board, auction_id, int(data["timeLeft"]))
        return set_time_left(board, auction_id, int(data["timeLeft"]))
    if event == "auctions_updated":
        status = fold_status(data.get("type"))
        if status not in STATUSES or not isinstance(data.get("auctions"), list):
            return board
        return replace_bucket(board, status, data["auctions"])

    logger.debug(f"[Reconcile] Unhandled event {event}")
    return board
