from fastapi import APIRouter, Depends, HTTPException

from storefront.api.deps import get_store, get_push
from storefront.clients.push import PushClient
from storefront.schemas.auction import Auction, LIVE, ENDED
from storefront.schemas.views import ActionResult, BiddingPageView, HomePageView, LeaderboardEntry
from storefront.services.catalog import fetch_auction, fetch_banners, fetch_bids
from storefront.services.presenter import (
    auction_card, build_leaderboard, format_time, plan_bid, plan_join, winner_announcement,
    ALREADY_JOINED, BID, JOIN, JOIN_REQUIRED, LOGIN_REQUIRED, TOPUP_REQUIRED,
)
from storefront.services.store import AuctionStore

router = APIRouter(prefix="/api/v1", tags=["auctions"])

JOINED = "joined"
BID_PLACED = "bid_placed"
FAILED = "failed"


async def _get_auction(store: AuctionStore, auction_id: str) -> Auction:
    auction = store.find_auction(auction_id)
    if auction is None:
        auction = await fetch_auction(store.api, auction_id)
    if auction is None:
        raise HTTPException(status_code=404, detail="Auction not found")
    return auction


async def _resume_time_left(store: AuctionStore, auction: Auction) -> int:
    """Continue a live auction's clock from the last stored snapshot."""
    if auction.status == ENDED:
        await store.storage.clear_timer(auction.id)
        return 0
    if auction.status != LIVE:
        return auction.time_left

    remaining = await store.storage.resume_timer(auction.id, auction.time_left)
    if remaining > 0:
        await store.storage.save_timer(auction.id, remaining)
    else:
        await store.storage.clear_timer(auction.id)
    return remaining


async def _leaderboard(store: AuctionStore, auction: Auction) -> list[LeaderboardEntry]:
    bids = await fetch_bids(store.api, auction.id)
    return build_leaderboard(bids, store.user, store.get_user_bid_for_auction(auction.id))


@router.get("/home", response_model=HomePageView)
async def get_home(store: AuctionStore = Depends(get_store)):
    banners = await fetch_banners(store.api)
    return HomePageView(
        is_logged_in=store.is_logged_in,
        user_coins=store.user_coins,
        profile=store.user_profile,
        live=[auction_card(store, a) for a in store.live_auctions],
        upcoming=[auction_card(store, a) for a in store.upcoming_auctions],
        ended=[auction_card(store, a) for a in store.ended_auctions],
        banners=banners,
        outbid=store.outbid,
    )


@router.post("/home/refresh", response_model=HomePageView)
async def refresh_home(store: AuctionStore = Depends(get_store)):
    await store.load_auctions()
    return await get_home(store)


@router.get("/auctions/{auction_id}", response_model=BiddingPageView)
async def get_bidding_page(auction_id: str, store: AuctionStore = Depends(get_store)):
    auction = await _get_auction(store, auction_id)
    time_left = await _resume_time_left(store, auction)
    if auction.status == LIVE and time_left == 0:
        store.move_auction_to_ended(auction.id)
        auction = store.find_auction(auction.id) or auction.model_copy(update={"status": ENDED, "time_left": 0})

    leaderboard = await _leaderboard(store, auction)
    leader = leaderboard[0] if leaderboard else None

    winner = None
    show_winner = False
    if auction.status == ENDED:
        winner = winner_announcement(auction, leaderboard, store.user_profile)
        # The announcement pops up once per auction
        if winner is not None and not await store.storage.winner_announced(auction.id):
            show_winner = True
            await store.storage.mark_winner_announced(auction.id)

    return BiddingPageView(
        card=auction_card(store, auction, time_left=time_left, leader=leader),
        time_left=time_left,
        time_left_text=format_time(time_left, show_seconds=True),
        leaderboard=leaderboard,
        winner=winner,
        show_winner_announcement=show_winner,
    )


@router.post("/auctions/{auction_id}/join", response_model=ActionResult)
async def join_auction(
    auction_id: str,
    store: AuctionStore = Depends(get_store),
    push: PushClient = Depends(get_push),
):
    auction = await _get_auction(store, auction_id)
    outcome, needed = plan_join(store, auction)

    if outcome == LOGIN_REQUIRED:
        await store.join_auction(auction.id, auction.entry_fee)
    elif outcome == ALREADY_JOINED:
        outcome = JOINED
    elif outcome == JOIN:
        if await store.join_auction(auction.id, auction.entry_fee):
            outcome = JOINED
            await push.join_auction_room(auction.id)
        else:
            outcome = FAILED

    return ActionResult(
        outcome=outcome,
        success=outcome == JOINED,
        amount=auction.entry_fee,
        needed_coins=needed,
        user_coins=store.user_coins,
        error=store.error if outcome in (LOGIN_REQUIRED, FAILED) else None,
    )


@router.post("/auctions/{auction_id}/bid", response_model=ActionResult)
async def place_bid(auction_id: str, store: AuctionStore = Depends(get_store)):
    auction = await _get_auction(store, auction_id)
    leaderboard = await _leaderboard(store, auction) if store.is_participating_in_auction(auction.id) else []
    outcome, amount = plan_bid(store, auction, leader=leaderboard[0] if leaderboard else None)

    needed = None
    if outcome in (LOGIN_REQUIRED, JOIN_REQUIRED):
        # Let the store record why the bid was refused
        await store.place_bid(auction.id, amount)
    elif outcome == TOPUP_REQUIRED:
        needed = amount - store.user_coins
    elif outcome == BID:
        outcome = BID_PLACED if await store.place_bid(auction.id, amount) else FAILED

    return ActionResult(
        outcome=outcome,
        success=outcome == BID_PLACED,
        amount=amount,
        needed_coins=needed,
        user_coins=store.user_coins,
        error=store.error if outcome in (LOGIN_REQUIRED, JOIN_REQUIRED, FAILED) else None,
    )


@router.post("/auctions/{auction_id}/winner/dismiss")
async def dismiss_winner(auction_id: str, store: AuctionStore = Depends(get_store)):
    await store.storage.mark_winner_announced(auction_id)
    return {"auction_id": auction_id, "dismissed": True}
