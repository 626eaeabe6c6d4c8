import unittest
from datetime import datetime, timedelta, timezone

from storefront.schemas.auction import Auction, UPCOMING, LIVE, ENDED, STATUSES
from storefront.services import reconcile
from storefront.services.reconcile import AuctionBoard, build_board
from tests.test_support import StorefrontTestCase, live_auction

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def upcoming_auction(auction_id: str, starts_in: int) -> Auction:
    return Auction(id=auction_id, title=auction_id, status=UPCOMING, start_time=NOW + timedelta(seconds=starts_in))


def ended_auction(auction_id: str) -> Auction:
    return Auction(id=auction_id, title=auction_id, status=ENDED, winner="Sam", final_bid=80)


class AuctionBoardTestCase(StorefrontTestCase):
    def assert_buckets_agree(self, board: AuctionBoard):
        seen = set()
        for status in STATUSES:
            for auction in board.bucket(status):
                self.assertEqual(status, auction.status)
                self.assertNotIn(auction.id, seen)
                seen.add(auction.id)
        self.assertTrue(set(board.countdowns) <= {a.id for a in board.upcoming})

    def test_build_board(self):
        board = build_board(
            upcoming=[upcoming_auction("u1", 300)],
            live=[live_auction("a1"), live_auction("a2")],
            ended=[ended_auction("e1")],
            now=NOW,
        )
        self.assertEqual(["u1"], [a.id for a in board.upcoming])
        self.assertEqual(["a1", "a2"], [a.id for a in board.live])
        self.assertEqual(["e1"], [a.id for a in board.ended])
        self.assertEqual({"u1": 300}, board.countdowns)
        self.assert_buckets_agree(board)

    def test_build_board_caps_each_list(self):
        board = build_board(live=[live_auction(f"a{i}") for i in range(10)], limit=6)
        self.assertEqual(6, len(board.live))
        self.assertEqual("a0", board.live[0].id)

    def test_apply_auction_inserts_unknown_id(self):
        board = build_board(live=[live_auction("a1")])
        board = reconcile.apply_auction(board, {"id": "a9", "title": "New", "status": "live"})
        self.assertEqual(["a9", "a1"], [a.id for a in board.live])
        self.assert_buckets_agree(board)

    def test_apply_auction_moves_on_status_change(self):
        board = build_board(live=[live_auction("a1"), live_auction("a2")], ended=[ended_auction("e1")])
        board = reconcile.apply_auction(board, {"id": "a1", "status": "ended"})
        self.assertEqual(["a2"], [a.id for a in board.live])
        self.assertEqual(["a1", "e1"], [a.id for a in board.ended])
        # fields not in the patch are kept
        self.assertEqual(45, board.find("a1").current_bid)
        self.assert_buckets_agree(board)

    def test_apply_auction_accepts_alternate_field_names(self):
        board = build_board(live=[live_auction("a1")])
        board = reconcile.apply_auction(board, {"auctionId": 1, "currentBid": "52.00", "status": "active"})
        board = reconcile.apply_auction(board, {"id": "a1", "currentBid": 50, "status": "active"})
        self.assertEqual(52, board.find("1").current_bid)
        self.assertEqual(50, board.find("a1").current_bid)
        self.assert_buckets_agree(board)

    def test_apply_auction_is_idempotent(self):
        board = build_board(live=[live_auction("a1")])
        payload = {"id": "a1", "status": "live", "current_bid": 60, "bidders": 9}
        once = reconcile.apply_auction(board, payload)
        twice = reconcile.apply_auction(once, payload)
        self.assertIs(once, twice)
        self.assertEqual(1, len(twice.live))

    def test_apply_auction_removes_unknown_status(self):
        board = build_board(live=[live_auction("a1")])
        board = reconcile.apply_auction(board, {"id": "a1", "status": "cancelled"})
        self.assertIsNone(board.find("a1"))

    def test_apply_auction_without_id_is_ignored(self):
        board = build_board(live=[live_auction("a1")])
        self.assertIs(board, reconcile.apply_auction(board, {"status": "live"}))

    def test_move_auction(self):
        board = build_board(live=[live_auction("a1")])
        moved = reconcile.move_auction(board, "a1", ENDED)
        self.assertEqual(0, moved.find("a1").time_left)
        self.assertEqual(ENDED, moved.locate("a1"))
        self.assertIs(moved, reconcile.move_auction(moved, "a1", ENDED))
        self.assertIs(moved, reconcile.move_auction(moved, "missing", LIVE))

    def test_apply_bid(self):
        board = build_board(live=[live_auction("a1")])
        board = reconcile.apply_bid(board, "a1", 51, bidders=12)
        self.assertEqual(51, board.find("a1").current_bid)
        self.assertEqual(12, board.find("a1").bidders)
        # bids for auctions not on the board carry no status and are dropped
        self.assertIs(board, reconcile.apply_bid(board, "zz", 99))

    def test_update_countdown_promotes_at_zero(self):
        board = build_board(upcoming=[upcoming_auction("u1", 300)], now=NOW)
        board = reconcile.update_countdown(board, "u1", 42)
        self.assertEqual(42, board.countdowns["u1"])
        board = reconcile.update_countdown(board, "u1", 0)
        self.assertEqual(LIVE, board.locate("u1"))
        self.assertNotIn("u1", board.countdowns)
        self.assert_buckets_agree(board)

    def test_tick(self):
        logger = self.get_logger("test_tick")
        board = build_board(
            upcoming=[upcoming_auction("u1", 1), upcoming_auction("u2", 10)],
            live=[live_auction("a1", time_left=1), live_auction("a2", time_left=30)],
            now=NOW,
        )
        board, promoted, expired = reconcile.tick(board)
        logger.info(f"promoted={promoted} expired={expired} countdowns={board.countdowns}")
        self.assertEqual(["u1"], promoted)
        self.assertEqual(["a1"], expired)
        self.assertEqual({"u2": 9}, board.countdowns)
        self.assertEqual(["u1", "a2"], [a.id for a in board.live])
        self.assertEqual(29, board.find("a2").time_left)
        self.assertEqual(["a1"], [a.id for a in board.ended])
        self.assert_buckets_agree(board)

    def test_tick_ends_live_auction_already_out_of_time(self):
        board = build_board(
            live=[
                Auction(id="a1", title="a1", status=LIVE, end_time=NOW - timedelta(minutes=5)),
                live_auction("a2", time_left=0),
                Auction(id="a3", title="a3", status=LIVE),
            ],
            now=NOW,
        )
        board, _, expired = reconcile.tick(board)
        self.assertEqual(["a1", "a2"], sorted(expired))
        self.assertEqual(["a3"], [a.id for a in board.live])
        self.assert_buckets_agree(board)

    def test_tick_ends_auction_after_time_update_to_zero(self):
        board = build_board(live=[live_auction("a1", time_left=600)], now=NOW)
        board = reconcile.apply_event(board, "auction_time_update", {"auctionId": "a1", "timeLeft": 0})
        board, _, expired = reconcile.tick(board)
        self.assertEqual(["a1"], expired)
        self.assertEqual(ENDED, board.locate("a1"))

    def test_replace_bucket(self):
        board = build_board(upcoming=[upcoming_auction("u1", 60)], live=[live_auction("a1")], now=NOW)
        board = reconcile.replace_bucket(board, LIVE, [{"id": "u1", "title": "now live"}, {"id": "a7"}])
        self.assertEqual(["u1", "a7"], [a.id for a in board.live])
        self.assertEqual((), board.upcoming)
        self.assertEqual({}, board.countdowns)
        self.assert_buckets_agree(board)


class ApplyEventTestCase(StorefrontTestCase):
    def setUp(self) -> None:
        self.board = build_board(
            upcoming=[upcoming_auction("u1", 120)],
            live=[live_auction("a1")],
            now=NOW,
        )

    def test_status_changed_moves_live_to_ended(self):
        board = reconcile.apply_event(self.board, "auction_status_changed", {"id": "a1", "status": "ended"})
        self.assertEqual((), board.live)
        self.assertEqual(["a1"], [a.id for a in board.ended])

    def test_started_and_ended_force_status(self):
        board = reconcile.apply_event(self.board, "auction_started", {"auction": {"id": "u1"}})
        self.assertEqual(LIVE, board.locate("u1"))
        board = reconcile.apply_event(board, "auction_ended", {"id": "u1", "winner": "Bo"})
        self.assertEqual(ENDED, board.locate("u1"))
        self.assertEqual("Bo", board.find("u1").winner)

    def test_created_and_deleted(self):
        board = reconcile.apply_event(self.board, "auction:created", {"id": "n1", "status": "scheduled"})
        self.assertEqual(UPCOMING, board.locate("n1"))
        board = reconcile.apply_event(board, "auction:deleted", {"auctionId": "n1"})
        self.assertIsNone(board.locate("n1"))

    def test_bid_placed(self):
        board = reconcile.apply_event(
            self.board, "bid_placed", {"auctionId": "a1", "newBid": 47, "totalBidders": 5, "bidderName": "Bo"}
        )
        self.assertEqual(47, board.find("a1").current_bid)
        self.assertEqual(5, board.find("a1").bidders)

    def test_time_update(self):
        board = reconcile.apply_event(self.board, "auction_time_update", {"auctionId": "u1", "timeLeft": 33})
        self.assertEqual(33, board.countdowns["u1"])
        board = reconcile.apply_event(board, "auction_time_update", {"auctionId": "a1", "timeLeft": 90})
        self.assertEqual(90, board.find("a1").time_left)

    def test_auctions_updated(self):
        board = reconcile.apply_event(
            self.board, "auctions_updated", {"type": "live", "auctions": [{"id": "b1"}, {"id": "b2"}]}
        )
        self.assertEqual(["b1", "b2"], [a.id for a in board.live])

    def test_non_dict_payload_is_ignored(self):
        self.assertIs(self.board, reconcile.apply_event(self.board, "auction:updated", None))


if __name__ == "__main__":
    unittest.main()
