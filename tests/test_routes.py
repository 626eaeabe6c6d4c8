import unittest
from unittest.mock import AsyncMock

import httpx

from storefront.api.deps import get_store, get_push, get_payments
from storefront.clients.push import PushClient
from storefront.main import app
from storefront.services.payments import PaymentService
from tests.test_support import StorefrontAsyncTestCase, USER, failed, ok


class RoutesTestCase(StorefrontAsyncTestCase):
    async def asyncSetUp(self) -> None:
        await super().asyncSetUp()
        await self.store.restore()
        await self.store.load_auctions()
        self.push = AsyncMock(spec=PushClient)
        self.push.is_connected.return_value = False
        self.payments = PaymentService(self.api, self.store, secret_key="test-secret")

        app.dependency_overrides[get_store] = lambda: self.store
        app.dependency_overrides[get_push] = lambda: self.push
        app.dependency_overrides[get_payments] = lambda: self.payments
        self.client = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")

    async def asyncTearDown(self) -> None:
        await self.client.aclose()
        app.dependency_overrides.clear()
        await super().asyncTearDown()

    async def post(self, url: str, body: dict | None = None) -> httpx.Response:
        return await self.client.post(url, json=body)

    async def sign_in(self):
        response = await self.post("/api/v1/auth/login", {"email": USER["email"], "password": "secret"})
        self.assertEqual(200, response.status_code)

    async def test_health(self):
        response = await self.client.get("/api/v1/health")
        self.assertEqual({"status": "ok", "backend": "connected", "push": "disconnected"}, response.json())

    async def test_home_uses_fallback_content(self):
        response = await self.client.get("/api/v1/home")
        self.assertEqual(200, response.status_code)
        body = response.json()
        self.assertFalse(body["is_logged_in"])
        self.assertEqual(500, body["user_coins"])
        self.assertEqual(["demo-live-1", "demo-live-2"], [c["auction"]["id"] for c in body["live"]])
        self.assertEqual(47, body["live"][0]["next_bid"])
        self.assertIsNotNone(body["upcoming"][0]["countdown"])
        self.assertEqual("Alex Thunder", body["ended"][0]["auction"]["winner"])
        self.assertEqual(3, len(body["banners"]))

    async def test_session_login_logout(self):
        response = await self.client.get("/api/v1/auth/session")
        self.assertFalse(response.json()["is_logged_in"])

        await self.sign_in()
        body = (await self.client.get("/api/v1/auth/session")).json()
        self.assertTrue(body["is_logged_in"])
        self.assertEqual("AA", body["profile"]["avatar"])

        body = (await self.post("/api/v1/auth/logout")).json()
        self.assertFalse(body["is_logged_in"])

    async def test_login_rejected(self):
        self.api.login.return_value = failed("Invalid credentials")
        response = await self.post("/api/v1/auth/login", {"email": "x@example.com", "password": "bad"})
        self.assertEqual(401, response.status_code)
        self.assertEqual("Invalid credentials", response.json()["detail"])

    async def test_register_rejected(self):
        self.api.register.return_value = failed()
        response = await self.post("/api/v1/auth/register", {"name": "X", "email": "x@example.com", "password": "pw"})
        self.assertEqual(400, response.status_code)
        self.assertEqual("Registration failed", response.json()["detail"])

    async def test_join_requires_login(self):
        body = (await self.post("/api/v1/auctions/demo-live-1/join")).json()
        self.assertEqual("login_required", body["outcome"])
        self.assertFalse(body["success"])
        self.assertEqual("Must be logged in to join auction", body["error"])
        self.api.join_auction.assert_not_awaited()

    async def test_join_then_bid(self):
        await self.sign_in()

        body = (await self.post("/api/v1/auctions/demo-live-1/join")).json()
        self.assertEqual("joined", body["outcome"])
        self.push.join_auction_room.assert_awaited_once_with("demo-live-1")

        self.api.place_bid.return_value = ok({"auction": {"id": "demo-live-1", "current_bid": 47}})
        body = (await self.post("/api/v1/auctions/demo-live-1/bid")).json()
        self.assertEqual("bid_placed", body["outcome"])
        self.assertEqual(47, body["amount"])
        self.api.place_bid.assert_awaited_once_with("demo-live-1", 47)

        page = (await self.client.get("/api/v1/auctions/demo-live-1")).json()
        self.assertEqual(47, page["card"]["user_bid"])
        self.assertEqual(49, page["card"]["next_bid"])
        self.assertTrue(page["leaderboard"][0]["is_current_user"])

    async def test_bid_requires_join(self):
        await self.sign_in()
        body = (await self.post("/api/v1/auctions/demo-live-1/bid")).json()
        self.assertEqual("join_required", body["outcome"])
        self.assertEqual("Must join auction before bidding", body["error"])
        self.api.place_bid.assert_not_awaited()

    async def test_join_needs_top_up(self):
        self.api.login.return_value = ok({"user": {**USER, "wallet_balance": 5}})
        await self.sign_in()
        body = (await self.post("/api/v1/auctions/demo-live-1/join")).json()
        self.assertEqual("topup_required", body["outcome"])
        self.assertEqual(15, body["needed_coins"])
        self.api.join_auction.assert_not_awaited()

    async def test_join_failure(self):
        await self.sign_in()
        self.api.join_auction.return_value = failed("Auction is full")
        body = (await self.post("/api/v1/auctions/demo-live-1/join")).json()
        self.assertEqual("failed", body["outcome"])
        self.assertEqual("Auction is full", body["error"])

    async def test_unknown_auction(self):
        response = await self.client.get("/api/v1/auctions/nope")
        self.assertEqual(404, response.status_code)

    async def test_auction_fetched_from_backend(self):
        self.api.get_auction.return_value = ok({"auction": {"id": 77, "title": "Camera", "status": "upcoming"}})
        body = (await self.client.get("/api/v1/auctions/77")).json()
        self.assertEqual("Camera", body["card"]["auction"]["title"])

    async def test_timer_resumes_between_visits(self):
        first = (await self.client.get("/api/v1/auctions/demo-live-2")).json()
        self.assertEqual(1800, first["time_left"])

        self.clock.advance(100)
        second = (await self.client.get("/api/v1/auctions/demo-live-2")).json()
        self.assertEqual(1700, second["time_left"])
        self.assertEqual("28:20", second["time_left_text"])

    async def test_winner_announced_once(self):
        first = (await self.client.get("/api/v1/auctions/demo-ended-1")).json()
        self.assertEqual("Alex Thunder", first["winner"]["winner_name"])
        self.assertTrue(first["show_winner_announcement"])

        second = (await self.client.get("/api/v1/auctions/demo-ended-1")).json()
        self.assertFalse(second["show_winner_announcement"])

        response = await self.post("/api/v1/auctions/demo-ended-2/winner/dismiss")
        self.assertTrue(response.json()["dismissed"])
        third = (await self.client.get("/api/v1/auctions/demo-ended-2")).json()
        self.assertFalse(third["show_winner_announcement"])

    async def test_store_page(self):
        body = (await self.client.get("/api/v1/store", params={"category": "audio"})).json()
        self.assertEqual(["Sony WH-1000XM5"], [p["product"]["name"] for p in body["products"]])
        self.assertEqual(["Audio", "Electronics", "Fashion"], body["categories"])

    async def test_product_lookup(self):
        body = (await self.client.get("/api/v1/products/demo-product-1")).json()
        self.assertEqual(75, body["entry_fee"])
        response = await self.client.get("/api/v1/products/missing")
        self.assertEqual(404, response.status_code)

    async def test_profile(self):
        await self.sign_in()
        await self.post("/api/v1/auctions/demo-live-1/join")
        body = (await self.client.get("/api/v1/profile")).json()
        self.assertEqual(["demo-live-1"], body["joined_auctions"])
        self.assertEqual(1, body["stats"]["auctions_joined"])

    async def test_top_up(self):
        packages = (await self.client.get("/api/v1/payments/packages")).json()
        self.assertEqual(6, len(packages))

        checkout = (await self.post("/api/v1/payments/checkout", {"coins": 100, "method": "card"})).json()
        body = (await self.post("/api/v1/payments/complete", {"token": checkout["token"]})).json()
        self.assertEqual({"coins_added": 100, "user_coins": 600}, body)

        response = await self.post("/api/v1/payments/complete", {"token": checkout["token"]})
        self.assertEqual(400, response.status_code)

    async def test_checkout_unknown_package(self):
        response = await self.post("/api/v1/payments/checkout", {"coins": 7})
        self.assertEqual(400, response.status_code)
        self.assertEqual("Unknown coin package: 7", response.json()["detail"])


if __name__ == "__main__":
    unittest.main()
