import logging
from typing import Any

import httpx
from pydantic import ValidationError

from storefront.config import settings
from storefront.schemas.envelope import ApiResponse
from storefront.schemas.user import AuthTokens
from storefront.services.local_storage import LocalStorage, ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY

logger = logging.getLogger(__name__)

HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}


class ApiClient:
    """Thin async wrapper over the auction backend's REST API.

    Every call returns an ApiResponse; HTTP and transport failures are folded
    into `success=False` with the server (or exception) message in `error`.
    """

    def __init__(
        self,
        storage: LocalStorage,
        base_url: str = settings.API_BASE_URL,
        timeout: float = settings.HTTP_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.storage = storage
        self.base_url = base_url.rstrip("/")
        self.token: str | None = None
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    async def load_token(self) -> str | None:
        self.token = await self.storage.get(ACCESS_TOKEN_KEY)
        return self.token

    async def set_token(self, token: str | None):
        self.token = token
        if token:
            await self.storage.set_value(ACCESS_TOKEN_KEY, token)
        else:
            await self.storage.remove(ACCESS_TOKEN_KEY)

    async def aclose(self):
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        endpoint: str,
        json: dict | None = None,
        params: dict | None = None,
    ) -> ApiResponse:
        headers = dict(HEADERS)
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        try:
            resp = await self._client.request(method, endpoint, headers=headers, json=json, params=params or None)
        except httpx.HTTPError as e:
            logger.error(f"[API] {method} {endpoint} failed: {e}")
            return ApiResponse(success=False, error=str(e) or type(e).__name__)

        try:
            body = resp.json()
        except ValueError:
            body = None

        if resp.status_code >= 400:
            error = body.get("error") if isinstance(body, dict) else None
            error = error or f"HTTP error! status: {resp.status_code}"
            logger.error(f"[API] {method} {endpoint} -> {resp.status_code}: {error}")
            return ApiResponse(success=False, error=error)

        if not resp.content:
            return ApiResponse(success=True)
        if not isinstance(body, dict):
            logger.error(f"[API] {method} {endpoint} returned a non-JSON body")
            return ApiResponse(success=False, error="Invalid response from server")

        try:
            return ApiResponse.model_validate(body)
        except ValidationError:
            logger.error(f"[API] {method} {endpoint} returned an unexpected envelope")
            return ApiResponse(success=False, error="Invalid response from server")

    async def _store_tokens(self, response: ApiResponse):
        raw = response.data.get("tokens") if isinstance(response.data, dict) else None
        if not response.success or not isinstance(raw, dict):
            return
        try:
            tokens = AuthTokens.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"[API] Ignoring malformed tokens: {e}")
            return
        await self.set_token(tokens.access_token)
        if tokens.refresh_token:
            await self.storage.set_value(REFRESH_TOKEN_KEY, tokens.refresh_token)

    # --- Authentication ---

    async def login(self, email: str, password: str) -> ApiResponse:
        response = await self._request("POST", "/api/auth/login", json={"email": email, "password": password})
        await self._store_tokens(response)
        return response

    async def register(self, name: str, email: str, password: str, phone: str | None = None) -> ApiResponse:
        payload = {"name": name, "email": email, "password": password}
        if phone:
            payload["phone"] = phone
        response = await self._request("POST", "/api/auth/register", json=payload)
        await self._store_tokens(response)
        return response

    async def get_current_user(self) -> ApiResponse:
        return await self._request("GET", "/api/auth/me")

    async def refresh_token(self) -> ApiResponse:
        refresh = await self.storage.get(REFRESH_TOKEN_KEY)
        if not refresh:
            return ApiResponse(success=False, error="No refresh token available")
        response = await self._request("POST", "/api/auth/refresh", json={"refresh_token": refresh})
        await self._store_tokens(response)
        return response

    async def logout(self) -> ApiResponse:
        try:
            response = await self._request("POST", "/api/auth/logout")
        finally:
            await self.set_token(None)
            await self.storage.clear_session()
        return response

    # --- Auctions ---

    async def get_auctions(
        self,
        status: str | None = None,
        category: str | None = None,
        page: int | None = None,
        limit: int | None = None,
    ) -> ApiResponse:
        params = {"status": status, "category": category, "page": page, "limit": limit}
        return await self._request("GET", "/api/auctions", params=params)

    async def get_auction(self, auction_id: str) -> ApiResponse:
        return await self._request("GET", f"/api/auctions/{auction_id}")

    async def join_auction(self, auction_id: str) -> ApiResponse:
        return await self._request("POST", f"/api/auctions/{auction_id}/join")

    async def place_bid(self, auction_id: str, amount: int) -> ApiResponse:
        return await self._request("POST", f"/api/auctions/{auction_id}/bid", json={"amount": amount})

    async def get_auction_bids(self, auction_id: str) -> ApiResponse:
        return await self._request("GET", f"/api/auctions/{auction_id}/bids")

    async def create_auction(self, auction: dict[str, Any]) -> ApiResponse:
        return await self._request("POST", "/api/auctions", json=auction)

    # --- Products ---

    async def get_products(
        self,
        category: str | None = None,
        page: int | None = None,
        limit: int | None = None,
        search: str | None = None,
    ) -> ApiResponse:
        params = {"category": category, "page": page, "limit": limit, "search": search}
        return await self._request("GET", "/api/products", params=params)

    async def get_product(self, product_id: str) -> ApiResponse:
        return await self._request("GET", f"/api/products/{product_id}")

    async def get_product_categories(self) -> ApiResponse:
        return await self._request("GET", "/api/products/categories/list")

    # --- Payments ---

    async def create_payment_intent(self, amount: int, currency: str = "usd") -> ApiResponse:
        return await self._request("POST", "/api/payments/create-intent", json={"amount": amount, "currency": currency})

    async def confirm_payment(self, payment_intent_id: str) -> ApiResponse:
        return await self._request("POST", "/api/payments/confirm", json={"payment_intent_id": payment_intent_id})

    async def get_coin_packages(self) -> ApiResponse:
        return await self._request("GET", "/api/payments/packages")

    async def get_payment_history(self, page: int = 1, limit: int = 20) -> ApiResponse:
        return await self._request("GET", "/api/payments/history", params={"page": page, "limit": limit})

    # --- Promotional banners ---

    async def get_banners(self) -> ApiResponse:
        return await self._request("GET", "/api/banners")

    async def create_banner(self, banner: dict[str, Any]) -> ApiResponse:
        return await self._request("POST", "/api/banners", json=banner)

    async def update_banner(self, banner_id: str, banner: dict[str, Any]) -> ApiResponse:
        return await self._request("PUT", f"/api/banners/{banner_id}", json=banner)

    async def delete_banner(self, banner_id: str) -> ApiResponse:
        return await self._request("DELETE", f"/api/banners/{banner_id}")

    async def health_check(self) -> ApiResponse:
        return await self._request("GET", "/health")
