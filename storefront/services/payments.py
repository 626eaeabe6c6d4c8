import logging
import uuid

from itsdangerous import URLSafeTimedSerializer, SignatureExpired, BadSignature

from storefront.clients.api import ApiClient
from storefront.config import settings
from storefront.schemas.payment import CoinPackage, CheckoutResponse, CompleteResponse
from storefront.services.store import AuctionStore

logger = logging.getLogger(__name__)

COIN_PACKAGES = [
    CoinPackage(coins=50, price=70),
    CoinPackage(coins=100, price=140, popular=True),
    CoinPackage(coins=250, price=280),
    CoinPackage(coins=500, price=560),
    CoinPackage(coins=1000, price=980),
    CoinPackage(coins=2500, price=2100),
]

PAYMENT_METHODS = ("card", "paypal", "apple")


class PaymentError(Exception):
    pass


class PaymentService:
    """Simulated coin top-up.

    Checkout hands out a signed token naming the package and payment intent;
    completing it credits the wallet once.
    """

    def __init__(
        self,
        api: ApiClient,
        store: AuctionStore,
        secret_key: str = settings.PAYMENT_SECRET_KEY,
        max_age: int = settings.PAYMENT_CHECKOUT_MAX_AGE,
    ):
        self.api = api
        self.store = store
        self.max_age = max_age
        self._serializer = URLSafeTimedSerializer(secret_key)
        self._completed: set[str] = set()

    @staticmethod
    def get_package(coins: int) -> CoinPackage:
        for package in COIN_PACKAGES:
            if package.coins == coins:
                return package
        raise PaymentError(f"Unknown coin package: {coins}")

    async def _create_intent(self, package: CoinPackage) -> str:
        response = await self.api.create_payment_intent(package.price)
        data = response.data if isinstance(response.data, dict) else {}
        intent_id = data.get("payment_intent_id") or data.get("id")
        if response.success and intent_id:
            return str(intent_id)
        logger.warning(f"[Payments] No payment intent from server ({response.error}), simulating")
        return f"sim_{uuid.uuid4().hex}"

    async def checkout(self, coins: int, method: str = "card") -> CheckoutResponse:
        package = self.get_package(coins)
        if method not in PAYMENT_METHODS:
            raise PaymentError(f"Unsupported payment method: {method}")

        intent_id = await self._create_intent(package)
        token = self._serializer.dumps(
            {"coins": package.coins, "intent": intent_id, "method": method}, salt="checkout"
        )
        logger.info(f"[Payments] Checkout {intent_id}: {package.coins} coins for {package.price} via {method}")
        return CheckoutResponse(
            token=token,
            coins=package.coins,
            price=package.price,
            method=method,
            payment_intent_id=intent_id,
        )

    async def complete(self, token: str) -> CompleteResponse:
        try:
            payload = self._serializer.loads(token, salt="checkout", max_age=self.max_age)
        except SignatureExpired:
            raise PaymentError("Checkout expired")
        except BadSignature:
            raise PaymentError("Invalid checkout token")

        intent_id = payload["intent"]
        if intent_id in self._completed:
            raise PaymentError("Checkout already completed")
        self._completed.add(intent_id)

        if not intent_id.startswith("sim_"):
            response = await self.api.confirm_payment(intent_id)
            if not response.success:
                logger.warning(f"[Payments] Confirm {intent_id} failed ({response.error}), crediting anyway")

        coins = int(payload["coins"])
        await self.store.add_coins(coins)
        return CompleteResponse(coins_added=coins, user_coins=self.store.user_coins)
