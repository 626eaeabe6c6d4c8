from pydantic_settings import BaseSettings
from pathlib import Path


class Settings(BaseSettings):
    API_BASE_URL: str = "https://auction-app-backend-production.up.railway.app"
    WS_URL: str = "wss://auction-app-backend-production.up.railway.app"
    HTTP_TIMEOUT: float = 30.0
    WS_CONNECT_TIMEOUT: float = 20.0
    WS_MAX_RECONNECT_ATTEMPTS: int = 5
    WS_RECONNECT_DELAY: float = 1.0  # seconds, multiplied by the attempt number
    DEBUG: bool = False

    AUCTION_LIST_LIMIT: int = 6
    BID_INCREMENT: int = 2
    COIN_VALUE: int = 10  # market-price units per coin
    GUEST_COINS: int = 500
    TICK_INTERVAL_SECONDS: float = 1.0

    PAYMENT_SECRET_KEY: str = "storefront-payment-key-change-in-production"
    PAYMENT_CHECKOUT_MAX_AGE: int = 900  # 15 minutes in seconds

    BASE_DIR: Path = Path(__file__).resolve().parent
    DATA_DIR: Path = BASE_DIR / "data"
    STORAGE_URL: str = f"sqlite+aiosqlite:///{DATA_DIR / 'storefront.db'}"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
