import asyncio
import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from storefront.config import settings
from storefront.db.database import init_db
from storefront.clients.api import ApiClient
from storefront.clients.push import PushClient
from storefront.services.local_storage import LocalStorage
from storefront.services.payments import PaymentService
from storefront.services.store import AuctionStore
from storefront.services.ticker import run_countdown_ticker
from storefront.api.deps import get_store, get_push
from storefront.api.routes_auth import router as auth_router
from storefront.api.routes_auctions import router as auctions_router
from storefront.api.routes_store import router as store_router
from storefront.api.routes_profile import router as profile_router
from storefront.api.routes_payments import router as payments_router

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    storage = LocalStorage()
    api = ApiClient(storage)
    store = AuctionStore(api, storage)
    await store.restore()
    await store.load_auctions()

    push = PushClient()
    store.attach(push)

    app.state.store = store
    app.state.push = push
    app.state.payments = PaymentService(api, store)

    # Push connection (with its own retries) and the one-second countdown run in the background
    push_task = asyncio.create_task(push.connect())
    ticker_task = asyncio.create_task(run_countdown_ticker(store))
    yield
    ticker_task.cancel()
    push_task.cancel()
    store.detach(push)
    await push.disconnect()
    await api.aclose()


app = FastAPI(title="Storefront", version="0.1.0", lifespan=lifespan)

logger = logging.getLogger(__name__)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    tb = traceback.format_exc()
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}\n{tb}")
    return JSONResponse(
        status_code=500,
        content={"detail": str(exc)},
    )


@app.get("/api/v1/health")
async def health_check(store: AuctionStore = Depends(get_store), push: PushClient = Depends(get_push)):
    """Report backend reachability and push connection state."""
    response = await store.api.health_check()
    return {
        "status": "ok" if response.success else "degraded",
        "backend": "connected" if response.success else response.error,
        "push": "connected" if push.is_connected() else "disconnected",
    }


app.include_router(auth_router)
app.include_router(auctions_router)
app.include_router(store_router)
app.include_router(profile_router)
app.include_router(payments_router)
