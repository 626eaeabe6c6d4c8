from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from storefront.api.deps import get_store
from storefront.schemas.user import LoginRequest, RegisterRequest
from storefront.schemas.views import SessionView
from storefront.services.presenter import session_view
from storefront.services.store import AuctionStore

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


@router.get("/session", response_model=SessionView)
async def get_session(store: AuctionStore = Depends(get_store)):
    return session_view(store)


@router.post("/login", response_model=SessionView)
async def login(req: LoginRequest, store: AuctionStore = Depends(get_store)):
    if await store.login(req.email, req.password):
        return session_view(store)
    return JSONResponse(status_code=401, content={"detail": store.error})


@router.post("/register", response_model=SessionView)
async def register(req: RegisterRequest, store: AuctionStore = Depends(get_store)):
    if await store.register(req.name, req.email, req.password, req.phone):
        return session_view(store)
    return JSONResponse(status_code=400, content={"detail": store.error})


@router.post("/logout", response_model=SessionView)
async def logout(store: AuctionStore = Depends(get_store)):
    await store.logout()
    return session_view(store)
