from fastapi import APIRouter, Depends

from storefront.api.deps import get_store
from storefront.schemas.views import ProfileView
from storefront.services.presenter import profile_view
from storefront.services.store import AuctionStore

router = APIRouter(prefix="/api/v1/profile", tags=["profile"])


@router.get("", response_model=ProfileView)
async def get_profile(store: AuctionStore = Depends(get_store)):
    return profile_view(store)


@router.post("/refresh", response_model=ProfileView)
async def refresh_profile(store: AuctionStore = Depends(get_store)):
    if store.is_logged_in:
        await store.refresh_user()
    return profile_view(store)


@router.post("/outbid/dismiss", response_model=ProfileView)
async def dismiss_outbid(store: AuctionStore = Depends(get_store)):
    store.dismiss_outbid()
    return profile_view(store)
