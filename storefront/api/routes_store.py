import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError

from storefront.api.deps import get_store
from storefront.schemas.catalog import Product
from storefront.schemas.views import ProductCardView, StorePageView
from storefront.services.catalog import fetch_banners, fetch_categories, fetch_products, fallback_products
from storefront.services.presenter import product_card
from storefront.services.store import AuctionStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["store"])


@router.get("/store", response_model=StorePageView)
async def get_store_page(
    category: str | None = None,
    search: str | None = None,
    page: int | None = None,
    limit: int | None = None,
    store: AuctionStore = Depends(get_store),
):
    products = await fetch_products(store.api, category=category, search=search, page=page, limit=limit)
    return StorePageView(
        products=[product_card(p) for p in products],
        categories=await fetch_categories(store.api),
        banners=await fetch_banners(store.api),
    )


@router.get("/products/{product_id}", response_model=ProductCardView)
async def get_product(product_id: str, store: AuctionStore = Depends(get_store)):
    response = await store.api.get_product(product_id)
    if response.success and isinstance(response.data, dict):
        try:
            return product_card(Product.model_validate(response.data.get("product", response.data)))
        except ValidationError as e:
            logger.warning(f"[Store] Malformed product {product_id}: {e}")
    for product in fallback_products():
        if product.id == product_id:
            return product_card(product)
    raise HTTPException(status_code=404, detail="Product not found")
