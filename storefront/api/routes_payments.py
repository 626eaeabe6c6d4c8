from fastapi import APIRouter, Depends, HTTPException

from storefront.api.deps import get_payments
from storefront.schemas.payment import CoinPackage, CheckoutRequest, CheckoutResponse, CompleteRequest, CompleteResponse
from storefront.services.payments import COIN_PACKAGES, PaymentError, PaymentService

router = APIRouter(prefix="/api/v1/payments", tags=["payments"])


@router.get("/packages", response_model=list[CoinPackage])
async def list_packages():
    return COIN_PACKAGES


@router.post("/checkout", response_model=CheckoutResponse)
async def checkout(req: CheckoutRequest, payments: PaymentService = Depends(get_payments)):
    try:
        return await payments.checkout(req.coins, req.method)
    except PaymentError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/complete", response_model=CompleteResponse)
async def complete(req: CompleteRequest, payments: PaymentService = Depends(get_payments)):
    try:
        return await payments.complete(req.token)
    except PaymentError as e:
        raise HTTPException(status_code=400, detail=str(e))
