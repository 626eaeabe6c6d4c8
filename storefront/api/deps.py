from fastapi import Request

from storefront.clients.push import PushClient
from storefront.services.payments import PaymentService
from storefront.services.store import AuctionStore


# Objects built once in the app lifespan and kept on app.state

def get_store(request: Request) -> AuctionStore:
    return request.app.state.store


def get_push(request: Request) -> PushClient:
    return request.app.state.push


def get_payments(request: Request) -> PaymentService:
    return request.app.state.payments
