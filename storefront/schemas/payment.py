from pydantic import BaseModel


class CoinPackage(BaseModel):
    coins: int
    price: int
    popular: bool = False


class CheckoutRequest(BaseModel):
    coins: int
    method: str = "card"


class CheckoutResponse(BaseModel):
    token: str
    coins: int
    price: int
    method: str
    payment_intent_id: str


class CompleteRequest(BaseModel):
    token: str


class CompleteResponse(BaseModel):
    coins_added: int
    user_coins: int
