from typing import Any

from pydantic import BaseModel, field_validator


class Product(BaseModel):
    id: str
    name: str
    description: str | None = None
    image_url: str | None = None
    market_price: float = 0
    category: str | None = None
    brand: str | None = None
    specifications: Any = None
    is_active: bool = True

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, value: Any) -> str:
        return str(value)


class Banner(BaseModel):
    id: str | None = None
    title: str
    subtitle: str | None = None
    description: str = ""
    image_url: str | None = None
    gradient: str | None = None
    accent: str | None = None
    button_text: str | None = None
    button_link: str | None = None
    is_active: bool = True
    order_index: int = 0

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, value: Any) -> str | None:
        return None if value is None else str(value)
