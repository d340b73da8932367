"""Cart and wishlist value objects."""

from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator

from pyreleva.models._base import RelevaBaseModel


class CartProduct(RelevaBaseModel):
    """A product line in the shopping cart."""

    id: str
    price: float | None = None
    quantity: float | None = None
    custom: dict[str, Any] = Field(default_factory=dict)

    @field_validator("id")
    @classmethod
    def _id_non_empty(cls, value: str) -> str:
        product_id = value.strip()
        if not product_id:
            raise ValueError("product id must be non-empty")
        return product_id

    @field_validator("price", "quantity")
    @classmethod
    def _non_negative(cls, value: float | None) -> float | None:
        if value is not None and value < 0:
            raise ValueError("must not be negative")
        return value

    @property
    def total_price(self) -> float:
        return (self.price or 0.0) * (self.quantity if self.quantity is not None else 1.0)

    def to_payload(self) -> dict[str, Any]:
        # custom is always sent, even when empty
        payload = super().to_payload()
        payload["custom"] = dict(self.custom)
        return payload


class Cart(RelevaBaseModel):
    """Shopping cart snapshot.

    A cart with an ``order_id`` is a paid cart (checkout success).
    """

    products: tuple[CartProduct, ...] = ()
    order_id: str | None = None
    cart_paid: bool = False

    @classmethod
    def active(cls, products: list[CartProduct] | tuple[CartProduct, ...]) -> Cart:
        return cls(products=tuple(products))

    @classmethod
    def paid(cls, products: list[CartProduct] | tuple[CartProduct, ...], order_id: str) -> Cart:
        return cls(products=tuple(products), order_id=order_id, cart_paid=True)

    @classmethod
    def empty(cls) -> Cart:
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.products

    @property
    def total_price(self) -> float:
        return sum(product.total_price for product in self.products)

    def contains(self, product_id: str) -> bool:
        return any(product.id == product_id for product in self.products)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "products": [product.to_payload() for product in self.products],
            "cartPaid": self.cart_paid,
        }
        if self.order_id is not None:
            payload["orderId"] = self.order_id
        return payload


class WishlistProduct(RelevaBaseModel):
    """A product on the user's wishlist."""

    id: str
    custom: dict[str, Any] = Field(default_factory=dict)

    @field_validator("id")
    @classmethod
    def _id_non_empty(cls, value: str) -> str:
        product_id = value.strip()
        if not product_id:
            raise ValueError("product id must be non-empty")
        return product_id

    def to_payload(self) -> dict[str, Any]:
        return {"id": self.id, "custom": dict(self.custom)}
