"""Catalogue port — the product facts the cart and checkout need.

Product browsing and stock management live outside this service; carts
only need a product's owning store, its current price in minor units and
how many units are in stock.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class ProductSnapshot:
    product_id: str
    store_id: str
    title: str
    price: int
    stock: int


class Catalogue(ABC):
    @abstractmethod
    def get_product(self, product_id: str) -> ProductSnapshot | None:
        """Return the product's current snapshot, or None if it does not exist."""
        ...
