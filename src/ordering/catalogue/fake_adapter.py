"""In-memory catalogue for development and testing."""

from ordering.catalogue.port import Catalogue, ProductSnapshot


class FakeCatalogue(Catalogue):
    def __init__(self) -> None:
        self.products: dict[str, ProductSnapshot] = {}

    def add_product(self, product_id: str, store_id: str, price: int, stock: int, title: str = "") -> ProductSnapshot:
        product = ProductSnapshot(
            product_id=product_id,
            store_id=store_id,
            title=title or product_id,
            price=price,
            stock=stock,
        )
        self.products[product_id] = product
        return product

    def set_stock(self, product_id: str, stock: int) -> None:
        current = self.products[product_id]
        self.add_product(current.product_id, current.store_id, current.price, stock, current.title)

    def set_price(self, product_id: str, price: int) -> None:
        current = self.products[product_id]
        self.add_product(current.product_id, current.store_id, price, current.stock, current.title)

    def get_product(self, product_id: str) -> ProductSnapshot | None:
        return self.products.get(str(product_id))
