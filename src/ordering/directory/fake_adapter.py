"""In-memory store directory for development and testing."""

from ordering.directory.port import PaymentCapability, StoreDirectory


class FakeStoreDirectory(StoreDirectory):
    def __init__(self) -> None:
        self.stores: dict[str, PaymentCapability] = {}

    def register(self, store_id: str, account_id: str | None = None, accepts_charges: bool = True) -> None:
        self.stores[store_id] = PaymentCapability(
            store_id=store_id,
            accepts_charges=accepts_charges,
            account_id=account_id or f"acct_{store_id}",
        )

    def payment_capability(self, store_id: str) -> PaymentCapability:
        return self.stores.get(str(store_id), PaymentCapability(store_id=str(store_id), accepts_charges=False))
