"""Store Directory port — can a store take payments, and into which account."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class PaymentCapability:
    store_id: str
    accepts_charges: bool
    account_id: str | None = None


class StoreDirectory(ABC):
    @abstractmethod
    def payment_capability(self, store_id: str) -> PaymentCapability:
        """Return the store's current ability to accept charges.

        Unknown stores are reported as not accepting charges.
        """
        ...
