"""Store directory backed by the StorePaymentStatus projection."""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from ordering.directory.port import PaymentCapability, StoreDirectory
from ordering.projections.store_payment_status import StorePaymentStatus


class ProjectionStoreDirectory(StoreDirectory):
    def payment_capability(self, store_id: str) -> PaymentCapability:
        try:
            record = current_domain.repository_for(StorePaymentStatus).get(str(store_id))
        except ObjectNotFoundError:
            return PaymentCapability(store_id=str(store_id), accepts_charges=False)

        return PaymentCapability(
            store_id=str(store_id),
            accepts_charges=record.status == "connected" and bool(record.charges_enabled),
            account_id=record.provider_account_id,
        )
