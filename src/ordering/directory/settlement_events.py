"""Inbound cross-domain event handler — Ordering reacts to Settlement events.

Listens for AccountCapabilitiesUpdated from the Settlement domain to keep
the StorePaymentStatus projection that checkout consults before charging.

Cross-domain events are imported from shared.events.settlement and
registered as external events via ordering.register_external_event().
"""

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain
from protean.utils.mixins import handle
from shared.events.settlement import AccountCapabilitiesUpdated

from ordering.checkout.checkout import Checkout
from ordering.domain import ordering
from ordering.projections.store_payment_status import StorePaymentStatus

logger = structlog.get_logger(__name__)

# Register external event so Protean can deserialize it
ordering.register_external_event(AccountCapabilitiesUpdated, "Settlement.AccountCapabilitiesUpdated.v1")


@ordering.event_handler(part_of=Checkout, stream_category="settlement::connected_account")
class SettlementDirectoryEventHandler:
    """Mirrors store payment capability into the Ordering domain."""

    @handle(AccountCapabilitiesUpdated)
    def on_capabilities_updated(self, event: AccountCapabilitiesUpdated) -> None:
        repo = current_domain.repository_for(StorePaymentStatus)
        try:
            record = repo.get(str(event.store_id))
        except ObjectNotFoundError:
            record = StorePaymentStatus(store_id=str(event.store_id), status=event.status)

        if record.updated_at is not None and event.updated_at is not None:
            if record.updated_at.replace(tzinfo=None) > event.updated_at.replace(tzinfo=None):
                logger.info("Ignoring stale store capability update", store_id=str(event.store_id))
                return

        record.provider_account_id = event.provider_account_id
        record.status = event.status
        record.charges_enabled = event.charges_enabled
        record.payouts_enabled = event.payouts_enabled
        record.updated_at = event.updated_at
        repo.add(record)

        logger.info(
            "Store payment capability updated",
            store_id=str(event.store_id),
            status=event.status,
            charges_enabled=event.charges_enabled,
        )
