"""Store payment status — which stores can currently accept charges.

Maintained from Settlement's AccountCapabilitiesUpdated events and read by
the default Store Directory adapter during checkout.
"""

from protean.fields import Boolean, DateTime, Identifier, String

from ordering.domain import ordering


@ordering.projection
class StorePaymentStatus:
    store_id = Identifier(identifier=True, required=True)
    provider_account_id = String(max_length=255)
    status = String(max_length=50, required=True)
    charges_enabled = Boolean(default=False)
    payouts_enabled = Boolean(default=False)
    updated_at = DateTime()
