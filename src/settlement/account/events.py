"""Domain events for the ConnectedAccount aggregate."""

from protean.fields import Boolean, DateTime, Identifier, String

from settlement.domain import settlement


@settlement.event(part_of="ConnectedAccount")
class ConnectedAccountCreated:
    """A provider connected account was opened for a store."""

    __version__ = 1

    store_id = Identifier(required=True)
    provider_account_id = String(required=True)
    created_at = DateTime(required=True)


@settlement.event(part_of="ConnectedAccount")
class AccountCapabilitiesUpdated:
    """A store's ability to take charges or receive payouts changed."""

    __version__ = 1

    store_id = Identifier(required=True)
    provider_account_id = String()
    status = String(required=True)
    charges_enabled = Boolean(default=False)
    payouts_enabled = Boolean(default=False)
    updated_at = DateTime(required=True)

