"""Domain events for the StoreSettlement aggregate."""

from protean.fields import Boolean, DateTime, Identifier, Integer, String

from settlement.domain import settlement


@settlement.event(part_of="StoreSettlement")
class StoreSettlementOpened:
    """A store's share of an order was computed and recorded."""

    __version__ = 1

    settlement_id = Identifier(required=True)
    order_id = Identifier(required=True)
    store_id = Identifier(required=True)
    gross_share = Integer(required=True)
    fee_share = Integer(required=True)
    net_transfer = Integer(required=True)
    retained_amount = Integer(required=True)
    is_primary = Boolean(required=True)


@settlement.event(part_of="StoreSettlement")
class StoreTransferSucceeded:
    """The store's net share reached its connected account."""

    __version__ = 1

    settlement_id = Identifier(required=True)
    order_id = Identifier(required=True)
    store_id = Identifier(required=True)
    transfer_id = String()
    amount = Integer(required=True)
    transferred_at = DateTime(required=True)


@settlement.event(part_of="StoreSettlement")
class StoreTransferFailed:
    """A transfer attempt failed and is scheduled for another attempt."""

    __version__ = 1

    settlement_id = Identifier(required=True)
    order_id = Identifier(required=True)
    store_id = Identifier(required=True)
    attempt = Integer(required=True)
    error = String(max_length=1000)
    next_attempt_at = DateTime()


@settlement.event(part_of="StoreSettlement")
class StoreTransferEscalated:
    """Automatic retries were exhausted; the transfer needs manual reconciliation."""

    __version__ = 1

    settlement_id = Identifier(required=True)
    order_id = Identifier(required=True)
    store_id = Identifier(required=True)
    attempts = Integer(required=True)
    error = String(max_length=1000)
