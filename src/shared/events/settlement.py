"""Cross-domain event contracts for Settlement domain events.

Consumed by the Ordering domain to keep its Store Directory view of which
stores can currently accept charges. Registered as external events via
domain.register_external_event().

The source-of-truth events are in src/settlement/account/events.py.
"""

from protean.core.event import BaseEvent
from protean.fields import Boolean, DateTime, Identifier, String


class AccountCapabilitiesUpdated(BaseEvent):
    """A store's connected account changed its ability to take payments."""

    __version__ = 1

    store_id = Identifier(required=True)
    provider_account_id = String()
    status = String(required=True)
    charges_enabled = Boolean(default=False)
    payouts_enabled = Boolean(default=False)
    updated_at = DateTime(required=True)
