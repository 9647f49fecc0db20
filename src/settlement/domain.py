"""Settlement bounded context — Connected Accounts and Store Payouts.

Owns the marketplace's relationship with the external payment provider:
connected-account onboarding and webhook reconciliation, the single customer
charge created at checkout, and the per-store settlement transfers issued
after an order is confirmed.
"""

from protean.domain import Domain

from settlement.utils.logging import get_logger

logger = get_logger(__name__)

# Domain Composition Root
settlement = Domain(name="settlement")
