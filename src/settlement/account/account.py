"""ConnectedAccount aggregate (CQRS) — a store's account at the payment provider.

Created the first time a store asks to be onboarded for settlement. After
that it is changed only by provider webhooks and by an explicit disconnect;
it is never deleted.

Webhooks arrive at least once and possibly out of order, so every applied
event advances a marker ``(last_webhook_event_at, last_webhook_event_id)``.
A replay of the marker event, or an event from an earlier second, is
rejected with DuplicateWebhookEvent and leaves the account untouched. A
different event from the marker's own second cannot be ordered by its id;
the webhook handler resolves it from a fresh provider snapshot.

Status derivation:
    connected     charges and payouts enabled
    restricted    the provider disabled the account (disabled_reason set)
    pending       anything else while onboarding
    deauthorized  the store revoked the platform's access
    disconnected  the platform stopped settling with the store
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Identifier, Integer, String, Text

from settlement.account.events import AccountCapabilitiesUpdated, ConnectedAccountCreated
from settlement.domain import settlement
from settlement.errors import DuplicateWebhookEvent


class AccountStatus(Enum):
    PENDING = "pending"
    CONNECTED = "connected"
    RESTRICTED = "restricted"
    DEAUTHORIZED = "deauthorized"
    DISCONNECTED = "disconnected"


@settlement.aggregate
class ConnectedAccount:
    store_id = Identifier(identifier=True, required=True)
    provider_account_id = String(max_length=255, required=True)
    email = String(max_length=255)
    country = String(max_length=2, default="US")
    charges_enabled = Boolean(default=False)
    payouts_enabled = Boolean(default=False)
    details_submitted = Boolean(default=False)
    disabled_reason = String(max_length=255)
    capabilities = Text()  # JSON: {capability_name: status}
    status = String(choices=AccountStatus, default=AccountStatus.PENDING.value)
    onboarding_url = String(max_length=1000)
    last_webhook_event_id = String(max_length=255)
    last_webhook_event_at = Integer(default=0)  # provider epoch seconds
    connected_at = DateTime()
    disconnected_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def open(cls, store_id, provider_account_id, email=None, country="US", capabilities=None):
        now = datetime.now(UTC)
        account = cls(
            store_id=store_id,
            provider_account_id=provider_account_id,
            email=email,
            country=country,
            capabilities=json.dumps(capabilities or {}),
            status=AccountStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        account.raise_(
            ConnectedAccountCreated(
                store_id=str(store_id),
                provider_account_id=provider_account_id,
                created_at=now,
            )
        )
        return account

    @property
    def can_accept_charges(self) -> bool:
        return AccountStatus(self.status) == AccountStatus.CONNECTED and self.charges_enabled

    @property
    def can_receive_transfers(self) -> bool:
        status = AccountStatus(self.status)
        return bool(self.payouts_enabled) and status in (AccountStatus.CONNECTED, AccountStatus.RESTRICTED)

    @property
    def capability_map(self) -> dict:
        return json.loads(self.capabilities) if self.capabilities else {}

    # -------------------------------------------------------------------
    # Webhook reconciliation
    # -------------------------------------------------------------------
    def ties_with_marker(self, event_id: str, created: int) -> bool:
        """True for a different event stamped in the same second as the last applied one.

        Event ids carry no ordering, so neither payload can be trusted to be
        the later one. Such an event is reconciled from a fresh account
        snapshot instead.
        """
        return (
            self.last_webhook_event_id is not None
            and event_id != self.last_webhook_event_id
            and created == (self.last_webhook_event_at or 0)
        )

    def _assert_newer_than_marker(self, event_id: str, created: int, allow_tie: bool = False) -> None:
        if self.last_webhook_event_id is None:
            return
        if allow_tie and self.ties_with_marker(event_id, created):
            return
        if created <= (self.last_webhook_event_at or 0):
            raise DuplicateWebhookEvent(event_id, self.last_webhook_event_id)

    def _advance_marker(self, event_id: str, created: int) -> None:
        self.last_webhook_event_id = event_id
        self.last_webhook_event_at = created
        self.updated_at = datetime.now(UTC)

    def _derive_status(self) -> AccountStatus:
        if self.charges_enabled and self.payouts_enabled:
            return AccountStatus.CONNECTED
        if self.disabled_reason:
            return AccountStatus.RESTRICTED
        return AccountStatus.PENDING

    def _publish_capabilities(self, previous: tuple) -> None:
        current = (self.status, self.charges_enabled, self.payouts_enabled)
        if current == previous:
            return
        if AccountStatus(self.status) == AccountStatus.CONNECTED and self.connected_at is None:
            self.connected_at = datetime.now(UTC)
        self.raise_(
            AccountCapabilitiesUpdated(
                store_id=str(self.store_id),
                provider_account_id=self.provider_account_id,
                status=self.status,
                charges_enabled=self.charges_enabled,
                payouts_enabled=self.payouts_enabled,
                updated_at=self.updated_at,
            )
        )

    def _snapshot(self) -> tuple:
        return (self.status, self.charges_enabled, self.payouts_enabled)

    def apply_account_update(
        self,
        event_id: str,
        created: int,
        charges_enabled: bool,
        payouts_enabled: bool,
        details_submitted: bool,
        disabled_reason: str | None = None,
        capabilities: dict | None = None,
    ) -> None:
        """Apply a full account snapshot from an ``account.updated`` event."""
        self._assert_newer_than_marker(event_id, created)
        self._apply_account_state(
            event_id, created, charges_enabled, payouts_enabled, details_submitted, disabled_reason, capabilities
        )

    def reconcile_from_snapshot(self, event_id: str, created: int, snapshot) -> None:
        """Apply a freshly retrieved provider ``AccountSnapshot`` for an event that ties with the marker."""
        self._assert_newer_than_marker(event_id, created, allow_tie=True)
        self._apply_account_state(
            event_id,
            created,
            snapshot.charges_enabled,
            snapshot.payouts_enabled,
            snapshot.details_submitted,
            snapshot.disabled_reason,
            snapshot.capabilities,
        )

    def _apply_account_state(
        self,
        event_id: str,
        created: int,
        charges_enabled: bool,
        payouts_enabled: bool,
        details_submitted: bool,
        disabled_reason: str | None,
        capabilities: dict | None,
    ) -> None:
        previous = self._snapshot()

        self.charges_enabled = bool(charges_enabled)
        self.payouts_enabled = bool(payouts_enabled)
        self.details_submitted = bool(details_submitted)
        self.disabled_reason = disabled_reason
        if capabilities is not None:
            self.capabilities = json.dumps(capabilities)
        if AccountStatus(self.status) != AccountStatus.DISCONNECTED:
            self.status = self._derive_status().value

        self._advance_marker(event_id, created)
        self._publish_capabilities(previous)

    def apply_capability_update(self, event_id: str, created: int, capability: str, capability_status: str) -> None:
        """Record one capability's status from a ``capability.updated`` event."""
        self._assert_newer_than_marker(event_id, created)
        previous = self._snapshot()

        capabilities = self.capability_map
        capabilities[capability] = capability_status
        self.capabilities = json.dumps(capabilities)
        if capability == "card_payments" and capability_status != "active":
            self.charges_enabled = False
            if AccountStatus(self.status) == AccountStatus.CONNECTED:
                self.status = self._derive_status().value

        self._advance_marker(event_id, created)
        self._publish_capabilities(previous)

    def apply_authorization(self, event_id: str, created: int, authorized: bool) -> None:
        """Apply ``account.application.authorized`` / ``deauthorized``.

        The event states the authorization outright and a deauthorized
        account can no longer be retrieved, so a same-second tie is applied
        as delivered.
        """
        self._assert_newer_than_marker(event_id, created, allow_tie=True)
        previous = self._snapshot()

        if authorized:
            if AccountStatus(self.status) == AccountStatus.DEAUTHORIZED:
                self.status = self._derive_status().value
        else:
            self.charges_enabled = False
            self.payouts_enabled = False
            if AccountStatus(self.status) != AccountStatus.DISCONNECTED:
                self.status = AccountStatus.DEAUTHORIZED.value

        self._advance_marker(event_id, created)
        self._publish_capabilities(previous)

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def record_onboarding_link(self, url: str) -> None:
        self.assert_reconnectable()
        self.onboarding_url = url
        self.updated_at = datetime.now(UTC)

    def disconnect(self) -> None:
        """Stop settling with this store. The record is kept for reconciliation."""
        if AccountStatus(self.status) == AccountStatus.DISCONNECTED:
            raise ValidationError({"status": ["Account is already disconnected"]})

        previous = self._snapshot()
        now = datetime.now(UTC)
        self.status = AccountStatus.DISCONNECTED.value
        self.charges_enabled = False
        self.payouts_enabled = False
        self.disconnected_at = now
        self.updated_at = now
        self._publish_capabilities(previous)

    def assert_reconnectable(self) -> None:
        if AccountStatus(self.status) == AccountStatus.DISCONNECTED:
            raise ValidationError({"status": ["A disconnected account cannot be re-onboarded"]})
