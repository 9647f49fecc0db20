"""Connected account onboarding — commands and handler.

A store's first onboarding request opens a provider connected account and
returns a hosted onboarding link. Repeating the request is safe: the
existing account is reused and only a fresh link is issued.
"""

import os

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from settlement.account.account import ConnectedAccount
from settlement.domain import settlement
from settlement.provider import get_provider

logger = structlog.get_logger(__name__)


def _onboarding_urls() -> tuple[str, str]:
    client_url = os.environ.get("CLIENT_URL", "http://localhost:3000").rstrip("/")
    return (
        f"{client_url}/store-dashboard?tab=payments&refresh=true",
        f"{client_url}/store-dashboard?tab=payments&success=true",
    )


@settlement.command(part_of="ConnectedAccount")
class EnsureConnectedAccount:
    """Open a connected account for a store if it has none, and issue an onboarding link."""

    store_id = Identifier(required=True)
    email = String(max_length=255)
    country = String(max_length=2, default="US")


@settlement.command(part_of="ConnectedAccount")
class CreateOnboardingLink:
    store_id = Identifier(required=True)


@settlement.command(part_of="ConnectedAccount")
class DisconnectConnectedAccount:
    store_id = Identifier(required=True)


@settlement.command_handler(part_of=ConnectedAccount)
class ConnectedAccountHandler:
    @handle(EnsureConnectedAccount)
    def ensure_connected_account(self, command):
        repo = current_domain.repository_for(ConnectedAccount)
        provider = get_provider()

        try:
            account = repo.get(command.store_id)
            created = False
        except ObjectNotFoundError:
            snapshot = provider.create_connected_account(
                store_id=str(command.store_id),
                email=command.email,
                country=command.country or "US",
            )
            account = ConnectedAccount.open(
                store_id=command.store_id,
                provider_account_id=snapshot.account_id,
                email=command.email,
                country=command.country or "US",
                capabilities=snapshot.capabilities,
            )
            created = True

        refresh_url, return_url = _onboarding_urls()
        link = provider.create_onboarding_link(account.provider_account_id, refresh_url, return_url)
        account.record_onboarding_link(link.url)
        repo.add(account)

        logger.info(
            "Connected account onboarding link issued",
            store_id=str(command.store_id),
            provider_account_id=account.provider_account_id,
            created=created,
        )
        return {
            "store_id": str(account.store_id),
            "provider_account_id": account.provider_account_id,
            "onboarding_url": link.url,
            "status": account.status,
            "created": created,
        }

    @handle(CreateOnboardingLink)
    def create_onboarding_link(self, command):
        repo = current_domain.repository_for(ConnectedAccount)
        account = repo.get(command.store_id)

        refresh_url, return_url = _onboarding_urls()
        link = get_provider().create_onboarding_link(account.provider_account_id, refresh_url, return_url)
        account.record_onboarding_link(link.url)
        repo.add(account)
        return link.url

    @handle(DisconnectConnectedAccount)
    def disconnect(self, command):
        repo = current_domain.repository_for(ConnectedAccount)
        account = repo.get(command.store_id)
        account.disconnect()
        repo.add(account)

        logger.info(
            "Connected account disconnected",
            store_id=str(command.store_id),
            provider_account_id=account.provider_account_id,
        )
