import pytest
from protean import current_domain
from protean.integrations.pytest import DomainFixture
from settlement.account.account import ConnectedAccount
from settlement.provider import reset_provider, set_provider
from settlement.provider.fake_adapter import FakePaymentProvider


@pytest.fixture(scope="session")
def settlement_bed():
    from settlement.domain import settlement

    bed = DomainFixture(settlement)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(settlement_bed):
    with settlement_bed.domain_context():
        yield


@pytest.fixture(autouse=True)
def provider():
    fake = FakePaymentProvider()
    set_provider(fake)
    yield fake
    reset_provider()


@pytest.fixture()
def connect_store(provider):
    """Open a fully onboarded connected account for a store and return it."""

    def _connect(store_id, payouts_enabled=True):
        snapshot = provider.create_connected_account(store_id=store_id, email=f"{store_id}@example.com", country="US")
        account = ConnectedAccount.open(store_id=store_id, provider_account_id=snapshot.account_id)
        account.apply_account_update(
            event_id=f"evt_onboarded_{store_id}",
            created=1,
            charges_enabled=True,
            payouts_enabled=payouts_enabled,
            details_submitted=True,
        )
        current_domain.repository_for(ConnectedAccount).add(account)
        return account

    return _connect
