import pytest
from ordering.auth import reset_auth_service, set_auth_service
from ordering.auth.fake_adapter import FakeAuthService
from ordering.cart.locks import actor_locks
from ordering.catalogue import reset_catalogue, set_catalogue
from ordering.catalogue.fake_adapter import FakeCatalogue
from ordering.directory import reset_directory, set_directory
from ordering.directory.fake_adapter import FakeStoreDirectory
from ordering.notification import reset_sink, set_sink
from ordering.notification.fake_sink import FakeNotificationSink
from protean.integrations.pytest import DomainFixture
from settlement.provider import reset_provider, set_provider
from settlement.provider.fake_adapter import FakePaymentProvider


@pytest.fixture(scope="session")
def ordering_bed():
    from ordering.domain import ordering

    bed = DomainFixture(ordering)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(ordering_bed):
    with ordering_bed.domain_context():
        yield


@pytest.fixture(autouse=True)
def catalogue():
    fake = FakeCatalogue()
    set_catalogue(fake)
    yield fake
    reset_catalogue()


@pytest.fixture(autouse=True)
def directory():
    fake = FakeStoreDirectory()
    set_directory(fake)
    yield fake
    reset_directory()


@pytest.fixture(autouse=True)
def provider():
    fake = FakePaymentProvider()
    set_provider(fake)
    yield fake
    reset_provider()


@pytest.fixture(autouse=True)
def sink():
    fake = FakeNotificationSink()
    set_sink(fake)
    yield fake
    reset_sink()


@pytest.fixture(autouse=True)
def auth():
    fake = FakeAuthService()
    set_auth_service(fake)
    yield fake
    reset_auth_service()


@pytest.fixture(autouse=True)
def _release_actor_locks():
    yield
    actor_locks.clear()
