"""Fixtures for cross-domain integration tests.

These tests drive the Ordering and Settlement domains together through one
FastAPI app that pushes the right domain context per request, the same way
``src/app.py`` does. Events that cross the boundary are handed to the
receiving domain's handler explicitly, standing in for the Engine. Both
domains are initialized and reset by the root conftest.
"""

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from ordering.api import (
    cart_router,
    checkout_router,
    driver_router,
    order_router,
    register_marketplace_handlers,
)
from ordering.auth import reset_auth_service, set_auth_service
from ordering.auth.fake_adapter import FakeAuthService
from ordering.cart.locks import actor_locks
from ordering.catalogue import reset_catalogue, set_catalogue
from ordering.catalogue.fake_adapter import FakeCatalogue
from ordering.directory import reset_directory, set_directory
from ordering.directory.projection_adapter import ProjectionStoreDirectory
from ordering.notification import reset_sink, set_sink
from ordering.notification.fake_sink import FakeNotificationSink
from settlement.api import settlement_router, webhook_router
from settlement.provider import reset_provider, set_provider
from settlement.provider.fake_adapter import FakePaymentProvider


@pytest.fixture(scope="session")
def ordering_domain():
    from ordering.domain import ordering

    return ordering


@pytest.fixture(scope="session")
def settlement_domain():
    from settlement.domain import settlement

    return settlement


@pytest.fixture()
def client(ordering_domain, settlement_domain):
    routes = {
        "/cart": ordering_domain,
        "/checkout": ordering_domain,
        "/orders": ordering_domain,
        "/drivers": ordering_domain,
        "/settlement": settlement_domain,
        "/webhooks": settlement_domain,
    }

    app = FastAPI()

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        for prefix, domain in routes.items():
            if request.url.path.startswith(prefix):
                with domain.domain_context():
                    return await call_next(request)
        return await call_next(request)

    for router in (cart_router, checkout_router, order_router, driver_router, settlement_router, webhook_router):
        app.include_router(router)
    register_marketplace_handlers(app)

    return TestClient(app)


@pytest.fixture(autouse=True)
def catalogue():
    fake = FakeCatalogue()
    set_catalogue(fake)
    yield fake
    reset_catalogue()


@pytest.fixture(autouse=True)
def directory():
    """Checkout reads store capability from the projection Settlement keeps current."""
    set_directory(ProjectionStoreDirectory())
    yield
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
