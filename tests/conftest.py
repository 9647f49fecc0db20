import os
from pathlib import Path

import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Pytest hook to run before collecting tests.

    Initialize both bounded contexts so that elements are registered before
    any test module imports them. Per-domain conftests push the right
    domain context for each test.
    """
    os.environ["PROTEAN_ENV"] = session.config.option.env
    os.environ.setdefault("PAYMENT_PROVIDER", "fake")
    os.environ.setdefault("STORE_DIRECTORY_ADAPTER", "fake")
    os.environ.setdefault("AUTH_ADAPTER", "fake")

    from ordering.domain import ordering
    from settlement.domain import settlement

    ordering.init()
    settlement.init()


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = str(Path(item.fspath))

        if "/domain/" in test_path:
            item.add_marker(pytest.mark.domain)
        elif "/application/" in test_path:
            item.add_marker(pytest.mark.application)
        elif "/bdd/" in test_path:
            item.add_marker(pytest.mark.bdd)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(autouse=True)
def run_around_tests():
    """Fixture to automatically cleanup infrastructure after every test"""
    yield

    from ordering.domain import ordering
    from settlement.domain import settlement

    for domain in (ordering, settlement):
        with domain.domain_context():
            # Clear all databases
            for _, provider in domain.providers.items():
                provider._data_reset()

            # Drain event stores
            domain.event_store.store._data_reset()
