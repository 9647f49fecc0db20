"""Application tests for connected account onboarding."""

import pytest
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError
from settlement.account.account import AccountStatus, ConnectedAccount
from settlement.account.onboarding import CreateOnboardingLink, DisconnectConnectedAccount, EnsureConnectedAccount


def _ensure(store_id="store-a"):
    return current_domain.process(
        EnsureConnectedAccount(store_id=store_id, email=f"{store_id}@example.com", country="KE"),
        asynchronous=False,
    )


def _calls(provider, method):
    return [call for call in provider.calls if call["method"] == method]


class TestEnsureConnectedAccount:
    def test_first_request_opens_account(self, provider):
        result = _ensure()

        assert result["created"] is True
        assert result["status"] == "pending"
        assert result["provider_account_id"].startswith("acct_fake_")
        assert result["onboarding_url"].startswith("https://connect.fake/setup/")

        account = current_domain.repository_for(ConnectedAccount).get("store-a")
        assert account.country == "KE"
        assert account.onboarding_url == result["onboarding_url"]
        assert len(_calls(provider, "create_connected_account")) == 1

    def test_repeat_request_reuses_account(self, provider):
        first = _ensure()
        second = _ensure()

        assert second["created"] is False
        assert second["provider_account_id"] == first["provider_account_id"]
        assert len(_calls(provider, "create_connected_account")) == 1
        assert len(_calls(provider, "create_onboarding_link")) == 2

    def test_disconnected_store_cannot_reonboard(self):
        _ensure()
        current_domain.process(DisconnectConnectedAccount(store_id="store-a"), asynchronous=False)

        with pytest.raises(ValidationError):
            _ensure()


class TestCreateOnboardingLink:
    def test_fresh_link(self):
        first = _ensure()["onboarding_url"]

        url = current_domain.process(CreateOnboardingLink(store_id="store-a"), asynchronous=False)

        assert url != first
        assert current_domain.repository_for(ConnectedAccount).get("store-a").onboarding_url == url

    def test_unknown_store(self):
        with pytest.raises(ObjectNotFoundError):
            current_domain.process(CreateOnboardingLink(store_id="store-x"), asynchronous=False)


class TestDisconnect:
    def test_record_is_kept(self):
        _ensure()

        current_domain.process(DisconnectConnectedAccount(store_id="store-a"), asynchronous=False)

        account = current_domain.repository_for(ConnectedAccount).get("store-a")
        assert AccountStatus(account.status) == AccountStatus.DISCONNECTED
