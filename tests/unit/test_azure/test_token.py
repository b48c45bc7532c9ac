"""
Unit tests for access token management.

Tests the refresh window, the client-credentials request and the mapping of
identity endpoint failures to AuthError.
"""

import threading
import time
from datetime import timedelta

import pytest
import requests

from azmonitor.azure.errors import AuthError
from azmonitor.azure.token import REFRESH_SKEW, TokenManager
from azmonitor.models.azure import AccessToken

from conftest import FakeSession, make_response, token_body


@pytest.fixture
def token_manager(credentials, fake_session, clock):
    return TokenManager(credentials, session=fake_session, timeout=5.0, clock=clock)


@pytest.mark.unit
class TestRefreshWindow:
    """Test cases for deciding when a token must be refreshed."""

    def test_missing_token_needs_refresh(self, token_manager):
        assert token_manager.token is None
        assert token_manager.needs_refresh() is True

    def test_token_expiring_within_skew_needs_refresh(self, token_manager, now):
        token = AccessToken(token="t", expires_on=now + timedelta(minutes=5))

        assert token_manager.needs_refresh(token) is True

    def test_token_outside_skew_is_kept(self, token_manager, now):
        token = AccessToken(token="t", expires_on=now + timedelta(minutes=15))

        assert token_manager.needs_refresh(token) is False

    def test_skew_boundary_refreshes(self, token_manager, now):
        token = AccessToken(token="t", expires_on=now + REFRESH_SKEW)

        assert token_manager.needs_refresh(token) is True

    def test_token_repr_hides_secret(self, now):
        token = AccessToken(token="very-secret", expires_on=now)

        assert "very-secret" not in repr(token)


@pytest.mark.unit
class TestEnsureToken:
    """Test cases for obtaining and caching tokens."""

    def test_requests_token_with_client_credentials(self, token_manager, fake_session, now):
        token = token_manager.ensure_token()

        assert token.token == "token-abc"
        assert token.expires_on == now + timedelta(hours=1)

        method, url, kwargs = fake_session.calls[0]
        assert method == "POST"
        assert url == "https://login.microsoftonline.com/tenant-id/oauth2/token"
        assert kwargs["data"] == {
            "grant_type": "client_credentials",
            "resource": "https://management.azure.com/",
            "client_id": "client-id",
            "client_secret": "client-secret",
        }
        assert kwargs["timeout"] == 5.0

    def test_valid_token_is_reused(self, token_manager, fake_session):
        first = token_manager.ensure_token()
        second = token_manager.ensure_token()

        assert first is second
        assert len(fake_session.calls) == 1

    def test_expiring_token_is_replaced(self, credentials, now):
        session = FakeSession()
        session.route("POST", "/oauth2/token", make_response(200, token_body(now + timedelta(minutes=5))))
        manager = TokenManager(credentials, session=session, clock=lambda: now)

        manager.ensure_token()
        session.routes.clear()
        session.route("POST", "/oauth2/token", make_response(200, token_body(now + timedelta(hours=1), "fresh")))

        assert manager.ensure_token().token == "fresh"
        assert len(session.calls) == 2

    def test_concurrent_callers_share_one_refresh(self, credentials, now):
        session = FakeSession()

        def slow_grant(**kwargs):
            time.sleep(0.05)
            return make_response(200, token_body(now + timedelta(hours=1)))

        session.route("POST", "/oauth2/token", slow_grant)
        manager = TokenManager(credentials, session=session, clock=lambda: now)

        results = []
        threads = [threading.Thread(target=lambda: results.append(manager.ensure_token())) for _ in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(session.calls) == 1
        assert len({id(token) for token in results}) == 1


@pytest.mark.unit
class TestTokenFailures:
    """Test cases for identity endpoint failures."""

    def _manager(self, credentials, now, response):
        session = FakeSession()
        session.route("POST", "/oauth2/token", response)
        return TokenManager(credentials, session=session, clock=lambda: now)

    def test_non_200_raises(self, credentials, now):
        manager = self._manager(
            credentials, now, make_response(401, {"error": "invalid_client", "error_description": "bad secret"})
        )

        with pytest.raises(AuthError) as exc_info:
            manager.ensure_token()

        assert exc_info.value.status_code == 401
        assert exc_info.value.code == "invalid_client"
        assert manager.token is None

    def test_undecodable_body_raises(self, credentials, now):
        manager = self._manager(credentials, now, make_response(200, ValueError("not json")))

        with pytest.raises(AuthError, match="decoding"):
            manager.ensure_token()

    @pytest.mark.parametrize(
        "body",
        [
            ["not", "an", "object"],
            {"expires_on": "1714564800"},
            {"access_token": "", "expires_on": "1714564800"},
            {"access_token": "t", "expires_on": "tomorrow"},
            {"access_token": "t"},
        ],
    )
    def test_malformed_body_raises(self, credentials, now, body):
        manager = self._manager(credentials, now, make_response(200, body))

        with pytest.raises(AuthError):
            manager.ensure_token()

    def test_transport_error_raises(self, credentials, now):
        def refuse(**kwargs):
            raise requests.ConnectionError("connection refused")

        manager = self._manager(credentials, now, refuse)

        with pytest.raises(AuthError, match="connection refused"):
            manager.ensure_token()

    def test_failed_refresh_keeps_previous_token(self, credentials, now):
        session = FakeSession()
        session.route("POST", "/oauth2/token", make_response(200, token_body(now + timedelta(minutes=5))))
        manager = TokenManager(credentials, session=session, clock=lambda: now)
        old = manager.ensure_token()

        session.routes.clear()
        session.route("POST", "/oauth2/token", make_response(500, None))

        with pytest.raises(AuthError):
            manager.ensure_token()

        assert manager.token is old
