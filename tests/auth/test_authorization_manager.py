"""Tests for flow selection, token caching and renewal in the authorization manager.

High-impact tests covering:
- Flow selection from configuration
- Lazy renewal on expiry, one exchange per expired check
- No stale or empty token after a failed exchange
- Token override bypassing the store and the network
- Client credentials and authorization code token isolation
- Authorization code, refresh and PKCE paths
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock
from urllib.parse import parse_qs, urlparse

import pytest

from lfsapi.auth.manager import AuthorizationManager
from lfsapi.auth.models.errors import (
    AuthorizationRequiredError,
    ConfigurationError,
    PKCEError,
    TokenExchangeError,
)
from lfsapi.auth.models.identity import FlowKind
from lfsapi.auth.models.tokens import TokenRecord
from lfsapi.auth.primitives.pkce import PKCEGenerator
from lfsapi.config import ClientConfig

T0 = 1_700_000_000.0
REDIRECT_URI = "https://myapp.com/cb"


class FakeClock:
    def __init__(self, now: float = T0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def make_response(status_code: int, payload: dict) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    return response


def make_manager(clock: FakeClock, **config_kwargs) -> AuthorizationManager:
    manager = AuthorizationManager(ClientConfig.create(**config_kwargs), clock=clock)
    manager._token_client._http_client = AsyncMock()
    return manager


def sent_form(manager: AuthorizationManager, call_index: int = -1) -> dict:
    return manager._token_client._http_client.post.call_args_list[call_index][1]["data"]


class TestSelectFlow:
    @pytest.mark.parametrize(
        "kwargs,expected",
        [
            ({"client_id": "cid", "client_secret": "sec"}, FlowKind.CLIENT_CREDENTIALS),
            (
                {"client_id": "cid", "client_secret": "sec", "redirect_uri": REDIRECT_URI},
                FlowKind.AUTHORIZATION_CODE,
            ),
            (
                {"client_id": "cid", "redirect_uri": REDIRECT_URI, "spa": True},
                FlowKind.AUTHORIZATION_CODE_PKCE,
            ),
        ],
    )
    def test_flow_selected_once_from_config(self, kwargs, expected):
        # Act
        manager = make_manager(FakeClock(), **kwargs)

        # Assert
        assert manager.flow_kind is expected
        assert AuthorizationManager.select_flow(manager.config) is expected


class TestClientCredentialsFlow:
    def setup_method(self):
        # Arrange
        self.clock = FakeClock()
        self.manager = make_manager(self.clock, client_id="cid", client_secret="sec")
        self.post = self.manager._token_client._http_client.post

    async def test_first_call_triggers_exactly_one_exchange(self):
        # Arrange
        self.post.return_value = make_response(
            200, {"access_token": "abc", "expires_in": 3600}
        )

        # Act
        token = await self.manager.ensure_token()

        # Assert
        assert token == "abc"
        self.post.assert_awaited_once()
        assert sent_form(self.manager)["grant_type"] == "client_credentials"

    async def test_valid_token_served_from_store(self):
        # Arrange
        self.post.return_value = make_response(
            200, {"access_token": "abc", "expires_in": 3600}
        )
        await self.manager.ensure_token()
        self.clock.now = T0 + 3599

        # Act
        token = await self.manager.ensure_token()

        # Assert
        assert token == "abc"
        assert self.post.await_count == 1

    async def test_expired_token_renewed_with_absolute_expiry(self):
        # Arrange
        self.manager._store.put(
            FlowKind.CLIENT_CREDENTIALS,
            TokenRecord(access_token="old", expires_at=T0 - 1),
        )
        self.post.return_value = make_response(
            200, {"access_token": "abc", "expires_in": 3600}
        )

        # Act
        token = await self.manager.ensure_token()

        # Assert
        assert token == "abc"
        self.post.assert_awaited_once()
        assert self.manager.token_record().expires_at == T0 + 3600
        assert not self.manager.is_expired(now=T0 + 3599)
        assert self.manager.is_expired(now=T0 + 3601)

    async def test_rejected_exchange_raises_and_stores_nothing(self):
        # Arrange
        self.post.return_value = make_response(
            401, {"error": "invalid_client", "error_description": "Bad secret"}
        )

        # Act & Assert
        with pytest.raises(TokenExchangeError) as exc_info:
            await self.manager.ensure_token()

        assert exc_info.value.status_code == 401
        assert exc_info.value.error == "invalid_client"
        assert self.manager.token_record() == TokenRecord.empty()

    async def test_failed_renewal_never_returns_stale_token(self):
        # Arrange
        self.manager._store.put(
            FlowKind.CLIENT_CREDENTIALS,
            TokenRecord(access_token="stale", expires_at=T0 - 1),
        )
        self.post.return_value = make_response(500, {"error": "server_error"})

        # Act & Assert
        with pytest.raises(TokenExchangeError):
            await self.manager.ensure_token()

        assert self.manager.token_record().access_token == "stale"
        assert self.manager.is_expired()

    async def test_each_expired_check_makes_one_attempt(self):
        # Arrange
        self.post.return_value = make_response(400, {"error": "invalid_request"})

        # Act
        for _ in range(2):
            with pytest.raises(TokenExchangeError):
                await self.manager.ensure_token()

        # Assert
        assert self.post.await_count == 2

    async def test_reply_without_expires_in_is_rejected(self):
        # Arrange
        self.post.return_value = make_response(200, {"access_token": "abc"})

        # Act & Assert
        with pytest.raises(TokenExchangeError, match="expires_in"):
            await self.manager.ensure_token()
        assert self.manager.token_record() == TokenRecord.empty()

    async def test_override_bypasses_exchange(self):
        # Act
        token = await self.manager.ensure_token(token_override="caller-token")

        # Assert
        assert token == "caller-token"
        self.post.assert_not_called()
        assert self.manager.token_record() == TokenRecord.empty()

    async def test_empty_override_rejected(self):
        with pytest.raises(ConfigurationError):
            await self.manager.ensure_token(token_override="")
        self.post.assert_not_called()

    async def test_concurrent_callers_share_one_exchange(self):
        # Arrange
        async def slow_post(*args, **kwargs):
            await asyncio.sleep(0)
            return make_response(200, {"access_token": "abc", "expires_in": 3600})

        self.post.side_effect = slow_post

        # Act
        tokens = await asyncio.gather(
            self.manager.ensure_token(), self.manager.ensure_token()
        )

        # Assert
        assert tokens == ["abc", "abc"]
        assert self.post.await_count == 1

    def test_authorization_url_not_available(self):
        with pytest.raises(ConfigurationError, match="client credentials flow"):
            self.manager.build_authorization_url("openid")

    async def test_authorization_code_token_not_available(self):
        with pytest.raises(ConfigurationError):
            await self.manager.ensure_token(FlowKind.AUTHORIZATION_CODE)
        with pytest.raises(ConfigurationError):
            await self.manager.exchange_authorization_code("code-1")
        with pytest.raises(ConfigurationError):
            self.manager.use_authorization_code("code-1")


class TestAuthorizationCodeFlow:
    def setup_method(self):
        # Arrange
        self.clock = FakeClock()
        self.manager = make_manager(
            self.clock, client_id="cid", client_secret="sec", redirect_uri=REDIRECT_URI
        )
        self.post = self.manager._token_client._http_client.post

    def test_authorization_url_without_pkce(self):
        # Act
        flow = self.manager.build_authorization_url("openid profile", "state123")

        # Assert
        query_params = parse_qs(urlparse(flow.auth_url).query)
        assert query_params["response_type"] == ["code"]
        assert query_params["state"] == ["state123"]
        assert "code_challenge" not in query_params
        assert flow.csrf_token == "state123"
        assert self.manager.get_pkce_verifier() is None

    async def test_no_code_and_no_refresh_token_requires_authorization(self):
        # Act & Assert
        with pytest.raises(AuthorizationRequiredError):
            await self.manager.ensure_token()
        self.post.assert_not_called()

    async def test_staged_code_exchanged_once(self):
        # Arrange
        self.post.return_value = make_response(
            200, {"access_token": "user", "refresh_token": "rt", "expires_in": 60}
        )
        self.manager.use_authorization_code("code-1")

        # Act
        token = await self.manager.ensure_token()

        # Assert
        assert token == "user"
        form = sent_form(self.manager)
        assert form["grant_type"] == "authorization_code"
        assert form["code"] == "code-1"
        assert form["client_secret"] == "sec"
        assert "code_verifier" not in form
        assert self.manager.token_record().refresh_token == "rt"

    async def test_staged_code_dropped_after_failed_exchange(self):
        # Arrange
        self.post.return_value = make_response(400, {"error": "invalid_grant"})
        self.manager.use_authorization_code("code-1")

        # Act
        with pytest.raises(TokenExchangeError):
            await self.manager.ensure_token()

        # Assert
        with pytest.raises(AuthorizationRequiredError):
            await self.manager.ensure_token()
        assert self.post.await_count == 1

    async def test_expired_token_refreshed_and_refresh_token_kept(self):
        # Arrange
        self.manager._store.put(
            FlowKind.AUTHORIZATION_CODE,
            TokenRecord(access_token="old", refresh_token="rt", expires_at=T0 - 1),
        )
        self.post.return_value = make_response(
            200, {"access_token": "new", "expires_in": 3600}
        )

        # Act
        token = await self.manager.ensure_token()

        # Assert
        assert token == "new"
        form = sent_form(self.manager)
        assert form["grant_type"] == "refresh_token"
        assert form["refresh_token"] == "rt"
        assert form["client_secret"] == "sec"
        assert self.manager.token_record().refresh_token == "rt"

    async def test_staged_code_preferred_over_refresh_token(self):
        # Arrange
        self.manager._store.put(
            FlowKind.AUTHORIZATION_CODE,
            TokenRecord(access_token="old", refresh_token="rt", expires_at=T0 - 1),
        )
        self.manager.use_authorization_code("fresh-code")
        self.post.return_value = make_response(
            200, {"access_token": "new", "refresh_token": "rt2", "expires_in": 3600}
        )

        # Act
        await self.manager.ensure_token()

        # Assert
        assert sent_form(self.manager)["grant_type"] == "authorization_code"
        assert self.manager.token_record().refresh_token == "rt2"

    async def test_explicit_exchange_returns_record(self):
        # Arrange
        self.post.return_value = make_response(
            200, {"access_token": "user", "refresh_token": "rt", "expires_in": 3600}
        )

        # Act
        record = await self.manager.exchange_authorization_code("code-1")

        # Assert
        assert record == TokenRecord(
            access_token="user", refresh_token="rt", expires_at=T0 + 3600
        )
        assert self.manager.token_record() == record

    async def test_explicit_refresh_without_refresh_token(self):
        with pytest.raises(AuthorizationRequiredError):
            await self.manager.refresh_access_token()
        self.post.assert_not_called()

    async def test_explicit_refresh_with_given_token(self):
        # Arrange
        self.post.return_value = make_response(
            200, {"access_token": "new", "refresh_token": "rt2", "expires_in": 3600}
        )

        # Act
        record = await self.manager.refresh_access_token("caller-rt")

        # Assert
        assert sent_form(self.manager)["refresh_token"] == "caller-rt"
        assert record.refresh_token == "rt2"

    async def test_client_credentials_token_isolated_from_user_token(self):
        # Arrange
        self.post.side_effect = [
            make_response(200, {"access_token": "user", "expires_in": 3600}),
            make_response(200, {"access_token": "app", "expires_in": 3600}),
        ]
        user_record = await self.manager.exchange_authorization_code("code-1")

        # Act
        app_token = await self.manager.ensure_token(FlowKind.CLIENT_CREDENTIALS)

        # Assert
        assert app_token == "app"
        assert self.manager.token_record(FlowKind.AUTHORIZATION_CODE) == user_record
        assert await self.manager.ensure_token() == "user"
        assert self.post.await_count == 2

    async def test_user_token_exchange_leaves_client_credentials_token(self):
        # Arrange
        app_record = TokenRecord(access_token="app", expires_at=T0 + 3600)
        self.manager._store.put(FlowKind.CLIENT_CREDENTIALS, app_record)
        self.post.return_value = make_response(
            200, {"access_token": "user", "expires_in": 3600}
        )

        # Act
        await self.manager.exchange_authorization_code("code-1")

        # Assert
        assert self.manager.token_record(FlowKind.CLIENT_CREDENTIALS) is app_record

    def test_callback_stages_code(self):
        # Act
        response = self.manager.handle_authorization_callback(
            f"{REDIRECT_URI}?code=abc&state=s1", "s1"
        )

        # Assert
        assert response.is_success()
        assert self.manager._pending_code == "abc"


class TestPKCEFlow:
    def setup_method(self):
        # Arrange
        self.clock = FakeClock()
        self.manager = make_manager(
            self.clock, client_id="cid", redirect_uri=REDIRECT_URI, spa=True
        )
        self.post = self.manager._token_client._http_client.post

    def test_authorization_url_carries_challenge_of_stored_verifier(self):
        # Act
        flow = self.manager.build_authorization_url("openid profile")

        # Assert
        query_params = parse_qs(urlparse(flow.auth_url).query)
        verifier = self.manager.get_pkce_verifier()
        assert verifier
        assert query_params["code_challenge_method"] == ["S256"]
        assert query_params["code_challenge"] == [PKCEGenerator.derive_challenge(verifier)]

    def test_each_authorization_url_gets_a_new_pair(self):
        # Act
        self.manager.build_authorization_url("openid")
        first = self.manager.get_pkce_verifier()
        self.manager.build_authorization_url("openid")

        # Assert
        assert self.manager.get_pkce_verifier() != first

    async def test_code_exchange_sends_restored_verifier(self):
        # Arrange
        self.manager.set_pkce_verifier("f" * 56)
        self.post.return_value = make_response(
            200, {"access_token": "user", "refresh_token": "rt", "expires_in": 3600}
        )

        # Act
        await self.manager.exchange_authorization_code("code-1")

        # Assert
        form = sent_form(self.manager)
        assert form["code_verifier"] == "f" * 56
        assert "client_secret" not in form

    async def test_code_exchange_without_verifier(self):
        with pytest.raises(PKCEError):
            await self.manager.exchange_authorization_code("code-1")
        self.post.assert_not_called()

    async def test_refresh_omits_secret(self):
        # Arrange
        self.manager._store.put(
            FlowKind.AUTHORIZATION_CODE_PKCE,
            TokenRecord(access_token="old", refresh_token="rt", expires_at=T0 - 1),
        )
        self.post.return_value = make_response(
            200, {"access_token": "new", "expires_in": 3600}
        )

        # Act
        await self.manager.ensure_token()

        # Assert
        form = sent_form(self.manager)
        assert form["grant_type"] == "refresh_token"
        assert "client_secret" not in form

    async def test_client_credentials_not_available_to_public_client(self):
        with pytest.raises(ConfigurationError):
            await self.manager.ensure_token(FlowKind.CLIENT_CREDENTIALS)
        self.post.assert_not_called()
