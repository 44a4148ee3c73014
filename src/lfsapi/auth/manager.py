"""Authorization manager for the LFS API.

Selects the OAuth flow once from the client configuration, keeps one token
record per flow kind, renews expired tokens lazily and hands bearer tokens
to the request gateway.

Per flow kind the token moves NoToken -> Valid -> Expired -> Valid, with a
failed renewal leaving it expired and raising to the caller. Expiry is only
evaluated when a token is asked for; there is no background timer and no
retry.
"""

from __future__ import annotations

import time
from collections.abc import Callable

from lfsapi import logs
from lfsapi.auth.models.errors import (
    AuthorizationRequiredError,
    ConfigurationError,
    PKCEError,
    TokenExchangeError,
)
from lfsapi.auth.models.flow import AuthorizationFlow, AuthorizationResponse
from lfsapi.auth.models.identity import ClientIdentity, FlowKind
from lfsapi.auth.models.tokens import TokenRecord, TokenResponse
from lfsapi.auth.primitives.pkce import PKCEGenerator
from lfsapi.auth.services.flow import AuthorizationFlowService
from lfsapi.auth.services.store import TokenStore
from lfsapi.auth.services.tokens import TokenExchangeClient
from lfsapi.config import ClientConfig

logger = logs.get_logger(__name__)


class AuthorizationManager:
    """Obtains, caches and renews bearer tokens for one client identity.

    Instances are independent: several identities can be served from one
    process by building one manager each.
    """

    def __init__(
        self,
        config: ClientConfig,
        token_client: TokenExchangeClient | None = None,
        flow_service: AuthorizationFlowService | None = None,
        store: TokenStore | None = None,
        pkce_generator: PKCEGenerator | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the authorization manager.

        Args:
            config: Validated client configuration
            token_client: Token endpoint client, built from config when omitted
            flow_service: Authorize URL builder, built from config when omitted
            store: Token store, a fresh empty one when omitted
            pkce_generator: PKCE pair generator
            clock: Source of the current Unix time in seconds
        """
        self.config = config
        self._identity = config.identity()
        self._flow_kind = self.select_flow(config)

        self._token_client = token_client or TokenExchangeClient(
            config.token_endpoint, timeout=config.timeout
        )
        self._flow_service = flow_service or AuthorizationFlowService(
            config.authorization_endpoint
        )
        self._store = store or TokenStore()
        self._pkce_generator = pkce_generator or PKCEGenerator()
        self._clock = clock

        self._code_verifier: str | None = None
        self._pending_code: str | None = None

        logger.debug(
            f"Authorization manager for client {config.client_id} "
            f"using {self._flow_kind.value} flow"
        )

    @staticmethod
    def select_flow(config: ClientConfig) -> FlowKind:
        return config.flow_kind()

    @property
    def flow_kind(self) -> FlowKind:
        """Flow selected at construction, fixed for the manager's lifetime."""
        return self._flow_kind

    @property
    def identity(self) -> ClientIdentity:
        return self._identity

    def token_record(self, flow_kind: FlowKind | None = None) -> TokenRecord:
        return self._store.get(flow_kind or self._flow_kind)

    def is_expired(
        self, flow_kind: FlowKind | None = None, now: float | None = None
    ) -> bool:
        """Check whether the stored token for a flow kind is unusable."""
        return self._store.is_expired(
            flow_kind or self._flow_kind,
            self._clock() if now is None else now,
            self.config.expiry_leeway,
        )

    # PKCE verifier and staged code

    def get_pkce_verifier(self) -> str | None:
        """PKCE verifier of the current authorization attempt.

        Persist it across the redirect and restore it with set_pkce_verifier.
        """
        return self._code_verifier

    def set_pkce_verifier(self, code_verifier: str) -> None:
        self._code_verifier = code_verifier

    def use_authorization_code(self, code: str) -> None:
        """Stage an authorization code for the next ensure_token call.

        The code is single use: it is dropped after one exchange attempt.
        """
        self._check_authorization_code_flow()
        self._pending_code = code

    # Authorization URL

    def build_authorization_url(
        self, scope: str, state: str | None = None
    ) -> AuthorizationFlow:
        """Build the identity provider URL the user authorizes at.

        In the PKCE flow a new verifier/challenge pair is generated first and
        the verifier kept for the code exchange.

        Args:
            scope: Space separated API scopes, e.g. "openid profile"
            state: CSRF token, a UUID4 is generated when absent

        Returns:
            AuthorizationFlow with the URL and CSRF token

        Raises:
            ConfigurationError: If the manager uses the client credentials flow
        """
        if not self._flow_kind.uses_authorization_code:
            raise ConfigurationError(
                "Cannot generate auth flow URL for client credentials flow"
            )

        pkce_pair = None
        if self._flow_kind is FlowKind.AUTHORIZATION_CODE_PKCE:
            pkce_pair = self._pkce_generator.generate_pair()
            self._code_verifier = pkce_pair.code_verifier

        return self._flow_service.build_authorization_flow(
            self._identity, scope, state=state, pkce_pair=pkce_pair
        )

    def handle_authorization_callback(
        self, callback_url: str, expected_state: str
    ) -> AuthorizationResponse:
        """Parse the redirect callback and stage its code on success.

        Raises:
            StateValidationError: If the echoed state does not match
            AuthorizationCallbackError: If the callback URL is malformed
        """
        self._check_authorization_code_flow()
        auth_response = self._flow_service.handle_authorization_callback(
            callback_url, expected_state
        )
        if auth_response.is_success():
            self._pending_code = auth_response.code
        return auth_response

    # Tokens

    async def ensure_token(
        self,
        flow_kind: FlowKind | None = None,
        token_override: str | None = None,
    ) -> str:
        """Return a usable bearer token, renewing it when expired.

        A caller supplied `token_override` is returned unchanged without
        touching the store or the network.

        Args:
            flow_kind: Token space to use, the selected flow when omitted
            token_override: Bearer token the caller already holds

        Returns:
            Access token string

        Raises:
            ConfigurationError: If the flow kind is not usable by this client
            TokenExchangeError: If renewal was rejected or no code is available
            TransportError: If the identity provider cannot be reached
        """
        if token_override is not None:
            if not token_override:
                raise ConfigurationError("Token override must be a non-empty string")
            return token_override

        flow_kind = flow_kind or self._flow_kind
        self._check_flow_allowed(flow_kind)

        if not self.is_expired(flow_kind):
            return self._store.get(flow_kind).access_token

        async with self._store.lock(flow_kind):
            # Another caller may have renewed while we waited
            if not self.is_expired(flow_kind):
                return self._store.get(flow_kind).access_token

            logger.debug(f"{flow_kind.value} access token expired, renewing")
            record = await self._renew(flow_kind)
            return record.access_token

    async def exchange_authorization_code(self, code: str) -> TokenRecord:
        """Exchange an authorization code right away and store the tokens.

        Raises:
            PKCEError: If the PKCE flow has no verifier
            TokenExchangeError: If the provider rejects the code
            TransportError: If the identity provider cannot be reached
        """
        self._check_authorization_code_flow()
        async with self._store.lock(self._flow_kind):
            self._pending_code = None
            return await self._exchange_code(code)

    async def refresh_access_token(self, refresh_token: str | None = None) -> TokenRecord:
        """Refresh the authorization code token and store the result.

        Args:
            refresh_token: Token to use instead of the stored one

        Raises:
            AuthorizationRequiredError: If no refresh token is available
            TokenExchangeError: If the provider rejects the refresh token
            TransportError: If the identity provider cannot be reached
        """
        self._check_authorization_code_flow()
        async with self._store.lock(self._flow_kind):
            refresh_token = refresh_token or self._store.get(self._flow_kind).refresh_token
            if not refresh_token:
                raise AuthorizationRequiredError("No refresh token available")
            return await self._refresh(refresh_token)

    async def _renew(self, flow_kind: FlowKind) -> TokenRecord:
        if flow_kind is FlowKind.CLIENT_CREDENTIALS:
            response = await self._token_client.exchange_client_credentials(self._identity)
            return self._store_response(flow_kind, response)

        if self._pending_code is not None:
            code, self._pending_code = self._pending_code, None
            return await self._exchange_code(code)

        current = self._store.get(flow_kind)
        if current.can_refresh():
            return await self._refresh(current.refresh_token)

        raise AuthorizationRequiredError(
            "Authorization code token expired and no authorization code or "
            "refresh token is available; the user must authorize again"
        )

    async def _exchange_code(self, code: str) -> TokenRecord:
        code_verifier = None
        if self._flow_kind is FlowKind.AUTHORIZATION_CODE_PKCE:
            if not self._code_verifier:
                raise PKCEError(
                    "PKCE code verifier missing; restore it with set_pkce_verifier"
                )
            code_verifier = self._code_verifier

        response = await self._token_client.exchange_authorization_code(
            self._identity, code, code_verifier=code_verifier
        )
        return self._store_response(self._flow_kind, response)

    async def _refresh(self, refresh_token: str) -> TokenRecord:
        response = await self._token_client.refresh(self._identity, refresh_token)
        return self._store_response(self._flow_kind, response, refresh_token)

    def _store_response(
        self,
        flow_kind: FlowKind,
        response: TokenResponse,
        previous_refresh_token: str | None = None,
    ) -> TokenRecord:
        if response.is_error():
            raise TokenExchangeError(
                f"Token exchange failed: {response.error}"
                + (f" ({response.error_description})" if response.error_description else ""),
                status_code=response.status_code,
                error=response.error,
                error_description=response.error_description,
            )

        try:
            record = TokenRecord.from_response(response, issued_at=self._clock())
        except ValueError as e:
            raise TokenExchangeError(
                f"Invalid token response: {e}", status_code=response.status_code
            ) from e

        # Refresh replies may omit a new refresh token; keep the old one
        if record.refresh_token is None and previous_refresh_token:
            record = TokenRecord(
                access_token=record.access_token,
                refresh_token=previous_refresh_token,
                expires_at=record.expires_at,
            )

        self._store.put(flow_kind, record)
        logger.info(f"Stored new {flow_kind.value} access token")
        return record

    def _check_flow_allowed(self, flow_kind: FlowKind) -> None:
        if flow_kind is FlowKind.CLIENT_CREDENTIALS:
            if not self._identity.is_confidential:
                raise ConfigurationError(
                    "Client credentials flow requires a client_secret"
                )
        elif flow_kind is not self._flow_kind:
            raise ConfigurationError(
                f"Manager is configured for the {self._flow_kind.value} flow, "
                f"not {flow_kind.value}"
            )

    def _check_authorization_code_flow(self) -> None:
        if not self._flow_kind.uses_authorization_code:
            raise ConfigurationError(
                "Authorization codes are not used by the client credentials flow"
            )

    async def close(self) -> None:
        """Close the token endpoint HTTP client."""
        await self._token_client.close()
