"""Token endpoint client for the LFS identity provider.

Implements the RFC 6749 token endpoint interactions the LFS API needs:
client credentials, authorization code (with secret or PKCE verifier) and
refresh token grants.
"""

from __future__ import annotations


import httpx
from pydantic import ValidationError

from lfsapi import logs
from lfsapi.auth.models.errors import (
    ConfigurationError,
    TokenExchangeError,
    TransportError,
)
from lfsapi.auth.models.identity import ClientIdentity
from lfsapi.auth.models.tokens import (
    AuthorizationCodeRequest,
    ClientCredentialsRequest,
    RefreshTokenRequest,
    TokenResponse,
)

logger = logs.get_logger(__name__)

TokenGrantRequest = ClientCredentialsRequest | AuthorizationCodeRequest | RefreshTokenRequest


class TokenExchangeClient:
    """Performs token endpoint exchanges.

    Every provider reply that parses comes back as a TokenResponse, success
    or RFC 6749 Section 5.2 error alike, so the caller decides what a
    rejected grant means. Uses application/x-www-form-urlencoded bodies and
    never retries.
    """

    def __init__(self, token_endpoint: str, timeout: float = 30.0):
        """Initialize the token exchange client.

        Args:
            token_endpoint: Full URL of the token endpoint
            timeout: HTTP request timeout in seconds
        """
        self.token_endpoint = token_endpoint
        self.timeout = timeout
        self._http_client = httpx.AsyncClient(timeout=timeout)

    async def exchange_client_credentials(
        self, identity: ClientIdentity
    ) -> TokenResponse:
        """Request a token with the client credentials grant.

        Raises:
            ConfigurationError: If the identity has no client secret
            TransportError: If the token endpoint cannot be reached
            TokenExchangeError: If the reply is malformed
        """
        if identity.client_secret is None:
            raise ConfigurationError("Client credentials flow requires a client_secret")

        return await self._request_token(
            ClientCredentialsRequest(
                token_endpoint=self.token_endpoint,
                client_id=identity.client_id,
                client_secret=identity.client_secret,
            )
        )

    async def exchange_authorization_code(
        self,
        identity: ClientIdentity,
        code: str,
        code_verifier: str | None = None,
    ) -> TokenResponse:
        """Exchange an authorization code for tokens.

        Public clients pass the PKCE `code_verifier`; confidential clients
        authenticate with their secret. Never both.

        Args:
            identity: Client identity with a redirect URI
            code: Authorization code returned on the redirect
            code_verifier: PKCE verifier for public clients

        Returns:
            TokenResponse: Token response (success or error)

        Raises:
            ConfigurationError: If the identity cannot use this grant
            TransportError: If the token endpoint cannot be reached
            TokenExchangeError: If the reply is malformed
        """
        if identity.redirect_uri is None:
            raise ConfigurationError("Authorization code flow requires a redirect_uri")
        if code_verifier is None and identity.client_secret is None:
            raise ConfigurationError(
                "Authorization code exchange needs a client_secret or a PKCE code_verifier"
            )

        return await self._request_token(
            AuthorizationCodeRequest(
                token_endpoint=self.token_endpoint,
                code=code,
                redirect_uri=identity.redirect_uri,
                client_id=identity.client_id,
                client_secret=identity.client_secret if code_verifier is None else None,
                code_verifier=code_verifier,
            )
        )

    async def refresh(self, identity: ClientIdentity, refresh_token: str) -> TokenResponse:
        """Refresh an access token (RFC 6749 Section 6).

        Raises:
            TransportError: If the token endpoint cannot be reached
            TokenExchangeError: If the reply is malformed
        """
        return await self._request_token(
            RefreshTokenRequest(
                token_endpoint=self.token_endpoint,
                refresh_token=refresh_token,
                client_id=identity.client_id,
                client_secret=identity.client_secret,
            )
        )

    async def _request_token(self, token_request: TokenGrantRequest) -> TokenResponse:
        form_data = token_request.to_form_data()

        # Log request details (without sensitive data)
        logger.debug(
            f"Token request to {token_request.token_endpoint}: "
            f"grant_type={form_data['grant_type']}, "
            f"client_id={form_data['client_id']}"
        )

        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
        }

        try:
            response = await self._http_client.post(
                token_request.token_endpoint,
                data=form_data,
                headers=headers,
            )
        except httpx.TimeoutException as e:
            logger.error(f"Token request to {token_request.token_endpoint} timed out")
            raise TransportError(f"Timed out during token exchange: {e}") from e
        except httpx.HTTPError as e:
            logger.error(f"Token request to {token_request.token_endpoint} failed: {e}")
            raise TransportError(f"HTTP error during token exchange: {e}") from e

        return self._parse_token_response(response)

    def _parse_token_response(self, response: httpx.Response) -> TokenResponse:
        """Parse token endpoint response into TokenResponse.

        Handles both successful responses (2xx) and error responses (400+)
        according to RFC 6749 Section 5.

        Raises:
            TokenExchangeError: If response cannot be parsed
        """
        status_code = response.status_code

        try:
            response_data = response.json()
        except ValueError as e:
            raise TokenExchangeError(
                f"Token endpoint returned non-JSON response ({status_code})",
                status_code=status_code,
            ) from e

        if not isinstance(response_data, dict):
            raise TokenExchangeError(
                f"Token endpoint returned unexpected JSON ({status_code})",
                status_code=status_code,
            )

        if 200 <= status_code < 300:
            if "access_token" not in response_data:
                raise TokenExchangeError(
                    "Token response missing required access_token",
                    status_code=status_code,
                )
            logger.info("Token exchange successful")
        else:
            response_data = {
                **response_data,
                "error": response_data.get("error", "unknown_error"),
            }
            logger.warning(
                f"Token exchange failed with {status_code}: "
                f"{response_data['error']} - "
                f"{response_data.get('error_description', 'No description provided')}"
            )

        try:
            return TokenResponse.model_validate(
                {**response_data, "status_code": status_code}
            )
        except ValidationError as e:
            raise TokenExchangeError(
                f"Invalid token response format: {e}", status_code=status_code
            ) from e

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self._http_client.aclose()
