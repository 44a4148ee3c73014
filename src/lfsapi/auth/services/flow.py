"""Authorization code flow helpers.

Builds the identity provider's authorize URL and parses the redirect the
user's browser comes back with.
"""

from __future__ import annotations

from urllib.parse import parse_qs, urlparse

from lfsapi import logs
from lfsapi.auth.models.errors import AuthorizationCallbackError, StateValidationError
from lfsapi.auth.models.flow import (
    AuthorizationFlow,
    AuthorizationRequest,
    AuthorizationResponse,
)
from lfsapi.auth.models.identity import ClientIdentity
from lfsapi.auth.models.security import PKCEPair
from lfsapi.auth.services.security import generate_csrf_token, validate_state

logger = logs.get_logger(__name__)


class AuthorizationFlowService:
    """Builds authorize URLs and handles redirect callbacks.

    Stateless: the manager owns the PKCE pair and any staged code.
    """

    def __init__(self, authorization_endpoint: str):
        self.authorization_endpoint = authorization_endpoint

    def build_authorization_flow(
        self,
        identity: ClientIdentity,
        scope: str,
        state: str | None = None,
        pkce_pair: PKCEPair | None = None,
    ) -> AuthorizationFlow:
        """Build the URL the user visits to grant access.

        Args:
            identity: Client identity with a redirect URI
            scope: Space separated API scopes
            state: Caller supplied CSRF token, generated when absent
            pkce_pair: PKCE pair for public clients

        Returns:
            AuthorizationFlow with the URL and the CSRF token to expect back
        """
        csrf_token = state or generate_csrf_token()

        auth_request = AuthorizationRequest(
            authorization_endpoint=self.authorization_endpoint,
            client_id=identity.client_id,
            redirect_uri=identity.redirect_uri,
            scope=scope,
            state=csrf_token,
            code_challenge=pkce_pair.code_challenge if pkce_pair else None,
            code_challenge_method=pkce_pair.code_challenge_method if pkce_pair else None,
        )

        logger.debug(
            f"Generated authorization URL for client {identity.client_id} "
            f"(pkce={'yes' if pkce_pair else 'no'})"
        )

        return AuthorizationFlow(
            auth_url=auth_request.build_authorization_url(),
            csrf_token=csrf_token,
        )

    def handle_authorization_callback(
        self,
        callback_url: str,
        expected_state: str,
    ) -> AuthorizationResponse:
        """Handle the authorization redirect from the identity provider.

        Parses the callback URL and validates the state parameter for CSRF
        protection.

        Args:
            callback_url: Full redirect URL the browser arrived at
            expected_state: CSRF token sent in the authorization request

        Returns:
            AuthorizationResponse: Parsed callback response

        Raises:
            AuthorizationCallbackError: If callback URL is malformed
            StateValidationError: If state parameter is missing or doesn't match
        """
        try:
            auth_response = self._parse_callback_url(callback_url)
            validate_state(expected_state, auth_response.state)
        except StateValidationError:
            raise
        except Exception as e:
            raise AuthorizationCallbackError(
                f"Failed to process authorization callback: {e}"
            ) from e

        if auth_response.is_success():
            logger.info("Authorization callback successful - received authorization code")
        elif auth_response.is_error():
            logger.warning(
                f"Authorization callback contained error: {auth_response.error} - "
                f"{auth_response.error_description}"
            )
        else:
            logger.warning("Authorization callback missing both code and error")

        return auth_response

    def _parse_callback_url(self, callback_url: str) -> AuthorizationResponse:
        parsed = urlparse(callback_url)
        query_params = parse_qs(parsed.query)

        # Extract single values from query parameter lists
        def get_single_param(key: str) -> str | None:
            values = query_params.get(key, [])
            return values[0] if values else None

        return AuthorizationResponse(
            code=get_single_param("code"),
            state=get_single_param("state"),
            error=get_single_param("error"),
            error_description=get_single_param("error_description"),
            error_uri=get_single_param("error_uri"),
        )
