"""Exception hierarchy for the LFS API client.

Separates bad configuration, provider-rejected token exchanges, unreachable
hosts and failed resource calls so callers can decide between re-authenticating,
backing off, or fixing their setup.
"""

from __future__ import annotations

from typing import Any


class LFSAPIError(Exception):
    """Base exception for all LFS API client errors."""

    pass


class ConfigurationError(LFSAPIError):
    """Raised when constructor arguments are missing, invalid or contradictory."""

    pass


class TokenError(LFSAPIError):
    """Raised when token operations fail."""

    pass


class TokenExchangeError(TokenError):
    """Raised when the token endpoint rejects a grant or replies with garbage.

    Carries the HTTP status and the RFC 6749 Section 5.2 error fields when the
    provider sent them.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error: str | None = None,
        error_description: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.error = error
        self.error_description = error_description


class AuthorizationRequiredError(TokenExchangeError):
    """Raised when an authorization-code token is needed but neither a code
    nor a refresh token is available. The user must authorize again.
    """

    pass


class PKCEError(TokenError):
    """Raised when PKCE parameter generation fails or a verifier is missing."""

    pass


class TransportError(LFSAPIError):
    """Raised when the identity or API host cannot be reached.

    Covers DNS failures, refused or reset connections, and timeouts.
    """

    pass


class ResourceRequestError(LFSAPIError):
    """Raised when a resource endpoint answers with a non-2xx status."""

    def __init__(self, message: str, status_code: int, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class AuthorizationCallbackError(LFSAPIError):
    """Raised when the authorization redirect callback is malformed."""

    pass


class StateValidationError(AuthorizationCallbackError):
    """Raised when OAuth state parameter validation fails.

    This indicates either a missing state parameter or a state mismatch,
    which could indicate a CSRF attack or authorization server issue.
    """

    pass
