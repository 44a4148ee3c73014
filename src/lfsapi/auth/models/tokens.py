"""Token records, token endpoint requests and token endpoint responses.

Requests are immutable and know how to render themselves as the
application/x-www-form-urlencoded body the LFS token endpoint expects.
"""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel


@dataclass(frozen=True)
class TokenRecord:
    """Bearer token held for one flow kind.

    Replaced wholesale on every successful exchange, never mutated.
    `expires_at` is an absolute Unix timestamp, never a duration.
    """

    access_token: str = ""
    refresh_token: str | None = None
    expires_at: float = 0.0

    @classmethod
    def empty(cls) -> TokenRecord:
        """Record for a flow that has never been issued a token."""
        return cls()

    @classmethod
    def from_response(cls, response: TokenResponse, issued_at: float) -> TokenRecord:
        """Build a record from a successful response received at `issued_at`.

        Raises:
            ValueError: If the response is not a success or lacks expires_in
        """
        if not response.is_success():
            raise ValueError("Cannot build a token record from an error response")
        if response.expires_in is None:
            raise ValueError("Token response missing expires_in")

        return cls(
            access_token=response.access_token,
            refresh_token=response.refresh_token,
            expires_at=issued_at + response.expires_in,
        )

    def is_expired(self, now: float, leeway: float = 0.0) -> bool:
        """Check whether the token is unusable at instant `now`.

        A never-issued record expires at the epoch, so it is always expired.
        """
        if not self.access_token:
            return True
        return now >= self.expires_at - leeway

    def can_refresh(self) -> bool:
        return bool(self.refresh_token)


@dataclass(frozen=True)
class ClientCredentialsRequest:
    """Client credentials grant parameters (RFC 6749 Section 4.4.2)."""

    token_endpoint: str
    client_id: str
    client_secret: str

    grant_type: str = "client_credentials"

    def to_form_data(self) -> dict[str, str]:
        return {
            "grant_type": self.grant_type,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }


@dataclass(frozen=True)
class AuthorizationCodeRequest:
    """Authorization code grant parameters (RFC 6749 Section 4.1.3).

    Confidential clients authenticate with `client_secret`, public clients
    prove possession of the PKCE `code_verifier` (RFC 7636). Exactly one of
    the two is sent.
    """

    # Required fields first
    token_endpoint: str
    code: str
    redirect_uri: str
    client_id: str

    # Client authentication, exactly one
    client_secret: str | None = None
    code_verifier: str | None = None

    grant_type: str = "authorization_code"

    def __post_init__(self) -> None:
        if (self.client_secret is None) == (self.code_verifier is None):
            raise ValueError(
                "Authorization code request needs exactly one of "
                "client_secret or code_verifier"
            )

    def to_form_data(self) -> dict[str, str]:
        """Convert to form data for application/x-www-form-urlencoded request.

        Returns:
            Dictionary suitable for httpx data parameter
        """
        data = {
            "grant_type": self.grant_type,
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "code": self.code,
        }

        if self.code_verifier is not None:
            data["code_verifier"] = self.code_verifier
        else:
            data["client_secret"] = self.client_secret

        return data


@dataclass(frozen=True)
class RefreshTokenRequest:
    """Refresh token grant parameters (RFC 6749 Section 6).

    Public clients omit the secret.
    """

    token_endpoint: str
    refresh_token: str
    client_id: str

    client_secret: str | None = None
    grant_type: str = "refresh_token"

    def to_form_data(self) -> dict[str, str]:
        data = {
            "grant_type": self.grant_type,
            "refresh_token": self.refresh_token,
            "client_id": self.client_id,
        }

        if self.client_secret is not None:
            data["client_secret"] = self.client_secret

        return data


class TokenResponse(BaseModel):
    """Token endpoint response (RFC 6749 Section 5).

    Represents both successful responses (Section 5.1) and error responses
    (Section 5.2), so a rejected grant comes back as a value rather than an
    exception.
    """

    # Success response fields (RFC 6749 Section 5.1)
    access_token: str | None = None
    token_type: str = "Bearer"
    expires_in: int | None = None  # Seconds until expiry
    refresh_token: str | None = None
    scope: str | None = None

    # Error response fields (RFC 6749 Section 5.2)
    error: str | None = None
    error_description: str | None = None
    error_uri: str | None = None

    status_code: int | None = None

    def is_success(self) -> bool:
        """Check if token response indicates success."""
        return self.error is None and self.access_token is not None

    def is_error(self) -> bool:
        """Check if token response indicates an error."""
        return not self.is_success()
