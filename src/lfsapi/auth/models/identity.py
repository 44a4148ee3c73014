"""Client identity and OAuth flow selection."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class FlowKind(str, Enum):
    """OAuth 2.0 grant flow a manager authorizes requests with."""

    CLIENT_CREDENTIALS = "client_credentials"
    AUTHORIZATION_CODE = "authorization_code"
    AUTHORIZATION_CODE_PKCE = "authorization_code_pkce"

    @property
    def uses_authorization_code(self) -> bool:
        return self is not FlowKind.CLIENT_CREDENTIALS


@dataclass(frozen=True)
class ClientIdentity:
    """Registered client identity at the LFS identity provider.

    `client_secret` is None for public (SPA/PKCE) clients.
    """

    client_id: str
    client_secret: str | None = None
    redirect_uri: str | None = None

    @property
    def is_confidential(self) -> bool:
        return self.client_secret is not None


def select_flow(identity: ClientIdentity, spa: bool = False) -> FlowKind:
    """Pick the grant flow for an identity.

    A redirect URI means the user authorizes in a browser: with the SPA flag
    that is the PKCE flow, without it the confidential authorization code
    flow. No redirect URI leaves client credentials.
    """
    if identity.redirect_uri:
        if spa:
            return FlowKind.AUTHORIZATION_CODE_PKCE
        return FlowKind.AUTHORIZATION_CODE
    return FlowKind.CLIENT_CREDENTIALS
