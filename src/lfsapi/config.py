"""Client configuration for the LFS API.

Validates constructor arguments once so the rest of the library can trust
them. Flow selection is derived from the validated configuration.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from lfsapi.auth.models.errors import ConfigurationError
from lfsapi.auth.models.identity import ClientIdentity, FlowKind, select_flow

DEFAULT_ID_URL = "https://id.lfs.net"
DEFAULT_API_URL = "https://api.lfs.net"

LOCAL_HOSTS = ("localhost", "127.0.0.1")


class ClientConfig(BaseModel):
    """Constructor-level settings for an LFS API client."""

    model_config = ConfigDict(frozen=True)

    client_id: str = Field(min_length=1)
    client_secret: str | None = None
    redirect_uri: str | None = None
    spa: bool = False

    # Host overrides
    id_url: str = DEFAULT_ID_URL
    api_url: str = DEFAULT_API_URL

    timeout: float = Field(default=30.0, gt=0)
    expiry_leeway: float = Field(default=0.0, ge=0)

    @classmethod
    def create(cls, **kwargs: Any) -> ClientConfig:
        """Validate arguments, reporting failures as ConfigurationError."""
        try:
            return cls(**kwargs)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid LFS API configuration: {e}") from e

    @field_validator("id_url", "api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        if not v.startswith(("https://", "http://")):
            raise ValueError(f"Host URL must be http(s): {v}")
        return v.rstrip("/")

    @field_validator("redirect_uri")
    @classmethod
    def validate_redirect_uri(cls, v: str | None) -> str | None:
        """Redirect URIs must use HTTPS unless they point at this machine."""
        if v is None:
            return v
        parsed = urlparse(v)
        if parsed.scheme == "https":
            return v
        if parsed.scheme == "http" and parsed.hostname in LOCAL_HOSTS:
            return v
        raise ValueError(f"Redirect URI must use HTTPS or localhost: {v}")

    @model_validator(mode="after")
    def validate_client_authentication(self) -> ClientConfig:
        if self.spa:
            if self.redirect_uri is None:
                raise ValueError("SPA (PKCE) flow requires a redirect_uri")
            if self.client_secret is not None:
                raise ValueError("SPA (PKCE) flow is for public clients; omit client_secret")
        elif not self.client_secret:
            raise ValueError("client_secret is required unless spa is set")
        return self

    @property
    def token_endpoint(self) -> str:
        return f"{self.id_url}/oauth2/access_token"

    @property
    def authorization_endpoint(self) -> str:
        return f"{self.id_url}/oauth2/authorize"

    def identity(self) -> ClientIdentity:
        return ClientIdentity(
            client_id=self.client_id,
            client_secret=self.client_secret,
            redirect_uri=self.redirect_uri,
        )

    def flow_kind(self) -> FlowKind:
        return select_flow(self.identity(), spa=self.spa)
